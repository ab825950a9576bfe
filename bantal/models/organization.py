"""
Organisation master data — Division, Company, Client, ClientType.

Referenced by master documents (division / company) and by the
type-specific document rows (client). Records are deactivated, not deleted.
"""

from bantal.models import _uuid, _utcnow, db
from bantal.models.mixins import ActiveFlagMixin

CLIENT_STATUSES = {"active", "blacklist", "cautious"}


class ClientType(db.Model):
    """Client category (BUMN, private, government, ...)."""

    __tablename__ = "client_type"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "description": self.description}

    def __repr__(self):
        return f"<ClientType {self.name!r}>"


class Division(ActiveFlagMixin, db.Model):
    """Internal division that owns a document."""

    __tablename__ = "master_division_list"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    code = db.Column(db.String(20), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<Division {self.code}>"


class Company(ActiveFlagMixin, db.Model):
    """Legal entity a document is issued under."""

    __tablename__ = "master_company_list"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    code = db.Column(db.String(20), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.Text, nullable=True)
    phone_number = db.Column(db.String(30), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "address": self.address,
            "phone_number": self.phone_number,
            "email": self.email,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<Company {self.code}>"


class Client(ActiveFlagMixin, db.Model):
    """Customer an offering letter, work agreement or bill is addressed to."""

    __tablename__ = "master_client_list"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(255), nullable=False)
    type_id = db.Column(
        db.Integer, db.ForeignKey("client_type.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    group = db.Column(db.String(255), nullable=True, comment="Parent group / holding name")
    contact_name = db.Column(db.String(255), nullable=True)
    contact_email = db.Column(db.String(255), nullable=True)
    contact_phone = db.Column(db.String(30), nullable=True)
    status = db.Column(
        db.String(20),
        nullable=False,
        default="active",
        comment="active | blacklist | cautious",
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    client_type = db.relationship("ClientType", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.client_type.to_dict() if self.client_type else None,
            "group": self.group,
            "contact_name": self.contact_name,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "status": self.status,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<Client {self.name!r} [{self.status}]>"
