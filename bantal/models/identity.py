"""
Identity — a person synced from the external directory.

The SSO subject id is attached lazily: the first authenticated request
whose token email matches the identity records (or corrects) the subject.
"""

from bantal.models import _uuid, _utcnow, db

IDENTITY_STATUSES = {"active", "inactive", "pending"}
IDENTITY_ROLES = {"admin", "user", "manager"}


class Identity(db.Model):
    __tablename__ = "identity"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    external_id = db.Column(
        db.String(255), nullable=False, unique=True,
        comment="Directory object id the identity was imported from",
    )
    sso_subject_id = db.Column(
        db.String(255), nullable=True, unique=True,
        comment="SSO token 'sub'; synced on login",
    )
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    department = db.Column(db.String(255), nullable=True)
    job_title = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    status = db.Column(db.String(20), nullable=False, default="active", comment="active | inactive | pending")
    role = db.Column(db.String(20), nullable=False, default="user", comment="admin | user | manager")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
        comment="Doubles as last-login marker",
    )

    @property
    def can_sign_in(self) -> bool:
        return bool(self.is_active) and self.status == "active"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "external_id": self.external_id,
            "sso_subject_id": self.sso_subject_id,
            "email": self.email,
            "name": self.name,
            "department": self.department,
            "job_title": self.job_title,
            "is_active": self.is_active,
            "status": self.status,
            "role": self.role,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Identity {self.email}>"
