"""
Activation & versioning mixins.

ActiveFlagMixin replaces physical deletes with an ``is_active`` flag.
Master documents and organisation records are never removed;
deactivation hides them from default queries.

Usage:
    class MyModel(ActiveFlagMixin, db.Model):
        ...

    obj.deactivate()
    db.session.commit()

    MyModel.query_active().all()   # only is_active=True
    MyModel.query.all()            # everything, deactivated included

VersionedRowMixin carries the columns shared by every type-specific
document table (one row per uploaded version, exactly one flagged latest).
"""

from sqlalchemy.orm import declared_attr

from bantal.models import _uuid, _utcnow, db


class ActiveFlagMixin:
    """Mixin that adds an ``is_active`` flag with query helpers."""

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    def deactivate(self):
        """Hide this record from default queries."""
        self.is_active = False

    @classmethod
    def query_active(cls):
        """Return a query that excludes deactivated records."""
        return cls.query.filter(cls.is_active.is_(True))


class VersionedRowMixin:
    """Columns shared by the offering-letter / work-agreement / billing tables."""

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    version_number = db.Column(db.Integer, nullable=False, default=1)
    is_latest = db.Column(db.Boolean, nullable=False, default=True, index=True)
    uploaded_by = db.Column(
        db.String(36),
        nullable=False,
        comment="Identity id of the uploader, or the system identity for automated writes",
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    @declared_attr
    def master_document_id(cls):
        return db.Column(
            db.String(36),
            db.ForeignKey("master_document_list.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )

    def version_dict(self) -> dict:
        return {
            "id": self.id,
            "master_document_id": self.master_document_id,
            "version_number": self.version_number,
            "is_latest": self.is_latest,
            "uploaded_by": self.uploaded_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
