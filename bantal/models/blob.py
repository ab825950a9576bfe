"""
Blob store tables — file content with append-only versions.

Lives on the ``blobs`` bind so the content can sit in a separate
database from the relational registry (see SQLALCHEMY_BINDS in config).
MasterDocument.blob_pointer holds a DocumentBlob.id; there is no FK
across the two binds.
"""

from bantal.models import _uuid, _utcnow, db


class DocumentBlob(db.Model):
    __bind_key__ = "blobs"
    __tablename__ = "document_blob"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    versions = db.relationship(
        "DocumentBlobVersion",
        back_populates="blob",
        order_by="DocumentBlobVersion.version_number",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<DocumentBlob {self.id}>"


class DocumentBlobVersion(db.Model):
    __bind_key__ = "blobs"
    __tablename__ = "document_blob_version"
    __table_args__ = (
        db.UniqueConstraint("blob_id", "version_number", name="uq_blob_version"),
    )

    id = db.Column(db.Integer, primary_key=True)
    blob_id = db.Column(
        db.String(36), db.ForeignKey("document_blob.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    version_number = db.Column(db.Integer, nullable=False)
    content = db.Column(db.LargeBinary, nullable=False)
    mime_type = db.Column(db.String(255), nullable=False, default="application/octet-stream")
    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    blob = db.relationship("DocumentBlob", back_populates="versions")

    def to_dict(self) -> dict:
        """Metadata only; content is served through the download endpoint."""
        return {
            "blob_id": self.blob_id,
            "version_number": self.version_number,
            "mime_type": self.mime_type,
            "size": len(self.content) if self.content is not None else 0,
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
        }

    def __repr__(self):
        return f"<DocumentBlobVersion {self.blob_id} v{self.version_number}>"
