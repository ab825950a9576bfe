"""
Project ("pekerjaan") models — Project, ProjectMilestone, PaymentInstallment.

A Project is spawned by finalizing a work agreement and then filled in
section by section (base info, team structure, milestones, payment
structure). ``creation_status`` tracks how complete that setup is;
``progress_status`` tracks delivery health once work starts.
"""

from bantal.models import _iso, _money, _uuid, _utcnow, db

CREATION_STATUSES = {"created", "in_progress", "completed"}
PROGRESS_STATUSES = {"on_track", "at_risk", "delayed", "issue"}

MILESTONE_STATUSES = {"pending", "in_progress", "completed", "cancelled"}
MILESTONE_PRIORITIES = {"low", "medium", "high", "critical"}

TRIGGER_TYPES = {"milestone", "event", "date", "manual"}
SUPPORTED_EVENTS = {"document_submission"}
INSTALLMENT_STATUSES = {"pending", "due", "cleared", "requested", "paid", "issue"}


class Project(db.Model):
    __tablename__ = "pekerjaan"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_name = db.Column(db.String(255), nullable=False)
    project_description = db.Column(db.Text, nullable=True)
    source_document_id = db.Column(
        db.String(36),
        db.ForeignKey("master_document_list.id"),
        nullable=False,
        unique=True,
        comment="Work agreement master document this project was spawned from",
    )
    billing_cadence = db.Column(db.String(20), nullable=False, default="non_monthly", comment="monthly | non_monthly")
    team_structure = db.Column(
        db.JSON,
        nullable=True,
        comment='{"project_lead": "<identity id>", "<role>": ["<identity id>", ...]}',
    )
    project_fee = db.Column(db.Numeric(19, 4), nullable=True)
    currency = db.Column(db.String(3), nullable=False, default="IDR")
    bank_name = db.Column(db.String(255), nullable=True)
    account_number = db.Column(db.String(64), nullable=True)
    account_name = db.Column(db.String(255), nullable=True)
    creation_status = db.Column(db.String(20), nullable=False, default="created", comment="created | in_progress | completed")
    progress_status = db.Column(db.String(20), nullable=False, default="on_track", comment="on_track | at_risk | delayed | issue")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    source_document = db.relationship("MasterDocument")
    milestones = db.relationship(
        "ProjectMilestone",
        back_populates="project",
        order_by="ProjectMilestone.order_index",
        cascade="all, delete-orphan",
    )
    installments = db.relationship(
        "PaymentInstallment",
        back_populates="project",
        order_by="PaymentInstallment.installment_number",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_name": self.project_name,
            "project_description": self.project_description,
            "source_document_id": self.source_document_id,
            "billing_cadence": self.billing_cadence,
            "team_structure": self.team_structure or {},
            "project_fee": _money(self.project_fee),
            "currency": self.currency,
            "bank_name": self.bank_name,
            "account_number": self.account_number,
            "account_name": self.account_name,
            "creation_status": self.creation_status,
            "progress_status": self.progress_status,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Project {self.project_name!r} [{self.creation_status}]>"


class ProjectMilestone(db.Model):
    __tablename__ = "project_milestone"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(36), db.ForeignKey("pekerjaan.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    due_date = db.Column(db.Date, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="pending", comment="pending | in_progress | completed | cancelled")
    completion_percentage = db.Column(db.Integer, nullable=False, default=0)
    priority = db.Column(db.String(20), nullable=False, default="medium", comment="low | medium | high | critical")
    order_index = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    project = db.relationship("Project", back_populates="milestones")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "description": self.description,
            "due_date": _iso(self.due_date),
            "status": self.status,
            "completion_percentage": self.completion_percentage,
            "priority": self.priority,
            "order_index": self.order_index,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<ProjectMilestone {self.name!r} [{self.status}]>"


class PaymentInstallment(db.Model):
    __tablename__ = "payment_installment"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(36), db.ForeignKey("pekerjaan.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    installment_number = db.Column(db.Integer, nullable=False)
    amount = db.Column(db.Numeric(19, 4), nullable=True)
    percentage = db.Column(db.Numeric(7, 4), nullable=False)
    trigger_type = db.Column(db.String(20), nullable=True, comment="milestone | event | date | manual")
    trigger_value = db.Column(db.String(255), nullable=True)
    milestone_id = db.Column(
        db.String(36), db.ForeignKey("project_milestone.id", ondelete="SET NULL"), nullable=True,
    )
    description = db.Column(db.Text, nullable=True)
    status = db.Column(
        db.String(20), nullable=False, default="pending",
        comment="pending | due | cleared | requested | paid | issue",
    )
    notes = db.Column(db.Text, nullable=True)
    due_date = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    project = db.relationship("Project", back_populates="installments")
    milestone = db.relationship("ProjectMilestone")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "installment_number": self.installment_number,
            "amount": _money(self.amount),
            "percentage": _money(self.percentage),
            "trigger_type": self.trigger_type,
            "trigger_value": self.trigger_value,
            "milestone_id": self.milestone_id,
            "description": self.description,
            "status": self.status,
            "notes": self.notes,
            "due_date": _iso(self.due_date),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<PaymentInstallment #{self.installment_number} {self.percentage}%>"
