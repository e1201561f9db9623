"""
PICA domain model — corrective-action issue records and their status history.

Models:
    - Pica: one issue raised against a project site, owned by an organization.
    - PicaHistory: immutable, append-only log of status transitions.

The module also owns payload validation so that both storage backends and
the HTTP layer agree on what a well-formed record looks like.
"""

from datetime import date, datetime

from pica_monitor.core.exceptions import ValidationError
from pica_monitor.models import db
from pica_monitor.models.base import OrganizationModel, utcnow
from pica_monitor.utils.helpers import parse_date

# ── Constants ────────────────────────────────────────────────────────────────

PICA_STATUSES = ("progress", "complete", "overdue")
DEFAULT_STATUS = "progress"

PICA_TEXT_FIELDS = ("business_key", "issue", "problem_description", "corrective_action")
PICA_DATE_FIELDS = ("date", "due_date")
PICA_REFERENCE_FIELDS = ("project_site_id", "person_in_charge_id")

# Fields a caller may set on create/update.  organization_id is never
# accepted from input; it always comes from the actor.
PICA_MUTABLE_FIELDS = PICA_TEXT_FIELDS + PICA_DATE_FIELDS + PICA_REFERENCE_FIELDS + ("status",)
PICA_REQUIRED_FIELDS = PICA_TEXT_FIELDS + PICA_DATE_FIELDS + PICA_REFERENCE_FIELDS

BUSINESS_KEY_MAX_LEN = 50


class Pica(OrganizationModel):
    """
    A corrective-action record.

    ``business_key`` is the human-readable identifier (e.g. ``2504NPR01``),
    unique within an organization.  ``status`` is one of PICA_STATUSES.
    """

    __tablename__ = "picas"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "business_key", name="uq_pica_org_business_key"),
        db.Index("ix_picas_org_status", "organization_id", "status"),
    )

    id = db.Column(db.Integer, primary_key=True)
    business_key = db.Column(db.String(BUSINESS_KEY_MAX_LEN), nullable=False)
    project_site_id = db.Column(
        db.Integer, db.ForeignKey("project_sites.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    date = db.Column(db.Date, nullable=False)
    issue = db.Column(db.Text, nullable=False)
    problem_description = db.Column(db.Text, nullable=False)
    corrective_action = db.Column(db.Text, nullable=False)
    person_in_charge_id = db.Column(
        db.Integer, db.ForeignKey("people.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    due_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=DEFAULT_STATUS)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    history = db.relationship(
        "PicaHistory", back_populates="pica", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "business_key": self.business_key,
            "organization_id": self.organization_id,
            "project_site_id": self.project_site_id,
            "date": self.date.isoformat() if self.date else None,
            "issue": self.issue,
            "problem_description": self.problem_description,
            "corrective_action": self.corrective_action,
            "person_in_charge_id": self.person_in_charge_id,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Pica {self.id}: {self.business_key} [{self.status}]>"


class PicaHistory(db.Model):
    """
    Immutable audit fact for one status transition.

    ``actor_id`` NULL means the transition was system-initiated (overdue
    derivation).  Rows are only ever inserted; ``actor_id`` is a plain
    integer so deleting the user never rewrites who made the change.
    """

    __tablename__ = "pica_history"
    __table_args__ = (
        db.Index("idx_pica_history_pica_ts", "pica_id", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    pica_id = db.Column(
        db.Integer, db.ForeignKey("picas.id", ondelete="CASCADE"), nullable=False,
    )
    actor_id = db.Column(db.Integer, nullable=True, index=True)
    old_status = db.Column(db.String(20), nullable=True)
    new_status = db.Column(db.String(20), nullable=False)
    comment = db.Column(db.Text, nullable=False)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    pica = db.relationship("Pica", back_populates="history")

    def to_dict(self):
        return {
            "id": self.id,
            "pica_id": self.pica_id,
            "actor_id": self.actor_id,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "comment": self.comment,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<PicaHistory {self.id}: pica={self.pica_id} {self.old_status}->{self.new_status}>"


# ── Validation ───────────────────────────────────────────────────────────────

def _coerce_int(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def validate_pica_fields(data: dict, *, partial: bool = False) -> dict:
    """Return the cleaned subset of *data* that may be written to a Pica.

    Args:
        data: Raw input mapping (JSON body or service call).
        partial: True for updates — required fields may be omitted, but
                 any field that is present must still be valid.

    Returns:
        Dict restricted to PICA_MUTABLE_FIELDS with dates as ``date`` and
        references as ``int``.

    Raises:
        ValidationError: With one entry per offending field in ``details``.
    """
    if not isinstance(data, dict):
        raise ValidationError("PICA payload must be an object")

    errors: dict[str, str] = {}
    cleaned: dict = {}

    for field in PICA_TEXT_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if not isinstance(value, str) or not value.strip():
            errors[field] = "must be a non-empty string"
            continue
        cleaned[field] = value.strip()

    key = cleaned.get("business_key")
    if key is not None and len(key) > BUSINESS_KEY_MAX_LEN:
        errors["business_key"] = f"must be at most {BUSINESS_KEY_MAX_LEN} characters"

    for field in PICA_DATE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        parsed = value.date() if isinstance(value, datetime) else parse_date(value)
        if not isinstance(parsed, date):
            errors[field] = "must be a date in YYYY-MM-DD format"
            continue
        cleaned[field] = parsed

    for field in PICA_REFERENCE_FIELDS:
        if field not in data:
            continue
        value = _coerce_int(data[field])
        if value is None or value <= 0:
            errors[field] = "must be a positive integer id"
            continue
        cleaned[field] = value

    if "status" in data:
        if data["status"] not in PICA_STATUSES:
            errors["status"] = f"must be one of: {', '.join(PICA_STATUSES)}"
        else:
            cleaned["status"] = data["status"]

    if not partial:
        for field in PICA_REQUIRED_FIELDS:
            if field not in data and field not in errors:
                errors[field] = "is required"

    if errors:
        raise ValidationError("Invalid PICA data", details=errors)
    return cleaned
