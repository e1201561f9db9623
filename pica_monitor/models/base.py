"""
OrganizationModel — Abstract base class for organization-scoped models.

All models that need tenant isolation inherit from OrganizationModel
instead of db.Model directly. This adds:
  - organization_id FK column with index
  - query_for_organization(organization_id) classmethod

The column is nullable because legacy rows without an owner exist; such
rows are never returned to a scoped caller.
"""

from datetime import datetime, timezone

from pica_monitor.models import db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrganizationModel(db.Model):
    """Abstract base for organization-scoped tables."""
    __abstract__ = True

    organization_id = db.Column(
        db.Integer,
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    @classmethod
    def query_for_organization(cls, organization_id):
        """Return a query filtered by organization_id.

        A missing organization id yields a query that matches nothing.
        """
        if organization_id is None:
            return cls.query.filter(db.false())
        return cls.query.filter_by(organization_id=organization_id)
