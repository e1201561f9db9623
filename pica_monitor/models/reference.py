"""
Reference data consulted by the PICA core.

Project sites, people and departments are maintained elsewhere; this
service reads them by id to validate foreign keys and to embed them in
relation reads. Nothing here is mutated by the PICA lifecycle.
"""

from pica_monitor.models import db
from pica_monitor.models.base import OrganizationModel


class Department(OrganizationModel):
    __tablename__ = "departments"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "name", name="uq_department_org_name"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)

    def to_dict(self):
        return {"id": self.id, "organization_id": self.organization_id, "name": self.name}


class Person(OrganizationModel):
    """A person who can be put in charge of a corrective action."""

    __tablename__ = "people"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), nullable=False)
    position = db.Column(db.String(200), default="")
    department_id = db.Column(
        db.Integer, db.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True,
    )

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "email": self.email,
            "position": self.position or "",
            "department_id": self.department_id,
        }


class ProjectSite(OrganizationModel):
    __tablename__ = "project_sites"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "code", name="uq_project_site_org_code"),
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    location = db.Column(db.String(200))

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "code": self.code,
            "name": self.name,
            "location": self.location,
        }
