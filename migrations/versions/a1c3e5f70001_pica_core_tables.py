"""pica_core_tables

Create organizations, users, reference data (departments, people,
project_sites), picas and pica_history.

Revision ID: a1c3e5f70001
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "a1c3e5f70001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "organizations" not in existing_tables:
        op.create_table(
            "organizations",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("has_paid", sa.Boolean(), nullable=True),
            sa.Column("subscription_active", sa.Boolean(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("organization_id", sa.Integer(), nullable=True),
            sa.Column("username", sa.String(length=150), nullable=False),
            sa.Column("full_name", sa.String(length=200), nullable=True),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="user"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("username"),
        )
        op.create_index("ix_users_organization_id", "users", ["organization_id"])

    if "departments" not in existing_tables:
        op.create_table(
            "departments",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("organization_id", sa.Integer(), nullable=True),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("organization_id", "name", name="uq_department_org_name"),
        )
        op.create_index("ix_departments_organization_id", "departments", ["organization_id"])

    if "people" not in existing_tables:
        op.create_table(
            "people",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("organization_id", sa.Integer(), nullable=True),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("position", sa.String(length=200), nullable=True),
            sa.Column("department_id", sa.Integer(), nullable=True),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["department_id"], ["departments.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_people_organization_id", "people", ["organization_id"])

    if "project_sites" not in existing_tables:
        op.create_table(
            "project_sites",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("organization_id", sa.Integer(), nullable=True),
            sa.Column("code", sa.String(length=50), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("location", sa.String(length=200), nullable=True),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("organization_id", "code", name="uq_project_site_org_code"),
        )
        op.create_index("ix_project_sites_organization_id", "project_sites", ["organization_id"])

    if "picas" not in existing_tables:
        op.create_table(
            "picas",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("organization_id", sa.Integer(), nullable=True),
            sa.Column("business_key", sa.String(length=50), nullable=False),
            sa.Column("project_site_id", sa.Integer(), nullable=False),
            sa.Column("date", sa.Date(), nullable=False),
            sa.Column("issue", sa.Text(), nullable=False),
            sa.Column("problem_description", sa.Text(), nullable=False),
            sa.Column("corrective_action", sa.Text(), nullable=False),
            sa.Column("person_in_charge_id", sa.Integer(), nullable=False),
            sa.Column("due_date", sa.Date(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="progress"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["project_site_id"], ["project_sites.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["person_in_charge_id"], ["people.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("organization_id", "business_key", name="uq_pica_org_business_key"),
        )
        op.create_index("ix_picas_organization_id", "picas", ["organization_id"])
        op.create_index("ix_picas_project_site_id", "picas", ["project_site_id"])
        op.create_index("ix_picas_person_in_charge_id", "picas", ["person_in_charge_id"])
        op.create_index("ix_picas_org_status", "picas", ["organization_id", "status"])

    if "pica_history" not in existing_tables:
        op.create_table(
            "pica_history",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("pica_id", sa.Integer(), nullable=False),
            sa.Column("actor_id", sa.Integer(), nullable=True),
            sa.Column("old_status", sa.String(length=20), nullable=True),
            sa.Column("new_status", sa.String(length=20), nullable=False),
            sa.Column("comment", sa.Text(), nullable=False),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["pica_id"], ["picas.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_pica_history_pica_ts", "pica_history", ["pica_id", "timestamp"])
        op.create_index("ix_pica_history_actor_id", "pica_history", ["actor_id"])


def downgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    for table in ("pica_history", "picas", "project_sites", "people", "departments", "users", "organizations"):
        if table in existing_tables:
            op.drop_table(table)
