"""
SQLAlchemy-backed PicaStore.

Writes go through the Flask-SQLAlchemy session and stay pending until the
service calls ``commit()``.  Status-guarded updates are issued as a single
``UPDATE ... WHERE id = :id AND status = :expected`` so the compare and the
write cannot be split by a concurrent writer.  History rows are inserted
inside a SAVEPOINT so a failed append leaves the record write intact.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from pica_monitor.core.exceptions import ConflictError
from pica_monitor.models import db
from pica_monitor.models.organization import User
from pica_monitor.models.pica import Pica, PicaHistory
from pica_monitor.models.reference import Person, ProjectSite
from pica_monitor.repositories.base import PicaStore
from pica_monitor.services.helpers.scoped_queries import get_scoped_or_none
from pica_monitor.services.tenant_scope import TenantScope

logger = logging.getLogger(__name__)


def _as_dict(row) -> dict[str, Any] | None:
    return row.to_dict() if row is not None else None


class SqlAlchemyPicaStore(PicaStore):
    """Store bound to the application's ``db.session``."""

    # ── Records ──────────────────────────────────────────────────────────

    def get_pica(self, organization_id: int, pica_id: int) -> dict[str, Any] | None:
        return _as_dict(get_scoped_or_none(Pica, pica_id, organization_id=organization_id))

    def find_pica_by_business_key(self, organization_id: int, business_key: str) -> dict[str, Any] | None:
        row = Pica.query_for_organization(organization_id).filter_by(business_key=business_key).first()
        return _as_dict(row)

    def list_picas(self, organization_id: int, status: str | None = None) -> list[dict[str, Any]]:
        query = Pica.query_for_organization(organization_id)
        if status is not None:
            query = query.filter(Pica.status == status)
        rows = query.order_by(Pica.created_at.desc(), Pica.id.desc()).all()
        return [r.to_dict() for r in rows]

    def insert_pica(self, fields: dict[str, Any]) -> dict[str, Any]:
        pica = Pica(**fields)
        db.session.add(pica)
        try:
            db.session.flush()
        except IntegrityError as exc:
            db.session.rollback()
            logger.info(
                "Duplicate business_key rejected org=%s key=%s",
                fields.get("organization_id"), fields.get("business_key"),
            )
            raise ConflictError("Pica", "business_key", fields.get("business_key")) from exc
        return pica.to_dict()

    def update_pica(
        self,
        organization_id: int,
        pica_id: int,
        fields: dict[str, Any],
        *,
        expected_status: str | None = None,
    ) -> dict[str, Any] | None:
        if organization_id is None:
            return None
        stmt = update(Pica).where(Pica.id == pica_id, Pica.organization_id == organization_id)
        if expected_status is not None:
            stmt = stmt.where(Pica.status == expected_status)
        stmt = stmt.values(**fields).execution_options(synchronize_session=False)

        try:
            result = db.session.execute(stmt)
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError("Pica", "business_key", fields.get("business_key")) from exc
        if result.rowcount == 0:
            logger.debug(
                "Guarded update matched no row pica=%s org=%s expected=%s",
                pica_id, organization_id, expected_status,
            )
            return None

        row = db.session.get(Pica, pica_id, populate_existing=True)
        return _as_dict(row)

    def delete_pica(self, organization_id: int, pica_id: int) -> bool:
        pica = get_scoped_or_none(Pica, pica_id, organization_id=organization_id)
        if pica is None:
            return False
        db.session.delete(pica)
        db.session.flush()
        return True

    def count_picas_by_status(self, organization_id: int) -> dict[str, int]:
        stmt = TenantScope(organization_id).apply(select(Pica.status, func.count(Pica.id)), Pica)
        stmt = stmt.group_by(Pica.status)
        return {status: count for status, count in db.session.execute(stmt).all()}

    # ── History ──────────────────────────────────────────────────────────

    def insert_history(self, entry: dict[str, Any]) -> dict[str, Any]:
        row = PicaHistory(**entry)
        with db.session.begin_nested():
            db.session.add(row)
        return row.to_dict()

    def list_history(self, pica_id: int) -> list[dict[str, Any]]:
        rows = (
            PicaHistory.query
            .filter_by(pica_id=pica_id)
            .order_by(PicaHistory.timestamp.desc(), PicaHistory.id.desc())
            .all()
        )
        return [r.to_dict() for r in rows]

    # ── Reference data ───────────────────────────────────────────────────

    def get_project_site(self, organization_id: int, site_id: int) -> dict[str, Any] | None:
        return _as_dict(get_scoped_or_none(ProjectSite, site_id, organization_id=organization_id))

    def get_person(self, organization_id: int, person_id: int) -> dict[str, Any] | None:
        return _as_dict(get_scoped_or_none(Person, person_id, organization_id=organization_id))

    def get_user(self, organization_id: int, user_id: int) -> dict[str, Any] | None:
        return _as_dict(get_scoped_or_none(User, user_id, organization_id=organization_id))

    def delete_user(self, organization_id: int, user_id: int) -> bool:
        user = get_scoped_or_none(User, user_id, organization_id=organization_id)
        if user is None:
            return False
        db.session.delete(user)
        db.session.flush()
        return True

    # ── Transaction control ──────────────────────────────────────────────

    def commit(self) -> None:
        db.session.commit()

    def rollback(self) -> None:
        db.session.rollback()
