"""
Storage capability shared by every PICA backend.

A store persists records, history rows and the read-only reference data
and hands them back as plain dicts in the shape the API exposes.  It knows
nothing about roles, derivation or default comments; those live in the
service layer.

Every record-level method takes the caller's ``organization_id`` and
filters on it at query level, so a row of another organization is simply
not found.

Backends:
    - SqlAlchemyPicaStore  (pica_monitor.repositories.sql)
    - InMemoryPicaStore    (pica_monitor.repositories.memory)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class PicaStore(ABC):
    """Abstract persistence interface for PICA records and their history."""

    # ── Records ──────────────────────────────────────────────────────────

    @abstractmethod
    def get_pica(self, organization_id: int, pica_id: int) -> dict[str, Any] | None:
        """Return the record if it exists inside the organization."""

    @abstractmethod
    def find_pica_by_business_key(self, organization_id: int, business_key: str) -> dict[str, Any] | None:
        """Return the organization's record carrying *business_key*, if any."""

    @abstractmethod
    def list_picas(self, organization_id: int, status: str | None = None) -> list[dict[str, Any]]:
        """Return the organization's records, newest first."""

    @abstractmethod
    def insert_pica(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Persist a new record.

        Raises:
            ConflictError: business_key already used inside the organization.
        """

    @abstractmethod
    def update_pica(
        self,
        organization_id: int,
        pica_id: int,
        fields: dict[str, Any],
        *,
        expected_status: str | None = None,
    ) -> dict[str, Any] | None:
        """Compare-then-write update.

        The write only happens when the row exists in the organization and,
        if *expected_status* is given, its persisted status still equals it.

        Returns:
            The updated record, or None when nothing was written.
        """

    @abstractmethod
    def delete_pica(self, organization_id: int, pica_id: int) -> bool:
        """Remove the record and its history.  False when no row matched."""

    @abstractmethod
    def count_picas_by_status(self, organization_id: int) -> dict[str, int]:
        """Return ``{status: count}`` for the organization's records."""

    # ── History ──────────────────────────────────────────────────────────

    @abstractmethod
    def insert_history(self, entry: dict[str, Any]) -> dict[str, Any]:
        """Append one history row.  Must not undo pending record writes on failure."""

    @abstractmethod
    def list_history(self, pica_id: int) -> list[dict[str, Any]]:
        """Return a record's history, newest first."""

    # ── Reference data (read-only) ───────────────────────────────────────

    @abstractmethod
    def get_project_site(self, organization_id: int, site_id: int) -> dict[str, Any] | None: ...

    @abstractmethod
    def get_person(self, organization_id: int, person_id: int) -> dict[str, Any] | None: ...

    @abstractmethod
    def get_user(self, organization_id: int, user_id: int) -> dict[str, Any] | None: ...

    @abstractmethod
    def delete_user(self, organization_id: int, user_id: int) -> bool: ...

    # ── Transaction control ──────────────────────────────────────────────

    def commit(self) -> None:
        """Make pending writes durable.  No-op for auto-committing backends."""

    def rollback(self) -> None:
        """Discard pending writes.  No-op for auto-committing backends."""
