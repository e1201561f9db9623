"""
Tenant-scoped PICA repository.

All reads and writes of issue records go through here.  Every operation
takes the caller's organization id and fails closed when it is missing:
lists come back empty and by-id lookups raise NotFoundError, exactly as
for a record owned by another organization.

``update`` is the only path that changes a record's status, and so the
only path that writes to the history ledger.  Both explicit edits and the
derived overdue flip use it.

Relations reads (``get_with_relations``, ``get_by_business_key_with_relations``
and ``list_with_relations``) and ``count_by_status`` run each record through
the status derivation first.
"""

import logging
from datetime import date, timezone
from typing import Callable

from pica_monitor.core.exceptions import ConflictError, NotFoundError, StaleStatusError, ValidationError
from pica_monitor.models.base import utcnow
from pica_monitor.models.pica import DEFAULT_STATUS, PICA_STATUSES, validate_pica_fields
from pica_monitor.services.pica_history import HistoryLedger
from pica_monitor.services.status_derivation import apply_derived_status, server_today
from pica_monitor.services.status_transitions import validate_status_transition
from pica_monitor.services.tenant_scope import TenantScope
from pica_monitor.utils.helpers import parse_datetime

logger = logging.getLogger(__name__)


def _check_status_filter(status: str | None) -> None:
    if status is not None and status not in PICA_STATUSES:
        raise ValidationError(
            "Invalid status filter",
            details={"status": f"must be one of: {', '.join(PICA_STATUSES)}"},
        )


class PicaRepository:
    def __init__(
        self,
        store,
        ledger: HistoryLedger | None = None,
        *,
        today: Callable[[], date] = server_today,
        allow_reopen: bool = True,
    ):
        self.store = store
        self.ledger = ledger or HistoryLedger(store)
        self.today = today
        self.allow_reopen = allow_reopen

    # ── Reads ────────────────────────────────────────────────────────────

    def get_by_id(self, organization_id: int | None, pica_id: int) -> dict:
        scope = TenantScope(organization_id)
        record = None if scope.is_empty else self.store.get_pica(organization_id, pica_id)
        if not scope.admits(record):
            raise NotFoundError(resource="Pica", resource_id=pica_id)
        return record

    def get_by_business_key(self, organization_id: int | None, business_key: str) -> dict:
        scope = TenantScope(organization_id)
        record = None if scope.is_empty else self.store.find_pica_by_business_key(organization_id, business_key)
        if not scope.admits(record):
            raise NotFoundError(resource="Pica", resource_id=business_key)
        return record

    def list_by_organization(self, organization_id: int | None, status: str | None = None) -> list[dict]:
        """All of the organization's records, newest first.  ``[]`` without an organization."""
        scope = TenantScope(organization_id)
        if scope.is_empty:
            return []
        _check_status_filter(status)
        return [r for r in self.store.list_picas(organization_id, status) if scope.admits(r)]

    def count_by_status(self, organization_id: int | None) -> dict:
        """Counts per status, taken after pending overdue flips are written."""
        counts = {status: 0 for status in PICA_STATUSES}
        if TenantScope(organization_id).is_empty:
            counts["total"] = 0
            return counts
        as_of = self.today()
        for record in self.list_by_organization(organization_id):
            apply_derived_status(self, record, as_of=as_of)
        for status, count in self.store.count_picas_by_status(organization_id).items():
            counts[status] = counts.get(status, 0) + count
        counts["total"] = sum(counts[s] for s in PICA_STATUSES)
        return counts

    def get_with_relations(self, organization_id: int | None, pica_id: int) -> dict:
        record = self.get_by_id(organization_id, pica_id)
        record = apply_derived_status(self, record, as_of=self.today())
        return self._with_relations(organization_id, record)

    def get_by_business_key_with_relations(self, organization_id: int | None, business_key: str) -> dict:
        record = self.get_by_business_key(organization_id, business_key)
        record = apply_derived_status(self, record, as_of=self.today())
        return self._with_relations(organization_id, record)

    def list_with_relations(self, organization_id: int | None, status: str | None = None) -> list[dict]:
        """Relations list.

        Derivation runs over the organization's full list before the status
        filter is applied, so ``status="overdue"`` also returns records that
        only became overdue on this read.
        """
        _check_status_filter(status)
        records = self.list_by_organization(organization_id)
        if not records:
            return []
        as_of = self.today()
        results = []
        for record in records:
            record = apply_derived_status(self, record, as_of=as_of)
            if status is not None and record["status"] != status:
                continue
            results.append(self._with_relations(organization_id, record))
        return results

    def history(self, organization_id: int | None, pica_id: int) -> list[dict]:
        self.get_by_id(organization_id, pica_id)
        return self.ledger.list_for_record(organization_id, pica_id)

    def _with_relations(self, organization_id: int, record: dict) -> dict:
        record = dict(record)
        record["project_site"] = self.store.get_project_site(organization_id, record["project_site_id"])
        record["person_in_charge"] = self.store.get_person(organization_id, record["person_in_charge_id"])
        return record

    # ── Writes ───────────────────────────────────────────────────────────

    def create(self, organization_id: int | None, data: dict) -> dict:
        """Create a record owned by *organization_id*.

        Any ``organization_id`` in *data* is ignored.

        Raises:
            ValidationError: Bad fields, unknown references or no organization.
            ConflictError: business_key already used in the organization.
        """
        if TenantScope(organization_id).is_empty:
            raise ValidationError(
                "An organization is required to create a PICA",
                details={"organization_id": "is required"},
            )
        cleaned = validate_pica_fields(data)
        self._check_references(organization_id, cleaned)
        self._check_business_key(organization_id, cleaned["business_key"])

        now = utcnow()
        cleaned.setdefault("status", DEFAULT_STATUS)
        cleaned.update(organization_id=organization_id, created_at=now, updated_at=now)

        record = self.store.insert_pica(cleaned)
        self.store.commit()
        logger.info(
            "PICA created id=%s key=%s", record["id"], record["business_key"],
            extra={"organization_id": organization_id},
        )
        return record

    def update(
        self,
        organization_id: int | None,
        pica_id: int,
        data: dict,
        *,
        comment: str | None = None,
        update_date=None,
        actor_id: int | None = None,
        expected_status: str | None = None,
    ) -> dict:
        """Apply a partial update and record a status change in the ledger.

        Args:
            organization_id: Scope of the caller.
            pica_id: Record to update.
            data: Partial field set.
            comment: History comment; defaulted when the status changes.
            update_date: Override for ``updated_at`` and the history timestamp.
            actor_id: Recorded on the history entry; None for system changes.
            expected_status: Abort unless the persisted status equals this.

        Raises:
            NotFoundError: Missing or owned by another organization.
            ValidationError: Bad fields, references, transition or update_date.
            ConflictError: Duplicate business_key.
            StaleStatusError: The status changed since it was read.
        """
        current = self.get_by_id(organization_id, pica_id)
        old_status = current["status"]
        if expected_status is not None and old_status != expected_status:
            raise StaleStatusError("Pica", pica_id, expected_status)

        cleaned = validate_pica_fields(data, partial=True)
        self._check_references(organization_id, cleaned)
        new_key = cleaned.get("business_key")
        if new_key is not None and new_key != current["business_key"]:
            self._check_business_key(organization_id, new_key)

        new_status = cleaned.get("status", old_status)
        validate_status_transition(old_status, new_status, allow_reopen=self.allow_reopen)

        stamp = self._resolve_update_date(update_date)
        cleaned["updated_at"] = stamp

        updated = self.store.update_pica(organization_id, pica_id, cleaned, expected_status=old_status)
        if updated is None:
            self.store.rollback()
            if self.store.get_pica(organization_id, pica_id) is None:
                raise NotFoundError(resource="Pica", resource_id=pica_id)
            raise StaleStatusError("Pica", pica_id, old_status)

        if new_status != old_status:
            self.ledger.append(pica_id, actor_id, old_status, new_status, comment, timestamp=stamp)

        self.store.commit()
        if new_status != old_status:
            logger.info(
                "PICA status changed id=%s %s -> %s actor=%s", pica_id, old_status, new_status, actor_id,
                extra={"organization_id": organization_id},
            )
        return updated

    def delete(self, organization_id: int | None, pica_id: int) -> bool:
        """Remove a record and its history.  False when nothing matched."""
        if TenantScope(organization_id).is_empty:
            return False
        deleted = self.store.delete_pica(organization_id, pica_id)
        if deleted:
            self.store.commit()
            logger.info("PICA deleted id=%s", pica_id, extra={"organization_id": organization_id})
        return deleted

    def rollback(self) -> None:
        self.store.rollback()

    # ── Helpers ──────────────────────────────────────────────────────────

    @staticmethod
    def _resolve_update_date(update_date):
        if update_date is None or update_date == "":
            return utcnow()
        stamp = parse_datetime(update_date)
        if stamp is None:
            raise ValidationError(
                "Invalid update_date",
                details={"update_date": "must be an ISO 8601 timestamp"},
            )
        return stamp.astimezone(timezone.utc)

    def _check_references(self, organization_id: int, cleaned: dict) -> None:
        errors = {}
        site_id = cleaned.get("project_site_id")
        if site_id is not None and self.store.get_project_site(organization_id, site_id) is None:
            errors["project_site_id"] = "unknown project site"
        person_id = cleaned.get("person_in_charge_id")
        if person_id is not None and self.store.get_person(organization_id, person_id) is None:
            errors["person_in_charge_id"] = "unknown person"
        if errors:
            raise ValidationError("Invalid PICA references", details=errors)

    def _check_business_key(self, organization_id: int, business_key: str) -> None:
        if self.store.find_pica_by_business_key(organization_id, business_key) is not None:
            raise ConflictError("Pica", "business_key", business_key)
