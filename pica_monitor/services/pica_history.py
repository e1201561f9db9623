"""
PICA history ledger — append-only log of status transitions.

History is advisory: the record row is authoritative.  ``append`` therefore
never raises; a failed write is logged at ERROR with
``event_type=ledger_write_failure`` and the caller's record update goes on
to commit.

Usage:
    ledger = HistoryLedger(store)
    ledger.append(pica_id, actor_id, "progress", "complete", comment="fixed")
    entries = ledger.list_for_record(organization_id, pica_id)
"""

import logging
from datetime import datetime

from pica_monitor.core.exceptions import LedgerWriteError
from pica_monitor.models.base import utcnow

logger = logging.getLogger(__name__)


def default_comment(old_status: str | None, new_status: str) -> str:
    return f"Status changed from {old_status} to {new_status}"


def _actor_summary(user: dict | None) -> dict | None:
    if user is None:
        return None
    return {
        "id": user["id"],
        "username": user.get("username"),
        "full_name": user.get("full_name"),
        "role": user.get("role"),
    }


class HistoryLedger:
    def __init__(self, store):
        self.store = store

    def append(
        self,
        pica_id: int,
        actor_id: int | None,
        old_status: str | None,
        new_status: str,
        comment: str | None = None,
        timestamp: datetime | None = None,
    ) -> dict | None:
        """Append one entry.  Returns the stored entry, or None if the write failed."""
        entry = {
            "pica_id": pica_id,
            "actor_id": actor_id,
            "old_status": old_status,
            "new_status": new_status,
            "comment": comment.strip() if comment and comment.strip() else default_comment(old_status, new_status),
            "timestamp": timestamp or utcnow(),
        }
        try:
            return self.store.insert_history(entry)
        except Exception as exc:  # history must never block the record update
            error = LedgerWriteError(pica_id, exc)
            logger.error(
                "%s", error,
                exc_info=True,
                extra={
                    "event_type": "ledger_write_failure",
                    "pica_id": pica_id,
                    "old_status": old_status,
                    "new_status": new_status,
                },
            )
            return None

    def list_for_record(self, organization_id: int, pica_id: int) -> list[dict]:
        """Entries for one record, newest first, each with its ``actor`` resolved."""
        entries = self.store.list_history(pica_id)
        cache: dict[int, dict | None] = {}
        for entry in entries:
            actor_id = entry.get("actor_id")
            if actor_id is None:
                entry["actor"] = None
                continue
            if actor_id not in cache:
                cache[actor_id] = _actor_summary(self.store.get_user(organization_id, actor_id))
            entry["actor"] = cache[actor_id]
        return entries
