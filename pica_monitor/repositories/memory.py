"""
In-process PicaStore used by tests and by ``PICA_STORE_BACKEND=memory``.

Rows are kept as plain dicts and copied on the way in and out so callers
can never mutate stored state.  All access is serialised by one re-entrant
lock, which makes the status-guarded update a true compare-and-set.
Writes are immediately visible; ``commit``/``rollback`` are no-ops.
"""

from __future__ import annotations

import copy
import itertools
import threading
from datetime import date, datetime
from typing import Any

from pica_monitor.core.exceptions import ConflictError
from pica_monitor.models.base import utcnow
from pica_monitor.models.pica import DEFAULT_STATUS
from pica_monitor.repositories.base import PicaStore


def _serialize(fields: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, (date, datetime)):
            out[key] = value.isoformat()
        else:
            out[key] = value
    return out


class InMemoryPicaStore(PicaStore):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self._picas: dict[int, dict[str, Any]] = {}
        self._history: dict[int, dict[str, Any]] = {}
        self._users: dict[int, dict[str, Any]] = {}
        self._sites: dict[int, dict[str, Any]] = {}
        self._people: dict[int, dict[str, Any]] = {}

    # ── Seeding helpers (reference data is owned elsewhere) ──────────────

    def _seed(self, table: dict[int, dict[str, Any]], fields: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            row = _serialize(fields)
            row.setdefault("id", next(self._ids))
            table[row["id"]] = row
            return copy.deepcopy(row)

    def add_user(self, **fields: Any) -> dict[str, Any]:
        fields.setdefault("role", "user")
        return self._seed(self._users, fields)

    def add_project_site(self, **fields: Any) -> dict[str, Any]:
        return self._seed(self._sites, fields)

    def add_person(self, **fields: Any) -> dict[str, Any]:
        return self._seed(self._people, fields)

    # ── Records ──────────────────────────────────────────────────────────

    @staticmethod
    def _scoped(table: dict[int, dict[str, Any]], organization_id, row_id) -> dict[str, Any] | None:
        if organization_id is None:
            return None
        row = table.get(row_id)
        if row is None or row.get("organization_id") != organization_id:
            return None
        return row

    def get_pica(self, organization_id: int, pica_id: int) -> dict[str, Any] | None:
        with self._lock:
            row = self._scoped(self._picas, organization_id, pica_id)
            return copy.deepcopy(row) if row is not None else None

    def find_pica_by_business_key(self, organization_id: int, business_key: str) -> dict[str, Any] | None:
        with self._lock:
            for row in self._picas.values():
                if row["organization_id"] == organization_id and row["business_key"] == business_key:
                    return copy.deepcopy(row)
        return None

    def list_picas(self, organization_id: int, status: str | None = None) -> list[dict[str, Any]]:
        if organization_id is None:
            return []
        with self._lock:
            rows = [
                copy.deepcopy(r) for r in self._picas.values()
                if r["organization_id"] == organization_id and (status is None or r["status"] == status)
            ]
        rows.sort(key=lambda r: (r["created_at"], r["id"]), reverse=True)
        return rows

    def insert_pica(self, fields: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            org_id = fields.get("organization_id")
            key = fields.get("business_key")
            if self.find_pica_by_business_key(org_id, key) is not None:
                raise ConflictError("Pica", "business_key", key)
            now = utcnow()
            row = _serialize({
                "status": DEFAULT_STATUS,
                "created_at": now,
                "updated_at": now,
                **fields,
            })
            row["id"] = next(self._ids)
            self._picas[row["id"]] = row
            return copy.deepcopy(row)

    def update_pica(
        self,
        organization_id: int,
        pica_id: int,
        fields: dict[str, Any],
        *,
        expected_status: str | None = None,
    ) -> dict[str, Any] | None:
        with self._lock:
            row = self._scoped(self._picas, organization_id, pica_id)
            if row is None:
                return None
            if expected_status is not None and row["status"] != expected_status:
                return None
            new_key = fields.get("business_key")
            if new_key is not None and new_key != row["business_key"]:
                clash = self.find_pica_by_business_key(organization_id, new_key)
                if clash is not None and clash["id"] != pica_id:
                    raise ConflictError("Pica", "business_key", new_key)
            row.update(_serialize(fields))
            return copy.deepcopy(row)

    def delete_pica(self, organization_id: int, pica_id: int) -> bool:
        with self._lock:
            if self._scoped(self._picas, organization_id, pica_id) is None:
                return False
            del self._picas[pica_id]
            for hid in [h for h, e in self._history.items() if e["pica_id"] == pica_id]:
                del self._history[hid]
            return True

    def count_picas_by_status(self, organization_id: int) -> dict[str, int]:
        counts: dict[str, int] = {}
        for row in self.list_picas(organization_id):
            counts[row["status"]] = counts.get(row["status"], 0) + 1
        return counts

    # ── History ──────────────────────────────────────────────────────────

    def insert_history(self, entry: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            row = _serialize({"timestamp": utcnow(), **entry})
            row["id"] = next(self._ids)
            self._history[row["id"]] = row
            return copy.deepcopy(row)

    def list_history(self, pica_id: int) -> list[dict[str, Any]]:
        with self._lock:
            rows = [copy.deepcopy(e) for e in self._history.values() if e["pica_id"] == pica_id]
        rows.sort(key=lambda e: (e["timestamp"], e["id"]), reverse=True)
        return rows

    # ── Reference data ───────────────────────────────────────────────────

    def get_project_site(self, organization_id: int, site_id: int) -> dict[str, Any] | None:
        with self._lock:
            row = self._scoped(self._sites, organization_id, site_id)
            return copy.deepcopy(row) if row is not None else None

    def get_person(self, organization_id: int, person_id: int) -> dict[str, Any] | None:
        with self._lock:
            row = self._scoped(self._people, organization_id, person_id)
            return copy.deepcopy(row) if row is not None else None

    def get_user(self, organization_id: int, user_id: int) -> dict[str, Any] | None:
        with self._lock:
            row = self._scoped(self._users, organization_id, user_id)
            return copy.deepcopy(row) if row is not None else None

    def delete_user(self, organization_id: int, user_id: int) -> bool:
        with self._lock:
            if self._scoped(self._users, organization_id, user_id) is None:
                return False
            del self._users[user_id]
            return True
