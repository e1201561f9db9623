"""
Fail-closed tenant scoping policy.

A ``TenantScope`` wraps the organization an operation runs inside.  When
the organization is unknown the scope is *empty*: it admits no record and
turns any statement it is applied to into one that matches nothing.  Every
read path asks the scope rather than branching on ``organization_id is None``
itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import false


@dataclass(frozen=True)
class TenantScope:
    organization_id: int | None = None

    @classmethod
    def for_actor(cls, actor) -> "TenantScope":
        return cls(getattr(actor, "organization_id", None))

    @property
    def is_empty(self) -> bool:
        return self.organization_id is None

    def admits(self, record: Any) -> bool:
        """True when *record* (dict or model) belongs to this scope's organization."""
        if self.is_empty or record is None:
            return False
        if isinstance(record, dict):
            owner = record.get("organization_id")
        else:
            owner = getattr(record, "organization_id", None)
        return owner == self.organization_id

    def apply(self, stmt, model):
        """Restrict a SQLAlchemy ``select`` to this scope."""
        if self.is_empty:
            return stmt.where(false())
        return stmt.where(model.organization_id == self.organization_id)
