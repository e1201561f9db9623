"""
PICA status transition rules.

The lifecycle is deliberately open: any status may be written over any
other.  The table below makes that explicit so a change in policy is a
one-line edit and so reopening a completed record is at least visible.

    progress → complete | overdue
    overdue  → progress | complete
    complete → progress | overdue      (reopen, WARNING-logged)

With ``allow_reopen=False`` (config ``PICA_ALLOW_REOPEN``) the reopen
edges are rejected.
"""

import logging

from pica_monitor.core.exceptions import ValidationError
from pica_monitor.models.pica import PICA_STATUSES

logger = logging.getLogger(__name__)

PICA_TRANSITIONS = {
    "progress": {"complete", "overdue"},
    "overdue": {"progress", "complete"},
    "complete": {"progress", "overdue"},
}

REOPEN_FROM = {"complete"}


def is_reopen(old_status: str, new_status: str) -> bool:
    return old_status in REOPEN_FROM and new_status != old_status


def validate_status_transition(old_status: str, new_status: str, *, allow_reopen: bool = True) -> None:
    """Raise ValidationError if ``old_status → new_status`` is not permitted.

    A no-op write (same status) is always allowed.
    """
    if new_status not in PICA_STATUSES:
        raise ValidationError(
            "Invalid status",
            details={"status": f"must be one of: {', '.join(PICA_STATUSES)}"},
        )
    if old_status == new_status:
        return
    if old_status not in PICA_TRANSITIONS or new_status not in PICA_TRANSITIONS[old_status]:
        raise ValidationError(
            f"Cannot change status from '{old_status}' to '{new_status}'",
            details={"status": f"transition {old_status} -> {new_status} is not allowed"},
        )

    if is_reopen(old_status, new_status):
        if not allow_reopen:
            raise ValidationError(
                f"Reopening a '{old_status}' record is disabled",
                details={"status": f"transition {old_status} -> {new_status} is not allowed"},
            )
        logger.warning("PICA reopened: %s -> %s", old_status, new_status)


def available_transitions(status: str, *, allow_reopen: bool = True) -> list[str]:
    targets = PICA_TRANSITIONS.get(status, set())
    if not allow_reopen and status in REOPEN_FROM:
        return []
    return sorted(targets)
