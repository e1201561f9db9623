"""
Status Derivation — lazy ``progress → overdue`` promotion.

There is no scheduler.  Every relations-read runs each record through
``apply_derived_status``, which asks the pure ``derive_status`` what the
status *should* be and, only when that differs, writes it back through the
repository's guarded update path with ``expected_status="progress"``.

    - derive_status(record, as_of)            pure, no I/O
    - apply_derived_status(repository, ...)   effect, best-effort

Rules:
    - only ``progress`` records are ever promoted; there is no demotion
    - ``due_date < as_of`` (both date-only) means overdue; equal is not
    - a lost compare-then-write is a no-op, never a second history entry
    - a failed write-back is logged and the derived status is still returned
"""

import logging
from datetime import date

from pica_monitor.core.exceptions import NotFoundError, StaleStatusError
from pica_monitor.utils.helpers import parse_date

logger = logging.getLogger(__name__)

OVERDUE = "overdue"
PROGRESS = "progress"


def server_today() -> date:
    """Today's date on the server clock."""
    return date.today()


def derive_status(record, as_of: date) -> str:
    """Return the status *record* should carry on *as_of*."""
    if isinstance(record, dict):
        status, due = record.get("status"), record.get("due_date")
    else:
        status, due = record.status, record.due_date

    if status != PROGRESS:
        return status

    due_date = parse_date(due)
    if due_date is None:
        return status
    return OVERDUE if due_date < as_of else status


def apply_derived_status(repository, record: dict, *, as_of: date) -> dict:
    """Persist the derived status of *record* if it changed.

    Args:
        repository: PicaRepository whose ``update`` path records the flip.
        record: The record as just read (dict).
        as_of: The date the derivation is evaluated against.

    Returns:
        The record to hand back to the caller.  On a lost race this is the
        freshly re-read row; on a write failure it is *record* carrying the
        derived status.
    """
    derived = derive_status(record, as_of)
    if derived == record.get("status"):
        return record

    organization_id = record["organization_id"]
    try:
        return repository.update(
            organization_id,
            record["id"],
            {"status": derived},
            actor_id=None,
            expected_status=PROGRESS,
        )
    except StaleStatusError:
        logger.info(
            "Derived flip abandoned, status already changed pica=%s", record["id"],
            extra={"organization_id": organization_id},
        )
        try:
            return repository.get_by_id(organization_id, record["id"])
        except NotFoundError:
            return {**record, "status": derived}
    except Exception:
        logger.exception(
            "Derived status write-back failed pica=%s %s -> %s",
            record["id"], record.get("status"), derived,
            extra={"organization_id": organization_id, "event_type": "derived_status_write_failure"},
        )
        repository.rollback()
        return {**record, "status": derived}
