"""
Organization-scoped query helpers.

Every get-by-id against an organization-owned table MUST go through these
helpers instead of ``Model.query.get(pk)`` or ``db.session.get(Model, pk)``.
Direct ``.get()`` calls bypass tenant isolation.

Usage:
    pica = get_scoped(Pica, pica_id, organization_id=organization_id)

    # When None is an acceptable outcome (optional FK lookups)
    site = get_scoped_or_none(ProjectSite, site_id, organization_id=organization_id)

A scope of ``None`` is treated as "no organization" and never matches a
row, so an actor without an organization sees nothing rather than
everything.
"""

import logging

from sqlalchemy import select

from pica_monitor.core.exceptions import NotFoundError
from pica_monitor.models import db

logger = logging.getLogger(__name__)


def get_scoped(model, pk: int, *, organization_id: int | None):
    """Fetch a single entity by PK inside one organization.

    Cross-tenant access is indistinguishable from a missing record: both
    raise NotFoundError (HTTP 404).

    Raises:
        ValueError: If *model* has no ``organization_id`` column.
        NotFoundError: If the entity does not exist OR belongs to another
                       organization.
    """
    if not hasattr(model, "organization_id"):
        raise ValueError(
            f"{model.__name__} id={pk}: model has no organization_id column. "
            "Refusing to perform an unscoped lookup."
        )

    if organization_id is None:
        logger.debug("get_scoped: %s id=%s requested without organization", model.__name__, pk)
        raise NotFoundError(resource=model.__name__, resource_id=pk)

    stmt = select(model).where(model.id == pk, model.organization_id == organization_id)
    result = db.session.execute(stmt).scalar_one_or_none()

    if result is None:
        logger.debug(
            "get_scoped: %s id=%s not found in organization %s",
            model.__name__,
            pk,
            organization_id,
        )
        raise NotFoundError(resource=model.__name__, resource_id=pk)

    return result


def get_scoped_or_none(model, pk: int, *, organization_id: int | None):
    """Same as get_scoped but returns None instead of raising NotFoundError."""
    try:
        return get_scoped(model, pk, organization_id=organization_id)
    except NotFoundError:
        return None
