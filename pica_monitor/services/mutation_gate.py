"""
Role-Based Mutation Gate.

Roles form an ordered capability set ``public < user < admin``; an action
is allowed when the actor's role is at least the action's minimum role.

    read    public   (an actor without an organization reads nothing)
    create  user
    update  user
    delete  admin

Writes additionally require an organization.  ``admin`` is tenant-scoped:
it never grants access outside the admin's own organization.

Usage:
    from pica_monitor.services.mutation_gate import ActorContext, authorize

    authorize(actor, "delete")          # raises on denial
    if is_allowed(actor, "update"):
        ...
"""

import logging
from dataclasses import dataclass
from enum import IntEnum

from pica_monitor.core.exceptions import AuthenticationRequired, PermissionDenied, SelfDeletionError

logger = logging.getLogger(__name__)


class Role(IntEnum):
    PUBLIC = 0
    USER = 1
    ADMIN = 2

    @classmethod
    def parse(cls, value) -> "Role":
        """Map a role claim to a Role; anything unrecognised is PUBLIC."""
        if isinstance(value, Role):
            return value
        if isinstance(value, str):
            return cls.__members__.get(value.strip().upper(), cls.PUBLIC)
        return cls.PUBLIC

    @property
    def label(self) -> str:
        return self.name.lower()


ACTION_MIN_ROLE = {
    "read": Role.PUBLIC,
    "create": Role.USER,
    "update": Role.USER,
    "delete": Role.ADMIN,
    "delete_user": Role.ADMIN,
}

WRITE_ACTIONS = frozenset({"create", "update", "delete", "delete_user"})


@dataclass(frozen=True)
class ActorContext:
    """Result of authentication: who is acting, for which organization, with which role."""

    organization_id: int | None = None
    role: Role = Role.PUBLIC
    actor_id: int | None = None

    @classmethod
    def anonymous(cls) -> "ActorContext":
        return cls()

    @property
    def is_authenticated(self) -> bool:
        return self.actor_id is not None


def authorize(actor: ActorContext, action: str) -> None:
    """Raise unless *actor* may perform *action*.

    Raises:
        ValueError: Unknown action.
        AuthenticationRequired: Anonymous actor attempting a write.
        PermissionDenied: Role too low, or write without an organization.
    """
    if action not in ACTION_MIN_ROLE:
        raise ValueError(f"Unknown action: {action}")

    if action in WRITE_ACTIONS:
        if not actor.is_authenticated:
            logger.info("Rejected anonymous '%s'", action)
            raise AuthenticationRequired(action)
        if actor.organization_id is None:
            logger.info("Rejected '%s' by actor=%s without organization", action, actor.actor_id)
            raise PermissionDenied(actor.actor_id, action, reason="actor has no organization")

    required = ACTION_MIN_ROLE[action]
    if actor.role < required:
        logger.info(
            "Rejected '%s' by actor=%s role=%s (requires %s)",
            action, actor.actor_id, actor.role.label, required.label,
            extra={"organization_id": actor.organization_id},
        )
        raise PermissionDenied(actor.actor_id, action, reason=f"requires role '{required.label}'")


def is_allowed(actor: ActorContext, action: str) -> bool:
    try:
        authorize(actor, action)
    except (AuthenticationRequired, PermissionDenied):
        return False
    return True


def authorize_user_delete(actor: ActorContext, user_id: int) -> None:
    """Gate for deleting a user record: admin only, never oneself.

    Raises:
        AuthenticationRequired, PermissionDenied: As for ``authorize``.
        SelfDeletionError: *user_id* is the acting user.
    """
    authorize(actor, "delete_user")
    if actor.actor_id == user_id:
        logger.info("Rejected self-deletion by actor=%s", actor.actor_id)
        raise SelfDeletionError(user_id)
