"""
PICA service — actor-facing entry point for the lifecycle core.

Every method takes the ``ActorContext`` produced by authentication, passes
it through the mutation gate and then delegates to the tenant-scoped
repository using the actor's own organization.  Blueprints call this and
nothing below it.
"""

import logging

from pica_monitor.core.exceptions import NotFoundError
from pica_monitor.services.mutation_gate import ActorContext, authorize, authorize_user_delete
from pica_monitor.services.pica_repository import PicaRepository

logger = logging.getLogger(__name__)


class PicaService:
    def __init__(self, repository: PicaRepository):
        self.repository = repository

    # ── Reads ────────────────────────────────────────────────────────────

    def list_picas(self, actor: ActorContext, status: str | None = None) -> list[dict]:
        authorize(actor, "read")
        return self.repository.list_with_relations(actor.organization_id, status)

    def get_pica(self, actor: ActorContext, pica_id: int) -> dict:
        authorize(actor, "read")
        return self.repository.get_with_relations(actor.organization_id, pica_id)

    def get_pica_by_business_key(self, actor: ActorContext, business_key: str) -> dict:
        authorize(actor, "read")
        return self.repository.get_by_business_key_with_relations(actor.organization_id, business_key)

    def get_history(self, actor: ActorContext, pica_id: int) -> list[dict]:
        authorize(actor, "read")
        return self.repository.history(actor.organization_id, pica_id)

    def stats(self, actor: ActorContext) -> dict:
        """Simple status counts for the actor's organization."""
        authorize(actor, "read")
        return self.repository.count_by_status(actor.organization_id)

    # ── Writes ───────────────────────────────────────────────────────────

    def create_pica(self, actor: ActorContext, data: dict) -> dict:
        authorize(actor, "create")
        return self.repository.create(actor.organization_id, data)

    def update_pica(
        self,
        actor: ActorContext,
        pica_id: int,
        data: dict,
        comment: str | None = None,
        update_date=None,
    ) -> dict:
        authorize(actor, "update")
        return self.repository.update(
            actor.organization_id,
            pica_id,
            data,
            comment=comment,
            update_date=update_date,
            actor_id=actor.actor_id,
        )

    def delete_pica(self, actor: ActorContext, pica_id: int) -> bool:
        authorize(actor, "delete")
        return self.repository.delete(actor.organization_id, pica_id)

    def delete_user(self, actor: ActorContext, user_id: int) -> bool:
        """Delete a user of the actor's organization.

        Raises:
            SelfDeletionError: The actor targeted their own record.
            NotFoundError: No such user in the actor's organization.
        """
        authorize_user_delete(actor, user_id)
        store = self.repository.store
        if not store.delete_user(actor.organization_id, user_id):
            raise NotFoundError(resource="User", resource_id=user_id)
        store.commit()
        logger.info(
            "User deleted id=%s by actor=%s", user_id, actor.actor_id,
            extra={"organization_id": actor.organization_id},
        )
        return True
