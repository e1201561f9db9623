"""
JWT Auth Middleware — Parses JWT from Authorization header, sets g.actor.

A missing, expired or malformed token never blocks the request: the actor
is simply anonymous and the mutation gate decides what that allows.

    g.actor                  ActorContext (anonymous when no valid token)
    g.jwt_user_id            actor_id or None
    g.jwt_organization_id    organization_id or None
    g.jwt_role               role label ("public" when anonymous)
"""

import logging

import jwt as pyjwt
from flask import g, request

from pica_monitor.services.jwt_service import actor_from_claims, decode_access_token
from pica_monitor.services.mutation_gate import ActorContext

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
)


def current_actor() -> ActorContext:
    """Actor for the current request; anonymous outside the middleware."""
    return getattr(g, "actor", None) or ActorContext.anonymous()


def _set_actor(actor: ActorContext) -> None:
    g.actor = actor
    g.jwt_user_id = actor.actor_id
    g.jwt_organization_id = actor.organization_id
    g.jwt_role = actor.role.label


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        _set_actor(ActorContext.anonymous())

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]  # Strip "Bearer "

        try:
            payload = decode_access_token(token)
            _set_actor(actor_from_claims(payload))
        except pyjwt.ExpiredSignatureError:
            logger.debug("Expired access token on %s", path)
        except pyjwt.InvalidTokenError:
            logger.debug("Invalid access token on %s", path)
