"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.  The Limiter
instance is created in pica_monitor/__init__.py with no default limits;
this module applies limits per route category, keyed by organization when
the caller is authenticated and by remote IP otherwise.

Usage:
    from pica_monitor.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)

READ_LIMIT = "200/minute"
WRITE_LIMIT = "60/minute"
WRITE_METHODS = ["POST", "PUT", "DELETE"]


def organization_rate_limit_key():
    """Dynamic rate limit key: organization if known, else remote IP."""
    organization_id = getattr(g, "jwt_organization_id", None)
    if organization_id:
        return f"org:{organization_id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per organization, falling back to remote IP):
        - Write requests:  60/minute  (POST/PUT/DELETE)
        - Read requests:   200/minute
        - Health check:    exempt

    Rate limiting is disabled when RATELIMIT_ENABLED is false (testing).
    """
    if not app.config.get("RATELIMIT_ENABLED", True):
        app.logger.info("Rate limiter disabled (RATELIMIT_ENABLED=False)")
        return

    for bp_name in ("pica", "user"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT, key_func=organization_rate_limit_key, methods=WRITE_METHODS)(bp)
            limiter.limit(READ_LIMIT, key_func=organization_rate_limit_key, methods=["GET"])(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured — write: %s, read: %s", WRITE_LIMIT, READ_LIMIT)
