"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in hrdesk/__init__.py with no default limits;
this module applies granular limits per route category.

Usage:
    from hrdesk.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)

READ_RATE_LIMIT = "200/minute"


def actor_rate_limit_key():
    """Rate limit key: actor id if resolved, else remote IP."""
    actor = getattr(g, "actor", None)
    if actor is not None:
        return f"actor:{actor.id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per actor, falling back to remote IP):
        - Workflow endpoints:  WRITE_RATE_LIMIT (default 60/minute)
        - Catalog endpoints:   200/minute (read only)
        - Health check:        exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    write_limit = app.config.get("WRITE_RATE_LIMIT", "60/minute")
    for bp_name in ("requests", "consultations"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(write_limit, key_func=actor_rate_limit_key)(bp)

    bp = app.blueprints.get("catalog")
    if bp:
        limiter.limit(READ_RATE_LIMIT, key_func=actor_rate_limit_key)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured: workflow=%s, catalog=%s", write_limit, READ_RATE_LIMIT)
