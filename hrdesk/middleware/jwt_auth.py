"""
Actor Middleware — resolves the calling actor into ``g.actor``.

Priority order:
  1. JWT (Authorization: Bearer <token>)  →  sub / role / unit_id claims
  2. X-Actor-Id / X-Actor-Role / X-Actor-Unit headers, only when
     ACTOR_HEADERS_ENABLED is set (development and tests)

Resolution never blocks on its own: a missing or bad credential leaves
``g.actor`` as None and the blueprint's ``require_actor()`` answers 401.
"""

import logging

import jwt as pyjwt
from flask import current_app, g, request

from hrdesk.core.actor import Actor
from hrdesk.core.exceptions import ValidationError
from hrdesk.services.jwt_service import actor_from_token

logger = logging.getLogger(__name__)

# Paths that skip actor resolution entirely
ACTOR_SKIP_PREFIXES = (
    "/api/v1/health",
    "/static/",
)


class AuthenticationRequired(Exception):
    """No usable actor credential on a request that needs one."""

    def __init__(self, reason: str = "Authentication required") -> None:
        self.reason = reason
        super().__init__(reason)


def _resolve_actor():
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:]
        try:
            return actor_from_token(token), None
        except pyjwt.ExpiredSignatureError:
            return None, "Token expired"
        except (pyjwt.InvalidTokenError, ValidationError) as exc:
            logger.info("Rejected bearer token: %s", exc, extra={"path": request.path})
            return None, "Invalid token"

    if current_app.config.get("ACTOR_HEADERS_ENABLED"):
        actor_id = request.headers.get("X-Actor-Id")
        if actor_id:
            try:
                return Actor.build(
                    actor_id,
                    request.headers.get("X-Actor-Role"),
                    request.headers.get("X-Actor-Unit"),
                ), None
            except ValidationError as exc:
                return None, str(exc)
    return None, None


def init_actor_middleware(app):
    """Register actor resolution as a before_request hook."""

    @app.before_request
    def _actor_auth():
        g.actor = None
        g.actor_error = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in ACTOR_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        g.actor, g.actor_error = _resolve_actor()


def require_actor() -> Actor:
    """Return ``g.actor`` or raise AuthenticationRequired (mapped to 401)."""
    actor = getattr(g, "actor", None)
    if actor is None:
        raise AuthenticationRequired(getattr(g, "actor_error", None) or "Authentication required")
    return actor
