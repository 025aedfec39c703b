"""
JWT Service — access token generation and verification.

Access token:  15 minutes (configurable via JWT_ACCESS_TOKEN_EXPIRES)
Algorithm:     HS256

Token payload (access):
{
    "sub": <actor_id>,
    "role": "unit_reviewer",
    "unit_id": <work_unit_id or absent>,
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>
}

Tokens are issued by the identity provider in front of this service; the
issuing helper exists for tooling and tests.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

from hrdesk.core.actor import Actor

DEFAULT_ACCESS_EXPIRES = 900       # 15 minutes
ALGORITHM = "HS256"


def _get_secret():
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _get_access_expires():
    return current_app.config.get("JWT_ACCESS_TOKEN_EXPIRES", DEFAULT_ACCESS_EXPIRES)


def generate_access_token(actor: Actor) -> str:
    """Generate a short-lived access token carrying the actor triple."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": actor.id,
        "role": actor.role.value,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(seconds=_get_access_expires()),
        "jti": str(uuid.uuid4()),
    }
    if actor.unit_id is not None:
        payload["unit_id"] = actor.unit_id
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Decode and verify an access token.

    Raises jwt.exceptions on failure (ExpiredSignatureError, InvalidTokenError, etc.)
    """
    payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])
    if payload.get("type") != "access":
        raise jwt.InvalidTokenError(f"Expected access token, got {payload.get('type')}")
    return payload


def actor_from_token(token: str) -> Actor:
    """Decode ``token`` and build the Actor it names."""
    payload = decode_access_token(token)
    return Actor.build(payload.get("sub"), payload.get("role"), payload.get("unit_id"))
