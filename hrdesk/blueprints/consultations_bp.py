"""
Consultation Blueprint.

Endpoints:
    POST   /api/v1/consultations                       submit
    GET    /api/v1/consultations                       list (visible to actor)
    GET    /api/v1/consultations/<id>                  detail + routing
    GET    /api/v1/consultations/<id>/messages         thread, append order
    POST   /api/v1/consultations/<id>/messages         { content, message_type?, expected_version? }
    POST   /api/v1/consultations/<id>/start-review
    POST   /api/v1/consultations/<id>/escalate         { note? }
    POST   /api/v1/consultations/<id>/resolve          { note? }
    POST   /api/v1/consultations/<id>/close            { note? }
    GET    /api/v1/consultations/<id>/history          newest first
    GET    /api/v1/consultations/<id>/events           text/event-stream
"""

import logging

from flask import Blueprint, jsonify, request

from hrdesk.blueprints import (
    event_stream_response,
    expected_version_from,
    paginate_query,
    run_write,
)
from hrdesk.middleware.jwt_auth import require_actor
from hrdesk.models.history import ITEM_TYPE_CONSULTATION
from hrdesk.services import consultation_lifecycle, escalation_router, history_service
from hrdesk.utils.errors import E, api_error, register_workflow_error_handlers
from hrdesk.utils.helpers import json_body

logger = logging.getLogger(__name__)

consultations_bp = Blueprint("consultations", __name__, url_prefix="/api/v1/consultations")
register_workflow_error_handlers(consultations_bp)

_STATUS_ACTIONS = {
    "escalate": consultation_lifecycle.escalate,
    "resolve": consultation_lifecycle.resolve,
    "close": consultation_lifecycle.close,
}


def _parse_bool(value):
    if value is None:
        return None
    return value.lower() in ("1", "true", "yes")


@consultations_bp.route("", methods=["POST"])
def submit_consultation():
    """Body: { subject, description, category?, priority?, work_unit_id? }"""
    actor = require_actor()
    data = json_body()
    c = consultation_lifecycle.submit_consultation(
        actor,
        data.get("subject"),
        data.get("description"),
        category=data.get("category"),
        priority=data.get("priority"),
        work_unit_id=data.get("work_unit_id"),
    )
    return jsonify(c.to_dict()), 201


@consultations_bp.route("", methods=["GET"])
def list_consultations():
    """Query params: status (comma separated), escalated, limit, offset."""
    actor = require_actor()
    query = consultation_lifecycle.list_consultations_for_actor(
        actor,
        status=request.args.get("status"),
        escalated=_parse_bool(request.args.get("escalated")),
    )
    items, total = paginate_query(query)
    return jsonify({"items": [c.to_dict() for c in items], "total": total})


@consultations_bp.route("/<consultation_id>", methods=["GET"])
def get_consultation(consultation_id):
    actor = require_actor()
    c = consultation_lifecycle.get_consultation(consultation_id, actor)
    data = c.to_dict()
    data["routing"] = escalation_router.route(c)
    data["can_write"] = escalation_router.can_write(c, actor)
    return jsonify(data)


# ── Messages ──────────────────────────────────────────────────────────────


@consultations_bp.route("/<consultation_id>/messages", methods=["GET"])
def list_messages(consultation_id):
    actor = require_actor()
    messages = consultation_lifecycle.list_messages(consultation_id, actor)
    return jsonify({"items": [m.to_dict() for m in messages], "total": len(messages)})


@consultations_bp.route("/<consultation_id>/messages", methods=["POST"])
def post_message(consultation_id):
    actor = require_actor()
    data = json_body()
    expected_version = expected_version_from(data)
    result = run_write(
        lambda: consultation_lifecycle.append_message(
            consultation_id,
            actor,
            data.get("content"),
            message_type=data.get("message_type"),
            expected_version=expected_version,
        ),
        expected_version,
    )
    return jsonify(result), 201


# ── Status actions ────────────────────────────────────────────────────────


@consultations_bp.route("/<consultation_id>/start-review", methods=["POST"])
def start_review(consultation_id):
    actor = require_actor()
    expected_version = expected_version_from(json_body())
    result = run_write(
        lambda: consultation_lifecycle.start_review(
            consultation_id, actor, expected_version=expected_version,
        ),
        expected_version,
    )
    return jsonify(result)


@consultations_bp.route("/<consultation_id>/<action>", methods=["POST"])
def status_action(consultation_id, action):
    """escalate / resolve / close. Body: { note?, expected_version? }"""
    fn = _STATUS_ACTIONS.get(action)
    if fn is None:
        return api_error(E.NOT_FOUND, f"Unknown consultation action '{action}'")
    actor = require_actor()
    data = json_body()
    expected_version = expected_version_from(data)
    result = run_write(
        lambda: fn(consultation_id, actor, note=data.get("note"), expected_version=expected_version),
        expected_version,
    )
    return jsonify(result)


# ── Read-only views ───────────────────────────────────────────────────────


@consultations_bp.route("/<consultation_id>/history", methods=["GET"])
def consultation_history(consultation_id):
    actor = require_actor()
    c = consultation_lifecycle.get_consultation(consultation_id, actor)
    entries = history_service.list_history(ITEM_TYPE_CONSULTATION, c.id)
    return jsonify({"items": [e.to_dict() for e in entries], "total": len(entries)})


@consultations_bp.route("/<consultation_id>/events", methods=["GET"])
def consultation_events(consultation_id):
    """Server-sent events: message_created / status_changed. See event_stream_response."""
    actor = require_actor()
    c = consultation_lifecycle.get_consultation(consultation_id, actor)
    logger.debug("Change feed stream opened", extra={"item_type": ITEM_TYPE_CONSULTATION,
                                                     "item_id": c.id, "actor_id": actor.id})
    return event_stream_response(ITEM_TYPE_CONSULTATION, c.id)
