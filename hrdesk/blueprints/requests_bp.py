"""
Service Request Blueprint.

Endpoints:
    POST   /api/v1/requests                                   submit
    GET    /api/v1/requests                                   list (visible to actor)
    GET    /api/v1/requests/summary                           counts per type/status
    GET    /api/v1/requests/<id>                              detail
    POST   /api/v1/requests/<id>/open                         open for review (auto-transition)
    POST   /api/v1/requests/<id>/transition                   { action, note?, flagged_slots?, expected_version? }
    GET    /api/v1/requests/<id>/transitions                  actions available to the actor
    PUT    /api/v1/requests/<id>/documents/<slot_id>/verification
    PUT    /api/v1/requests/<id>/documents/<slot_id>          owner replaces a document url
    GET    /api/v1/requests/<id>/history                      newest first
    GET    /api/v1/requests/<id>/letter-context               approved_final only

Layer contract:
    - Blueprint: parse input, resolve the actor, call the service, return JSON.
    - NO db.session writes here; all writes owned by the lifecycle services.
    - Engine exceptions are rendered by register_workflow_error_handlers.
"""

import logging

from flask import Blueprint, jsonify, request

from hrdesk.blueprints import expected_version_from, paginate_query, run_write
from hrdesk.core.actor import Role
from hrdesk.core.exceptions import Unauthorized
from hrdesk.middleware.jwt_auth import require_actor
from hrdesk.models.history import ITEM_TYPE_SERVICE_REQUEST
from hrdesk.services import document_verification, history_service, request_lifecycle
from hrdesk.utils.errors import E, api_error, register_workflow_error_handlers
from hrdesk.utils.helpers import json_body

logger = logging.getLogger(__name__)

requests_bp = Blueprint("requests", __name__, url_prefix="/api/v1/requests")
register_workflow_error_handlers(requests_bp)


def _request_payload(req, actor):
    data = req.to_dict(viewer_is_owner=actor.id == req.submitted_by)
    data["verification"] = document_verification.verification_summary(req)
    return data


# ── Submission & listing ──────────────────────────────────────────────────


@requests_bp.route("", methods=["POST"])
def submit_request():
    """Submit a new request.

    Body: { request_type, title, category?, description?, details?,
            documents?, work_unit_id?, target_work_unit_id?, leave? }
    """
    actor = require_actor()
    data = json_body()
    if not data.get("request_type"):
        return api_error(E.VALIDATION_REQUIRED, "request_type is required")

    req = request_lifecycle.submit_request(
        actor,
        data.get("request_type"),
        data.get("title"),
        documents=data.get("documents"),
        category=data.get("category"),
        description=data.get("description"),
        details=data.get("details"),
        work_unit_id=data.get("work_unit_id"),
        target_work_unit_id=data.get("target_work_unit_id"),
        leave=data.get("leave"),
    )
    return jsonify(_request_payload(req, actor)), 201


@requests_bp.route("", methods=["GET"])
def list_requests():
    """Query params: status (comma separated), request_type, limit, offset."""
    actor = require_actor()
    query = request_lifecycle.list_requests_for_actor(
        actor,
        status=request.args.get("status"),
        request_type=request.args.get("request_type"),
    )
    items, total = paginate_query(query)
    return jsonify({
        "items": [r.to_dict(viewer_is_owner=actor.id == r.submitted_by, include_documents=False)
                  for r in items],
        "total": total,
    })


@requests_bp.route("/summary", methods=["GET"])
def request_summary():
    actor = require_actor()
    if not actor.is_reviewer:
        raise Unauthorized(actor.id, actor.role.value, "view the request summary")
    return jsonify(request_lifecycle.status_summary())


# ── Detail & transitions ──────────────────────────────────────────────────


@requests_bp.route("/<request_id>", methods=["GET"])
def get_request(request_id):
    actor = require_actor()
    req = request_lifecycle.get_request(request_id, actor)
    data = _request_payload(req, actor)
    data["available_actions"] = request_lifecycle.get_available_request_actions(req, actor)
    return jsonify(data)


@requests_bp.route("/<request_id>/open", methods=["POST"])
def open_request(request_id):
    """Reviewer opens a request; first access moves it into review."""
    actor = require_actor()
    result = request_lifecycle.open_request(request_id, actor)
    return jsonify({
        "request": _request_payload(result["request"], actor),
        "transition": result["transition"],
    })


@requests_bp.route("/<request_id>/transition", methods=["POST"])
def transition_request(request_id):
    """Body: { action, note?, flagged_slots?: [{slot_id, note?}], expected_version? }"""
    actor = require_actor()
    data = json_body()
    action = (data.get("action") or "").strip()
    if not action:
        return api_error(E.VALIDATION_REQUIRED, "action is required")
    expected_version = expected_version_from(data)

    result = run_write(
        lambda: request_lifecycle.transition_request(
            request_id,
            action,
            actor,
            note=data.get("note"),
            flagged_slots=data.get("flagged_slots"),
            expected_version=expected_version,
        ),
        expected_version,
    )
    return jsonify(result)


@requests_bp.route("/<request_id>/transitions", methods=["GET"])
def available_transitions(request_id):
    actor = require_actor()
    req = request_lifecycle.get_request(request_id, actor)
    return jsonify({
        "request_id": req.id,
        "status": req.status,
        "version": req.version,
        "available_actions": request_lifecycle.get_available_request_actions(req, actor),
    })


# ── Documents ─────────────────────────────────────────────────────────────


@requests_bp.route("/<request_id>/documents/<slot_id>/verification", methods=["PUT"])
def verify_document(request_id, slot_id):
    """Body: { status, note?, preserve_note?, expected_version? }"""
    actor = require_actor()
    # Unit/central scoping is enforced by the service; hide other units' requests first
    request_lifecycle.get_request(request_id, actor)
    data = json_body()
    if not data.get("status"):
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    expected_version = expected_version_from(data)

    slot = run_write(
        lambda: document_verification.set_verification_status(
            request_id,
            slot_id,
            actor,
            data.get("status"),
            data.get("note"),
            preserve_note=bool(data.get("preserve_note")),
            expected_version=expected_version,
        ),
        expected_version,
    )
    return jsonify(slot)


@requests_bp.route("/<request_id>/documents/<slot_id>", methods=["PUT"])
def replace_document(request_id, slot_id):
    """Body: { url, expected_version? }"""
    actor = require_actor()
    request_lifecycle.get_request(request_id, actor)
    data = json_body()
    expected_version = expected_version_from(data)

    slot = run_write(
        lambda: document_verification.replace_document(
            request_id, slot_id, actor, data.get("url"), expected_version=expected_version,
        ),
        expected_version,
    )
    return jsonify(slot)


# ── Read-only views ───────────────────────────────────────────────────────


@requests_bp.route("/<request_id>/history", methods=["GET"])
def request_history(request_id):
    actor = require_actor()
    req = request_lifecycle.get_request(request_id, actor)
    entries = history_service.list_history(ITEM_TYPE_SERVICE_REQUEST, req.id)
    return jsonify({"items": [e.to_dict() for e in entries], "total": len(entries)})


@requests_bp.route("/<request_id>/letter-context", methods=["GET"])
def letter_context(request_id):
    actor = require_actor()
    if actor.role == Role.SUBMITTER:
        # Letter generation is a reviewer-side operation
        raise Unauthorized(actor.id, actor.role.value, "read letter context")
    return jsonify(request_lifecycle.letter_context(request_id, actor))
