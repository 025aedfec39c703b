"""
Service Request Lifecycle Service.

Manages request status transitions with:
  - Transition validation (REQUEST_TRANSITIONS)
  - Role and unit checks against the explicit Actor
  - Document gate on unit approval (document_verification.outstanding_slots)
  - Side effects (timestamps, flagged slots → needs_fix)
  - History ledger entry + change-feed event per transition
  - Optimistic concurrency (version_id_col + expected_version)

8 actions:
  open_unit_review, approve_unit, return_to_user, resubmit,
  open_central_review, approve_final, return_to_unit, reject

Usage:
    from hrdesk.services.request_lifecycle import transition_request

    result = transition_request(
        request_id="abc",
        action="approve_unit",
        actor=Actor(id="rev-1", role=Role.UNIT_REVIEWER, unit_id=8),
    )
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select

from hrdesk.core.actor import Actor, Role
from hrdesk.core.exceptions import (
    InvalidTransition,
    NotFoundError,
    PreconditionFailed,
    Unauthorized,
    ValidationError,
)
from hrdesk.models import db
from hrdesk.models.history import ITEM_TYPE_SERVICE_REQUEST, write_history
from hrdesk.models.organization import WorkUnit
from hrdesk.models.service_request import (
    REQUEST_TRANSITIONS,
    LeaveDetail,
    LeaveType,
    RequestStatus,
    RequestType,
    ServiceRequest,
    VerificationStatus,
)
from hrdesk.services import change_feed
from hrdesk.services.concurrency import check_expected_version, stale_guard
from hrdesk.services.document_catalog import build_checklist
from hrdesk.services.document_verification import (
    build_slots,
    normalize_documents,
    outstanding_slots,
)
from hrdesk.utils.helpers import require_date

logger = logging.getLogger(__name__)

_FLAGGING_ACTIONS = {"return_to_user", "return_to_unit"}


# ── Visibility ────────────────────────────────────────────────────────────


def can_view(req: ServiceRequest, actor: Actor) -> bool:
    """Owner sees own; unit reviewers see their unit's; central sees anything approved by a unit once."""
    if actor.role == Role.SUBMITTER:
        return req.submitted_by == actor.id
    if actor.role == Role.UNIT_REVIEWER:
        return actor.reviews_unit(req.work_unit_id)
    if actor.role == Role.CENTRAL_REVIEWER:
        return req.visible_to_central
    return False


def _get_visible(request_id: str, actor: Actor) -> ServiceRequest:
    req = db.session.get(ServiceRequest, request_id)
    if req is None or not can_view(req, actor):
        raise NotFoundError(resource="ServiceRequest", resource_id=request_id)
    return req


# ── Submission ────────────────────────────────────────────────────────────


def _merge_documents(checklist: list[dict], supplied: list[dict]) -> list[dict]:
    """Overlay supplied documents onto the catalog checklist by name; extras go last."""
    by_name = {doc["name"]: doc for doc in supplied}
    merged = []
    for item in checklist:
        doc = by_name.pop(item["name"], None)
        if doc is not None:
            item = {**item, "url": doc["url"] or item["url"]}
        merged.append(item)
    merged.extend(by_name.values())
    return merged


def _build_leave_detail(leave: dict | None) -> LeaveDetail:
    if not isinstance(leave, dict):
        raise ValidationError("Leave requests require a leave object", details={"leave": "required"})
    try:
        leave_type = LeaveType(leave.get("leave_type"))
    except ValueError:
        raise ValidationError(
            f"Unknown leave_type '{leave.get('leave_type')}'",
            details={"leave_type": f"must be one of {[t.value for t in LeaveType]}"},
        ) from None
    start = require_date(leave.get("start_date"), "start_date")
    end = require_date(leave.get("end_date"), "end_date")
    if end < start:
        raise ValidationError("end_date must not be before start_date",
                              details={"end_date": leave.get("end_date")})
    return LeaveDetail(
        leave_type=leave_type.value,
        start_date=start,
        end_date=end,
        total_days=(end - start).days + 1,
        substitute_employee=leave.get("substitute_employee"),
        reason=leave.get("reason"),
        emergency_contact=leave.get("emergency_contact"),
    )


def submit_request(
    actor: Actor,
    request_type: str,
    title: str,
    *,
    documents=None,
    category: str | None = None,
    description: str | None = None,
    details: dict | None = None,
    work_unit_id: int | None = None,
    target_work_unit_id: int | None = None,
    leave: dict | None = None,
) -> ServiceRequest:
    """
    Create a ServiceRequest in ``submitted``.

    When ``category`` is given the catalog checklist for (request_type,
    category) is laid down first, with urls snapshotted from the submitter's
    document repository; supplied ``documents`` (any accepted shape) then
    override urls by name or are appended.
    """
    if actor.role != Role.SUBMITTER:
        raise Unauthorized(actor.id, actor.role.value, "submit requests")

    try:
        rtype = RequestType(request_type)
    except ValueError:
        raise ValidationError(
            f"Unknown request_type '{request_type}'",
            details={"request_type": f"must be one of {[t.value for t in RequestType]}"},
        ) from None

    title = (title or "").strip()
    if not title:
        raise ValidationError("title is required", details={"title": "required"})

    unit_id = work_unit_id if work_unit_id is not None else actor.unit_id
    if unit_id is None or db.session.get(WorkUnit, unit_id) is None:
        raise ValidationError("A valid work_unit_id is required", details={"work_unit_id": unit_id})
    if target_work_unit_id is not None and db.session.get(WorkUnit, target_work_unit_id) is None:
        raise ValidationError("Unknown target_work_unit_id", details={"target_work_unit_id": target_work_unit_id})

    supplied = normalize_documents(documents)
    if category:
        slots = _merge_documents(build_checklist(rtype.value, category, actor.id), supplied)
    else:
        slots = supplied

    req = ServiceRequest(
        request_type=rtype.value,
        category=category,
        title=title,
        description=description,
        submitted_by=actor.id,
        work_unit_id=unit_id,
        target_work_unit_id=target_work_unit_id,
        status=RequestStatus.SUBMITTED.value,
        details=details or {},
    )
    req.documents = build_slots(slots)
    if rtype == RequestType.LEAVE:
        req.leave_detail = _build_leave_detail(leave)

    try:
        db.session.add(req)
        db.session.flush()
        write_history(
            item_type=ITEM_TYPE_SERVICE_REQUEST,
            item_id=req.id,
            action="submitted",
            actor=actor,
            to_status=RequestStatus.SUBMITTED.value,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Service request submitted",
        extra={"item_type": ITEM_TYPE_SERVICE_REQUEST, "item_id": req.id,
               "request_type": rtype.value, "documents": len(slots), "actor_id": actor.id},
    )
    _publish_status(req, None, "submitted", actor)
    return req


# ── Transitions ───────────────────────────────────────────────────────────


def validate_transition(req: ServiceRequest, action: str) -> dict:
    """
    Validate whether an action is an edge from the request's current status.

    Returns:
        {"valid": bool, "from": str, "to": str|None, "reason": str|None}
    """
    rule = REQUEST_TRANSITIONS.get(action)
    if not rule:
        return {"valid": False, "from": req.status, "to": None,
                "reason": f"Unknown action: {action}"}

    if req.status not in {s.value for s in rule["from"]}:
        return {"valid": False, "from": req.status, "to": rule["to"].value,
                "reason": f"Cannot '{action}' from status '{req.status}'"}

    return {"valid": True, "from": req.status, "to": rule["to"].value, "reason": None}


def _authorize(req: ServiceRequest, action: str, actor: Actor) -> None:
    rule = REQUEST_TRANSITIONS[action]
    if actor.role not in rule["roles"]:
        raise Unauthorized(actor.id, actor.role.value, action)
    if actor.role == Role.UNIT_REVIEWER and not actor.reviews_unit(req.work_unit_id):
        raise Unauthorized(actor.id, actor.role.value, action,
                           reason=f"request belongs to unit {req.work_unit_id}")
    if actor.role == Role.CENTRAL_REVIEWER and not req.visible_to_central:
        raise Unauthorized(actor.id, actor.role.value, action,
                           reason="request has not been approved by its unit")
    if actor.role == Role.SUBMITTER and actor.id != req.submitted_by:
        raise Unauthorized(actor.id, actor.role.value, action, reason="not the submitter")


def _validate_flagged_slots(req: ServiceRequest, flagged_slots, default_note: str) -> list[tuple]:
    if not flagged_slots:
        return []
    if not isinstance(flagged_slots, (list, tuple)):
        raise ValidationError("flagged_slots must be a list", details={"flagged_slots": type(flagged_slots).__name__})
    resolved = []
    for item in flagged_slots:
        slot_id, note = (item.get("slot_id"), item.get("note")) if isinstance(item, dict) else (item, None)
        slot = req.slot(slot_id)
        if slot is None:
            raise ValidationError(f"Unknown document slot '{slot_id}'", details={"flagged_slots": slot_id})
        resolved.append((slot, (note or "").strip() or default_note))
    return resolved


def transition_request(
    request_id: str,
    action: str,
    actor: Actor,
    *,
    note: str | None = None,
    flagged_slots=None,
    expected_version: int | None = None,
) -> dict:
    """
    Execute a request lifecycle transition.

    Check order:
        NotFoundError → StaleState (expected_version) → ValidationError (unknown
        action) → InvalidTransition → Unauthorized → ValidationError (note,
        flagged slots) → PreconditionFailed (approve_unit only)

    Args:
        flagged_slots: ``[{"slot_id", "note"}]`` for return_to_user /
            return_to_unit; each slot is set to ``needs_fix``.

    Returns:
        {"request_id", "previous_status", "new_status", "action", "version"}
    """
    req = db.session.get(ServiceRequest, request_id)
    if req is None:
        raise NotFoundError(resource="ServiceRequest", resource_id=request_id)

    check_expected_version(req, ITEM_TYPE_SERVICE_REQUEST, expected_version)

    # 1. Validate transition
    validation = validate_transition(req, action)
    if validation["to"] is None:
        raise ValidationError(validation["reason"], details={"action": action})
    if not validation["valid"]:
        logger.info(
            "Refused request transition",
            extra={"item_type": ITEM_TYPE_SERVICE_REQUEST, "item_id": req.id,
                   "action": action, "status": req.status, "actor_id": actor.id},
        )
        raise InvalidTransition(ITEM_TYPE_SERVICE_REQUEST, req.status, validation["to"],
                                reason=validation["reason"])

    # 2. Role / unit
    _authorize(req, action, actor)

    # 3. Input checks
    rule = REQUEST_TRANSITIONS[action]
    note = (note or "").strip() or None
    if rule["note_required"] and not note:
        raise ValidationError(f"A note is required to {action}", details={"note": "required"})
    flagged = _validate_flagged_slots(req, flagged_slots, note) if action in _FLAGGING_ACTIONS else []

    # 4. Document gate
    if action == "approve_unit":
        outstanding = outstanding_slots(req)
        if outstanding:
            logger.info(
                "Unit approval blocked by unverified documents",
                extra={"item_type": ITEM_TYPE_SERVICE_REQUEST, "item_id": req.id,
                       "outstanding": len(outstanding), "actor_id": actor.id},
            )
            raise PreconditionFailed(outstanding)

    # 5. Execute + side effects + history, as one unit
    now = datetime.now(timezone.utc)
    previous_status = req.status
    with stale_guard(ITEM_TYPE_SERVICE_REQUEST, req.id):
        req.status = validation["to"]
        req.updated_at = now
        if action == "approve_unit" and req.unit_approved_at is None:
            req.unit_approved_at = now
        elif action == "approve_final":
            req.approved_at = now
        elif action == "reject":
            req.rejected_at = now
        for slot, slot_note in flagged:
            slot.verification_status = VerificationStatus.NEEDS_FIX.value
            slot.verification_note = slot_note
            slot.verified_by = actor.id
            slot.verified_at = now

        write_history(
            item_type=ITEM_TYPE_SERVICE_REQUEST,
            item_id=req.id,
            action=action,
            actor=actor,
            note=note,
            from_status=previous_status,
            to_status=req.status,
        )

    logger.info(
        "Request transition",
        extra={"item_type": ITEM_TYPE_SERVICE_REQUEST, "item_id": req.id, "action": action,
               "from": previous_status, "to": req.status, "actor_id": actor.id},
    )
    _publish_status(req, previous_status, action, actor)

    return {
        "request_id": req.id,
        "previous_status": previous_status,
        "new_status": req.status,
        "action": action,
        "version": req.version,
    }


def _publish_status(req: ServiceRequest, previous_status, action, actor: Actor) -> None:
    change_feed.publish(
        req.id,
        {
            "event": change_feed.EVENT_STATUS_CHANGED,
            "action": action,
            "from_status": previous_status,
            "to_status": req.status,
            "actor_id": actor.id,
            "version": req.version,
        },
        item_type=ITEM_TYPE_SERVICE_REQUEST,
    )


def get_available_request_actions(req: ServiceRequest, actor: Actor) -> list[str]:
    """Actions whose edge and role/unit checks pass for this actor right now."""
    available = []
    for action in REQUEST_TRANSITIONS:
        if not validate_transition(req, action)["valid"]:
            continue
        try:
            _authorize(req, action, actor)
        except Unauthorized:
            continue
        available.append(action)
    return available


# ── Reads ─────────────────────────────────────────────────────────────────


def get_request(request_id: str, actor: Actor) -> ServiceRequest:
    return _get_visible(request_id, actor)


def open_request(request_id: str, actor: Actor) -> dict:
    """
    Open a request for review.

    First access by the responsible reviewer moves the request into its
    review state: a unit reviewer opening ``submitted`` / ``returned_to_unit``
    triggers ``open_unit_review``; a central reviewer opening
    ``approved_by_unit`` triggers ``open_central_review``.

    Returns:
        {"request": ServiceRequest, "transition": dict | None}
    """
    req = _get_visible(request_id, actor)

    auto_action = None
    if actor.role == Role.UNIT_REVIEWER and req.status in (
        RequestStatus.SUBMITTED.value, RequestStatus.RETURNED_TO_UNIT.value,
    ):
        auto_action = "open_unit_review"
    elif actor.role == Role.CENTRAL_REVIEWER and req.status == RequestStatus.APPROVED_BY_UNIT.value:
        auto_action = "open_central_review"

    result = None
    if auto_action:
        result = transition_request(req.id, auto_action, actor)
    return {"request": req, "transition": result}


def list_requests_for_actor(actor: Actor, *, status: str | None = None, request_type: str | None = None):
    """Query of requests visible to ``actor``, newest first."""
    q = ServiceRequest.query
    if actor.role == Role.SUBMITTER:
        q = q.filter(ServiceRequest.submitted_by == actor.id)
    elif actor.role == Role.UNIT_REVIEWER:
        q = q.filter(ServiceRequest.work_unit_id == actor.unit_id)
    else:
        q = q.filter(ServiceRequest.unit_approved_at.isnot(None))
    if status:
        statuses = [s.strip() for s in status.split(",") if s.strip()]
        q = q.filter(ServiceRequest.status.in_(statuses))
    if request_type:
        q = q.filter(ServiceRequest.request_type == request_type)
    return q.order_by(ServiceRequest.created_at.desc(), ServiceRequest.id)


def status_summary() -> dict:
    """Read-only counts per request type and status."""
    rows = db.session.execute(
        select(ServiceRequest.request_type, ServiceRequest.status, func.count(ServiceRequest.id))
        .group_by(ServiceRequest.request_type, ServiceRequest.status)
    ).all()
    by_type = {t.value: {} for t in RequestType}
    total = 0
    for request_type, status, count in rows:
        by_type.setdefault(request_type, {})[status] = count
        total += count
    return {"total": total, "by_type": by_type}


def letter_context(request_id: str, actor: Actor) -> dict:
    """Fields the letter generator may substitute; only for approved_final requests."""
    req = _get_visible(request_id, actor)
    if req.status != RequestStatus.APPROVED_FINAL.value:
        raise ValidationError(
            "Letters can only be generated for approved_final requests",
            details={"status": req.status},
        )
    unit = db.session.get(WorkUnit, req.work_unit_id)
    target = db.session.get(WorkUnit, req.target_work_unit_id) if req.target_work_unit_id else None
    return {
        "request_id": req.id,
        "request_type": req.request_type,
        "category": req.category,
        "title": req.title,
        "submitted_by": req.submitted_by,
        "work_unit": unit.to_dict() if unit else None,
        "target_work_unit": target.to_dict() if target else None,
        "approved_at": req.approved_at.isoformat() if req.approved_at else None,
        "details": req.details or {},
        "leave": req.leave_detail.to_dict() if req.leave_detail else None,
    }
