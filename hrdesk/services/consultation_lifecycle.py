"""
Consultation Lifecycle Service.

Manages consultation threads:
  - Submission by an employee, initially owned by the unit reviewer
  - Message append with status recomputation (first touch, answer, follow-up)
  - One-way escalation to the central reviewer pool
  - Resolution / administrative close
  - History ledger entry per status change and per message
  - Change-feed events (message_created, status_changed) after commit

Authorization for every status-changing write goes through
``escalation_router.can_write``, evaluated fresh on each call.

Rule order on every write:
    NotFoundError → ConsultationClosed → StaleState (expected_version)
    → InvalidTransition → Unauthorized → ValidationError
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select

from hrdesk.core.actor import Actor, Role
from hrdesk.core.exceptions import (
    ConsultationClosed,
    InvalidTransition,
    NotFoundError,
    Unauthorized,
    ValidationError,
)
from hrdesk.models import db
from hrdesk.models.consultation import (
    Consultation,
    ConsultationCategory,
    ConsultationMessage,
    ConsultationStatus,
    MessageType,
    Priority,
    validate_consultation_transition,
)
from hrdesk.models.history import ITEM_TYPE_CONSULTATION, write_history
from hrdesk.models.organization import WorkUnit
from hrdesk.services import change_feed, escalation_router
from hrdesk.services.concurrency import check_expected_version, stale_guard

logger = logging.getLogger(__name__)

_S = ConsultationStatus

# Reviewer answer → target status per owning tier
_ANSWER_TARGET = {
    Role.UNIT_REVIEWER: _S.RESPONDED,
    Role.CENTRAL_REVIEWER: _S.ESCALATED_RESPONDED,
}

_STEP_ACTIONS = {
    _S.UNDER_REVIEW: "start_review",
    _S.RESPONDED: "respond",
    _S.ESCALATED_RESPONDED: "respond",
    _S.FOLLOW_UP_REQUESTED: "follow_up",
    _S.ESCALATED: "escalate",
    _S.RESOLVED: "resolve",
    _S.CLOSED: "close",
}


def _coerce(enum_cls, value, field, default):
    if value in (None, ""):
        return default
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(
            f"Unknown {field} '{value}'",
            details={field: f"must be one of {[e.value for e in enum_cls]}"},
        ) from None


def _load_readable(consultation_id: str, actor: Actor) -> Consultation:
    c = db.session.get(Consultation, consultation_id)
    if c is None or not escalation_router.can_read(c, actor):
        raise NotFoundError(resource="Consultation", resource_id=consultation_id)
    return c


def _load_writable(consultation_id: str, actor: Actor, expected_version) -> Consultation:
    c = _load_readable(consultation_id, actor)
    if c.is_terminal:
        raise ConsultationClosed(c.id, c.status)
    check_expected_version(c, ITEM_TYPE_CONSULTATION, expected_version)
    return c


def _require_owner(c: Consultation, actor: Actor, operation: str) -> None:
    if not escalation_router.can_write(c, actor):
        owner = escalation_router.owning_role(c.is_escalated, c.status)
        raise Unauthorized(actor.id, actor.role.value, operation,
                           reason=f"consultation is owned by {owner.value}")


def _step(c: Consultation, target: ConsultationStatus, actor: Actor, note=None) -> tuple[str, str]:
    """Move one edge and write its history entry. Caller holds the stale guard."""
    if not validate_consultation_transition(c.status, target.value):
        raise InvalidTransition(ITEM_TYPE_CONSULTATION, c.status, target.value)
    previous = c.status
    c.status = target.value
    write_history(
        item_type=ITEM_TYPE_CONSULTATION,
        item_id=c.id,
        action=_STEP_ACTIONS[target],
        actor=actor,
        note=note,
        from_status=previous,
        to_status=target.value,
    )
    return previous, target.value


def _publish_steps(c_id: str, steps, actor: Actor) -> None:
    for previous, new in steps:
        change_feed.publish(
            c_id,
            {
                "event": change_feed.EVENT_STATUS_CHANGED,
                "from_status": previous,
                "to_status": new,
                "actor_id": actor.id,
            },
            item_type=ITEM_TYPE_CONSULTATION,
        )


# ── Submission & reads ────────────────────────────────────────────────────


def submit_consultation(
    actor: Actor,
    subject: str,
    description: str,
    *,
    category: str | None = None,
    priority: str | None = None,
    work_unit_id: int | None = None,
) -> Consultation:
    """Open a consultation in ``submitted``, handled by the unit's admin reviewer."""
    if actor.role != Role.SUBMITTER:
        raise Unauthorized(actor.id, actor.role.value, "submit consultations")

    subject = (subject or "").strip()
    description = (description or "").strip()
    if not subject or not description:
        raise ValidationError(
            "subject and description are required",
            details={k: "required" for k, v in (("subject", subject), ("description", description)) if not v},
        )
    category = _coerce(ConsultationCategory, category, "category", ConsultationCategory.OTHER)
    priority = _coerce(Priority, priority, "priority", Priority.MEDIUM)

    unit_id = work_unit_id if work_unit_id is not None else actor.unit_id
    unit = db.session.get(WorkUnit, unit_id) if unit_id is not None else None
    if unit is None:
        raise ValidationError("A valid work_unit_id is required", details={"work_unit_id": unit_id})

    c = Consultation(
        subject=subject,
        description=description,
        category=category.value,
        priority=priority.value,
        submitted_by=actor.id,
        work_unit_id=unit.id,
        status=_S.SUBMITTED.value,
        is_escalated=False,
        current_handler_id=unit.admin_unit_id,
    )
    try:
        db.session.add(c)
        db.session.flush()
        write_history(
            item_type=ITEM_TYPE_CONSULTATION,
            item_id=c.id,
            action="submitted",
            actor=actor,
            to_status=_S.SUBMITTED.value,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Consultation submitted",
        extra={"item_type": ITEM_TYPE_CONSULTATION, "item_id": c.id,
               "work_unit_id": c.work_unit_id, "actor_id": actor.id},
    )
    _publish_steps(c.id, [(None, _S.SUBMITTED.value)], actor)
    return c


def get_consultation(consultation_id: str, actor: Actor) -> Consultation:
    return _load_readable(consultation_id, actor)


def list_consultations_for_actor(actor: Actor, *, status: str | None = None, escalated: bool | None = None):
    """Query of consultations visible to ``actor``, newest first."""
    q = Consultation.query
    if actor.role == Role.SUBMITTER:
        q = q.filter(Consultation.submitted_by == actor.id)
    elif actor.role == Role.UNIT_REVIEWER:
        q = q.filter(Consultation.work_unit_id == actor.unit_id)
    if status:
        q = q.filter(Consultation.status.in_([s.strip() for s in status.split(",") if s.strip()]))
    if escalated is not None:
        q = q.filter(Consultation.is_escalated == escalated)
    return q.order_by(Consultation.created_at.desc(), Consultation.id)


def list_messages(consultation_id: str, actor: Actor) -> list[ConsultationMessage]:
    """Messages in append order."""
    c = _load_readable(consultation_id, actor)
    stmt = (
        select(ConsultationMessage)
        .where(ConsultationMessage.consultation_id == c.id)
        .order_by(ConsultationMessage.created_at.asc(), ConsultationMessage.id.asc())
    )
    return list(db.session.execute(stmt).scalars())


# ── Messages ──────────────────────────────────────────────────────────────


def _planned_steps(c: Consultation, actor: Actor, message_type: MessageType) -> list[ConsultationStatus]:
    """Status path a message causes, possibly empty."""
    status = _S(c.status)
    if actor.role == Role.SUBMITTER:
        if status in (_S.RESPONDED, _S.ESCALATED_RESPONDED):
            return [_S.FOLLOW_UP_REQUESTED]
        return []

    steps = []
    if status == _S.SUBMITTED:
        steps.append(_S.UNDER_REVIEW)
        status = _S.UNDER_REVIEW
    if message_type == MessageType.ANSWER:
        target = _ANSWER_TARGET[actor.role]
        if status != target:
            steps.append(target)
    return steps


def append_message(
    consultation_id: str,
    actor: Actor,
    content: str,
    *,
    message_type: str | None = None,
    expected_version: int | None = None,
) -> dict:
    """
    Append a message and recompute status.

    - Submitter messages are always questions; a question after
      ``responded`` / ``escalated_responded`` moves to ``follow_up_requested``.
    - Reviewer messages require ownership per the escalation router. Any
      reviewer message on ``submitted`` first moves to ``under_review``; an
      answer then moves to ``responded`` (unit) or ``escalated_responded``
      (central) and makes the sender the current handler.

    Every append bumps the consultation version, so a message can never land
    on a consultation that was closed or reassigned after it was loaded.

    Returns:
        {"message": dict, "previous_status", "new_status", "transitions": [[from, to], ...]}
    """
    c = _load_writable(consultation_id, actor, expected_version)

    if actor.role == Role.SUBMITTER:
        if c.submitted_by != actor.id:
            raise Unauthorized(actor.id, actor.role.value, "post on this consultation")
        mtype = MessageType.QUESTION
    else:
        _require_owner(c, actor, "post on this consultation")
        mtype = _coerce(MessageType, message_type, "message_type", MessageType.ANSWER)

    content = (content or "").strip()
    if not content:
        raise ValidationError("content is required", details={"content": "required"})

    planned = _planned_steps(c, actor, mtype)
    for current, target in zip([_S(c.status), *planned], planned):
        if not validate_consultation_transition(current.value, target.value):
            raise InvalidTransition(ITEM_TYPE_CONSULTATION, current.value, target.value)

    previous_status = c.status
    steps = []
    with stale_guard(ITEM_TYPE_CONSULTATION, c.id):
        msg = ConsultationMessage(
            consultation_id=c.id,
            sender_id=actor.id,
            sender_role=actor.role.value,
            content=content,
            message_type=mtype.value,
            is_from_central_reviewer=actor.role == Role.CENTRAL_REVIEWER,
        )
        db.session.add(msg)
        c.updated_at = datetime.now(timezone.utc)
        if mtype == MessageType.ANSWER and c.current_handler_id != actor.id:
            c.current_handler_id = actor.id
        for target in planned:
            steps.append(_step(c, target, actor))
        write_history(
            item_type=ITEM_TYPE_CONSULTATION,
            item_id=c.id,
            action="message_posted",
            actor=actor,
            note=mtype.value,
        )

    message = msg.to_dict()
    logger.info(
        "Consultation message posted",
        extra={"item_type": ITEM_TYPE_CONSULTATION, "item_id": c.id, "message_type": mtype.value,
               "transitions": len(steps), "actor_id": actor.id},
    )
    change_feed.publish(
        c.id,
        {"event": change_feed.EVENT_MESSAGE_CREATED, "message": message},
        item_type=ITEM_TYPE_CONSULTATION,
    )
    _publish_steps(c.id, steps, actor)

    return {
        "message": message,
        "previous_status": previous_status,
        "new_status": c.status,
        "transitions": [list(s) for s in steps],
    }


# ── Status actions ────────────────────────────────────────────────────────


def _status_action(c: Consultation, actor: Actor, target: ConsultationStatus, note=None, mutate=None) -> dict:
    previous_status = c.status
    with stale_guard(ITEM_TYPE_CONSULTATION, c.id):
        if mutate is not None:
            mutate(c)
        step = _step(c, target, actor, note=note)
    logger.info(
        "Consultation transition",
        extra={"item_type": ITEM_TYPE_CONSULTATION, "item_id": c.id, "action": _STEP_ACTIONS[target],
               "from": previous_status, "to": c.status, "actor_id": actor.id},
    )
    _publish_steps(c.id, [step], actor)
    return {
        "consultation_id": c.id,
        "previous_status": previous_status,
        "new_status": c.status,
        "action": _STEP_ACTIONS[target],
        "version": c.version,
    }


def start_review(consultation_id: str, actor: Actor, *, expected_version: int | None = None) -> dict:
    """Owning reviewer moves ``submitted → under_review`` without posting."""
    c = _load_writable(consultation_id, actor, expected_version)
    if c.status != _S.SUBMITTED.value:
        raise InvalidTransition(ITEM_TYPE_CONSULTATION, c.status, _S.UNDER_REVIEW.value)
    _require_owner(c, actor, "start review")
    return _status_action(c, actor, _S.UNDER_REVIEW)


def escalate(consultation_id: str, actor: Actor, *, note: str | None = None,
             expected_version: int | None = None) -> dict:
    """
    Hand the consultation to the central reviewer pool. Irreversible.

    Only the unit reviewer of the consultation's unit, only once.
    The handler is cleared until a central reviewer answers.
    """
    c = _load_writable(consultation_id, actor, expected_version)
    if c.is_escalated or not validate_consultation_transition(c.status, _S.ESCALATED.value):
        raise InvalidTransition(ITEM_TYPE_CONSULTATION, c.status, _S.ESCALATED.value,
                                reason="already escalated" if c.is_escalated else None)
    if actor.role != Role.UNIT_REVIEWER or not actor.reviews_unit(c.work_unit_id):
        raise Unauthorized(actor.id, actor.role.value, "escalate",
                           reason="only the unit reviewer of the consultation's unit may escalate")

    def _mark(cons):
        cons.is_escalated = True
        cons.current_handler_id = None

    return _status_action(c, actor, _S.ESCALATED, note=note, mutate=_mark)


def resolve(consultation_id: str, actor: Actor, *, note: str | None = None,
            expected_version: int | None = None) -> dict:
    """Mark resolved. Only the currently owning reviewer."""
    c = _load_writable(consultation_id, actor, expected_version)
    _require_owner(c, actor, "resolve")

    def _stamp(cons):
        cons.resolved_at = datetime.now(timezone.utc)

    return _status_action(c, actor, _S.RESOLVED, note=note, mutate=_stamp)


def close(consultation_id: str, actor: Actor, *, note: str | None = None,
          expected_version: int | None = None) -> dict:
    """Administrative close by the currently owning reviewer."""
    c = _load_writable(consultation_id, actor, expected_version)
    _require_owner(c, actor, "close")

    def _stamp(cons):
        cons.closed_at = datetime.now(timezone.utc)

    return _status_action(c, actor, _S.CLOSED, note=note, mutate=_stamp)
