"""
Escalation Router — who owns a consultation right now.

Ownership is a pure function of ``(is_escalated, status)``:

    is_escalated = False  → unit reviewer of the consultation's unit
    is_escalated = True   → central reviewer pool

Nothing here is cached; callers re-evaluate on every write, so an
escalation made by another reviewer mid-session takes effect immediately.
Unit reviewers keep read access after escalation.
"""

from hrdesk.core.actor import Actor, Role


def owning_role(is_escalated: bool, status: str | None = None) -> Role:
    """Role that may change the consultation's status.

    ``status`` is accepted so the signature stays a function of the full
    routing input; terminal statuses are rejected separately by the
    lifecycle service (ConsultationClosed), not by the router.
    """
    return Role.CENTRAL_REVIEWER if is_escalated else Role.UNIT_REVIEWER


def can_write(consultation, actor: Actor) -> bool:
    """True if ``actor`` currently owns the consultation."""
    role = owning_role(consultation.is_escalated, consultation.status)
    if actor.role != role:
        return False
    if role == Role.UNIT_REVIEWER:
        return actor.reviews_unit(consultation.work_unit_id)
    return True


def can_read(consultation, actor: Actor) -> bool:
    """Submitter of the consultation, unit reviewers of its unit, any central reviewer."""
    if actor.role == Role.SUBMITTER:
        return consultation.submitted_by == actor.id
    if actor.role == Role.UNIT_REVIEWER:
        return actor.reviews_unit(consultation.work_unit_id)
    return actor.role == Role.CENTRAL_REVIEWER


def route(consultation) -> dict:
    """Routing snapshot for API responses."""
    role = owning_role(consultation.is_escalated, consultation.status)
    return {
        "owning_role": role.value,
        "work_unit_id": consultation.work_unit_id if role == Role.UNIT_REVIEWER else None,
        "current_handler_id": consultation.current_handler_id,
    }
