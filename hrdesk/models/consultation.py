"""
HR Desk — Consultation domain models.

Models:
    - Consultation: a question thread between an employee and HR reviewers,
      with a one-way escalation from the unit tier to the central tier
    - ConsultationMessage: append-only message on a consultation

Status graph (CONSULTATION_TRANSITIONS):
    submitted → under_review → responded → resolved
    submitted|under_review|responded|follow_up_requested → escalated → escalated_responded
    responded|escalated_responded → follow_up_requested → responded|escalated_responded
    any non-terminal → resolved | closed
"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import event

from hrdesk.models import db


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


# ── Constants ────────────────────────────────────────────────────────────────

class ConsultationStatus(str, Enum):
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    RESPONDED = "responded"
    FOLLOW_UP_REQUESTED = "follow_up_requested"
    ESCALATED = "escalated"
    ESCALATED_RESPONDED = "escalated_responded"
    RESOLVED = "resolved"
    CLOSED = "closed"


class ConsultationCategory(str, Enum):
    PERSONNEL = "personnel"
    ADMINISTRATION = "administration"
    TECHNICAL = "technical"
    OTHER = "other"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class MessageType(str, Enum):
    QUESTION = "question"
    ANSWER = "answer"


_S = ConsultationStatus

TERMINAL_CONSULTATION_STATUSES = frozenset({_S.RESOLVED, _S.CLOSED})

CONSULTATION_TRANSITIONS = {
    _S.SUBMITTED: {_S.UNDER_REVIEW, _S.ESCALATED, _S.RESOLVED, _S.CLOSED},
    _S.UNDER_REVIEW: {_S.RESPONDED, _S.ESCALATED, _S.RESOLVED, _S.CLOSED},
    _S.RESPONDED: {_S.FOLLOW_UP_REQUESTED, _S.ESCALATED, _S.RESOLVED, _S.CLOSED},
    _S.FOLLOW_UP_REQUESTED: {
        _S.RESPONDED, _S.ESCALATED_RESPONDED, _S.ESCALATED, _S.RESOLVED, _S.CLOSED,
    },
    _S.ESCALATED: {_S.ESCALATED_RESPONDED, _S.RESOLVED, _S.CLOSED},
    _S.ESCALATED_RESPONDED: {_S.FOLLOW_UP_REQUESTED, _S.RESOLVED, _S.CLOSED},
    _S.RESOLVED: set(),
    _S.CLOSED: set(),
}


def validate_consultation_transition(current: str, target: str) -> bool:
    """Return True if ``current → target`` is an edge of the consultation graph."""
    try:
        current, target = _S(current), _S(target)
    except ValueError:
        return False
    return target in CONSULTATION_TRANSITIONS.get(current, set())


def _iso(value):
    return value.isoformat() if value else None


# ═════════════════════════════════════════════════════════════════════════════
#  CONSULTATION
# ═════════════════════════════════════════════════════════════════════════════

class Consultation(db.Model):
    """
    Employee question routed to the unit reviewer, escalatable to central HR.

    ``is_escalated`` only ever goes from False to True. ``version`` guards the
    row against concurrent status changes; appending a message without a
    status change does not touch this row.
    """

    __tablename__ = "consultations"
    __table_args__ = (
        db.Index("idx_consultations_unit_status", "work_unit_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    subject = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(30), nullable=False, default=ConsultationCategory.OTHER.value)
    priority = db.Column(db.String(10), nullable=False, default=Priority.MEDIUM.value)

    submitted_by = db.Column(db.String(64), nullable=False, index=True)
    work_unit_id = db.Column(
        db.Integer, db.ForeignKey("work_units.id", ondelete="RESTRICT"), nullable=False, index=True,
    )

    status = db.Column(db.String(30), nullable=False, default=_S.SUBMITTED.value, index=True)
    is_escalated = db.Column(db.Boolean, nullable=False, default=False)
    current_handler_id = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version = db.Column(db.Integer, nullable=False)

    messages = db.relationship(
        "ConsultationMessage",
        back_populates="consultation",
        order_by="ConsultationMessage.id",
        lazy="dynamic",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_terminal(self) -> bool:
        return self.status in {s.value for s in TERMINAL_CONSULTATION_STATUSES}

    def to_dict(self, include_messages=False):
        data = {
            "id": self.id,
            "subject": self.subject,
            "description": self.description,
            "category": self.category,
            "priority": self.priority,
            "submitted_by": self.submitted_by,
            "work_unit_id": self.work_unit_id,
            "status": self.status,
            "is_escalated": self.is_escalated,
            "current_handler_id": self.current_handler_id,
            "version": self.version,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "resolved_at": _iso(self.resolved_at),
            "closed_at": _iso(self.closed_at),
        }
        if include_messages:
            data["messages"] = [m.to_dict() for m in self.messages]
        return data

    def __repr__(self):
        return f"<Consultation {self.id}: {self.subject[:30]} [{self.status}]>"


class ConsultationMessage(db.Model):
    """One message on a consultation thread. Never edited or deleted."""

    __tablename__ = "consultation_messages"
    __table_args__ = (
        db.Index("idx_consultation_messages_thread", "consultation_id", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    consultation_id = db.Column(
        db.String(36), db.ForeignKey("consultations.id", ondelete="CASCADE"), nullable=False,
    )
    sender_id = db.Column(db.String(64), nullable=False)
    sender_role = db.Column(db.String(30), nullable=False)
    content = db.Column(db.Text, nullable=False)
    message_type = db.Column(db.String(20), nullable=False)
    is_from_central_reviewer = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    consultation = db.relationship("Consultation", back_populates="messages")

    def to_dict(self):
        return {
            "id": self.id,
            "consultation_id": self.consultation_id,
            "sender_id": self.sender_id,
            "sender_role": self.sender_role,
            "content": self.content,
            "message_type": self.message_type,
            "is_from_central_reviewer": self.is_from_central_reviewer,
            "created_at": _iso(self.created_at),
        }


@event.listens_for(ConsultationMessage, "before_update")
def _refuse_message_update(mapper, connection, target):
    raise RuntimeError(f"ConsultationMessage {target.id} is append-only and cannot be modified")


@event.listens_for(ConsultationMessage, "before_delete")
def _refuse_message_delete(mapper, connection, target):
    raise RuntimeError(f"ConsultationMessage {target.id} is append-only and cannot be deleted")
