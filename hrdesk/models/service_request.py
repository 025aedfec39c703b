"""
HR Desk — Service request domain models.

Models:
    - ServiceRequest: promotion / transfer / retirement / leave request routed
      through unit review then central review
    - DocumentSlot: one required piece of evidence with its own verification state
    - LeaveDetail: leave-specific fields for a leave request

Status graph (REQUEST_TRANSITIONS):
    submitted → under_review_unit → approved_by_unit → under_review_central → approved_final
    under_review_unit → returned_to_user → submitted (resubmit)
    under_review_central → returned_to_unit → under_review_unit
    any non-terminal → rejected
"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from hrdesk.core.actor import Role
from hrdesk.models import db


__all__ = [
    "REQUEST_TRANSITIONS",
    "RequestStatus",
    "RequestType",
    "VerificationStatus",
    "LeaveType",
    "ServiceRequest",
    "DocumentSlot",
    "LeaveDetail",
]


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


# ── Constants ────────────────────────────────────────────────────────────────

class RequestType(str, Enum):
    PROMOTION = "promotion"
    TRANSFER = "transfer"
    RETIREMENT = "retirement"
    LEAVE = "leave"


class RequestStatus(str, Enum):
    SUBMITTED = "submitted"
    UNDER_REVIEW_UNIT = "under_review_unit"
    RETURNED_TO_USER = "returned_to_user"
    APPROVED_BY_UNIT = "approved_by_unit"
    UNDER_REVIEW_CENTRAL = "under_review_central"
    RETURNED_TO_UNIT = "returned_to_unit"
    APPROVED_FINAL = "approved_final"
    REJECTED = "rejected"


class VerificationStatus(str, Enum):
    PENDING_REVIEW = "pending_review"
    VERIFIED = "verified"
    NEEDS_FIX = "needs_fix"


class LeaveType(str, Enum):
    ANNUAL = "annual"
    SICK = "sick"
    MATERNITY = "maternity"
    IMPORTANT_REASON = "important_reason"
    LONG_SERVICE = "long_service"
    COLLECTIVE = "collective"
    UNPAID = "unpaid"


TERMINAL_REQUEST_STATUSES = frozenset({RequestStatus.APPROVED_FINAL, RequestStatus.REJECTED})
NON_TERMINAL_REQUEST_STATUSES = [s for s in RequestStatus if s not in TERMINAL_REQUEST_STATUSES]

# action → {from, to, roles, note_required}
REQUEST_TRANSITIONS = {
    "open_unit_review": {
        "from": [RequestStatus.SUBMITTED, RequestStatus.RETURNED_TO_UNIT],
        "to": RequestStatus.UNDER_REVIEW_UNIT,
        "roles": {Role.UNIT_REVIEWER},
        "note_required": False,
    },
    "approve_unit": {
        "from": [RequestStatus.UNDER_REVIEW_UNIT],
        "to": RequestStatus.APPROVED_BY_UNIT,
        "roles": {Role.UNIT_REVIEWER},
        "note_required": False,
    },
    "return_to_user": {
        "from": [RequestStatus.UNDER_REVIEW_UNIT],
        "to": RequestStatus.RETURNED_TO_USER,
        "roles": {Role.UNIT_REVIEWER},
        "note_required": True,
    },
    "resubmit": {
        "from": [RequestStatus.RETURNED_TO_USER],
        "to": RequestStatus.SUBMITTED,
        "roles": {Role.SUBMITTER},
        "note_required": False,
    },
    "open_central_review": {
        "from": [RequestStatus.APPROVED_BY_UNIT],
        "to": RequestStatus.UNDER_REVIEW_CENTRAL,
        "roles": {Role.CENTRAL_REVIEWER},
        "note_required": False,
    },
    "approve_final": {
        "from": [RequestStatus.UNDER_REVIEW_CENTRAL],
        "to": RequestStatus.APPROVED_FINAL,
        "roles": {Role.CENTRAL_REVIEWER},
        "note_required": False,
    },
    "return_to_unit": {
        "from": [RequestStatus.UNDER_REVIEW_CENTRAL],
        "to": RequestStatus.RETURNED_TO_UNIT,
        "roles": {Role.CENTRAL_REVIEWER},
        "note_required": True,
    },
    "reject": {
        "from": NON_TERMINAL_REQUEST_STATUSES,
        "to": RequestStatus.REJECTED,
        "roles": {Role.UNIT_REVIEWER, Role.CENTRAL_REVIEWER},
        "note_required": True,
    },
}


def request_edges() -> set[tuple[str, str]]:
    """Every (from, to) status pair the request graph allows, as plain strings."""
    return {
        (src.value, rule["to"].value)
        for rule in REQUEST_TRANSITIONS.values()
        for src in rule["from"]
    }


def _iso(value):
    return value.isoformat() if value else None


# ═════════════════════════════════════════════════════════════════════════════
#  SERVICE REQUEST
# ═════════════════════════════════════════════════════════════════════════════

class ServiceRequest(db.Model):
    """
    A personnel request submitted by an employee of one work unit.

    ``version`` is the optimistic-concurrency counter: every UPDATE of the row
    is guarded by the version that was read, so two reviewers racing on the
    same request cannot both win.
    """

    __tablename__ = "service_requests"
    __table_args__ = (
        db.Index("idx_service_requests_unit_status", "work_unit_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    request_type = db.Column(db.String(20), nullable=False, comment="promotion | transfer | retirement | leave")
    category = db.Column(db.String(60), nullable=True, comment="Catalog sub-category, e.g. reguler_pelaksana")
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=True)

    submitted_by = db.Column(db.String(64), nullable=False, index=True)
    work_unit_id = db.Column(
        db.Integer, db.ForeignKey("work_units.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    target_work_unit_id = db.Column(
        db.Integer, db.ForeignKey("work_units.id", ondelete="SET NULL"), nullable=True,
        comment="Transfer destination",
    )

    status = db.Column(db.String(30), nullable=False, default=RequestStatus.SUBMITTED.value, index=True)
    details = db.Column(db.JSON, nullable=True, default=dict)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
    unit_approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version = db.Column(db.Integer, nullable=False)

    documents = db.relationship(
        "DocumentSlot",
        back_populates="request",
        order_by="DocumentSlot.position",
        cascade="all, delete-orphan",
    )
    leave_detail = db.relationship(
        "LeaveDetail",
        back_populates="request",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_terminal(self) -> bool:
        return self.status in {s.value for s in TERMINAL_REQUEST_STATUSES}

    @property
    def visible_to_central(self) -> bool:
        return self.unit_approved_at is not None

    def slot(self, slot_id: str):
        for s in self.documents:
            if s.id == slot_id:
                return s
        return None

    def to_dict(self, *, viewer_is_owner: bool = False, include_documents: bool = True) -> dict:
        data = {
            "id": self.id,
            "request_type": self.request_type,
            "category": self.category,
            "title": self.title,
            "description": self.description,
            "submitted_by": self.submitted_by,
            "work_unit_id": self.work_unit_id,
            "target_work_unit_id": self.target_work_unit_id,
            "status": self.status,
            "details": self.details or {},
            "version": self.version,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "unit_approved_at": _iso(self.unit_approved_at),
            "approved_at": _iso(self.approved_at),
            "rejected_at": _iso(self.rejected_at),
        }
        if include_documents:
            data["documents"] = [d.to_dict(viewer_is_owner=viewer_is_owner) for d in self.documents]
        if self.leave_detail is not None:
            data["leave_detail"] = self.leave_detail.to_dict()
        return data

    def __repr__(self):
        return f"<ServiceRequest {self.id}: {self.request_type} [{self.status}]>"


# ═════════════════════════════════════════════════════════════════════════════
#  DOCUMENT SLOT
# ═════════════════════════════════════════════════════════════════════════════

class DocumentSlot(db.Model):
    """
    One required document on a request's checklist.

    A slot with an empty url is "not provided": it never blocks unit approval
    and never counts as verified, whatever its verification_status says.
    """

    __tablename__ = "document_slots"
    __table_args__ = (
        db.UniqueConstraint("request_id", "position", name="uq_document_slots_request_position"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    request_id = db.Column(
        db.String(36), db.ForeignKey("service_requests.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    position = db.Column(db.Integer, nullable=False)

    name = db.Column(db.String(300), nullable=False)
    url = db.Column(db.String(1000), nullable=False, default="")
    note = db.Column(db.Text, nullable=True, comment="Guidance shown to the submitter")
    repository_key = db.Column(db.String(80), nullable=True)

    verification_status = db.Column(
        db.String(20), nullable=False, default=VerificationStatus.PENDING_REVIEW.value,
    )
    verification_note = db.Column(db.Text, nullable=True)
    verified_by = db.Column(db.String(64), nullable=True)
    verified_at = db.Column(db.DateTime(timezone=True), nullable=True)

    request = db.relationship("ServiceRequest", back_populates="documents")

    @property
    def is_provided(self) -> bool:
        return bool((self.url or "").strip())

    @property
    def is_verified(self) -> bool:
        return self.is_provided and self.verification_status == VerificationStatus.VERIFIED.value

    def to_dict(self, *, viewer_is_owner: bool = False) -> dict:
        note = self.verification_note
        if viewer_is_owner and self.verification_status != VerificationStatus.NEEDS_FIX.value:
            note = None
        return {
            "id": self.id,
            "position": self.position,
            "name": self.name,
            "url": self.url,
            "note": self.note,
            "repository_key": self.repository_key,
            "provided": self.is_provided,
            "verification_status": self.verification_status,
            "verification_note": note,
            "verified_by": self.verified_by,
            "verified_at": _iso(self.verified_at),
        }

    def __repr__(self):
        return f"<DocumentSlot {self.position}: {self.name[:40]} [{self.verification_status}]>"


# ═════════════════════════════════════════════════════════════════════════════
#  LEAVE DETAIL
# ═════════════════════════════════════════════════════════════════════════════

class LeaveDetail(db.Model):
    """Leave-specific fields. total_days counts both ends of the range."""

    __tablename__ = "leave_details"

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(
        db.String(36), db.ForeignKey("service_requests.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    leave_type = db.Column(db.String(30), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    total_days = db.Column(db.Integer, nullable=False)
    substitute_employee = db.Column(db.String(200), nullable=True)
    reason = db.Column(db.Text, nullable=True)
    emergency_contact = db.Column(db.String(200), nullable=True)

    request = db.relationship("ServiceRequest", back_populates="leave_detail")

    def to_dict(self):
        return {
            "leave_type": self.leave_type,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "total_days": self.total_days,
            "substitute_employee": self.substitute_employee,
            "reason": self.reason,
            "emergency_contact": self.emergency_contact,
        }
