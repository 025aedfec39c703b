"""
Document Verification Tracker.

Each DocumentSlot carries its own three-value verification state
(pending_review → verified | needs_fix). Slots are independent of each other;
the only consumer that aggregates them is the unit-approval gate in
``request_lifecycle`` via ``outstanding_slots``.

Document payloads arrive in several shapes (a bare url, a ``{name: url}``
mapping, a single object, a list). ``normalize_documents`` turns every one of
them into the same ordered list of slot dicts at the boundary.

Usage:
    from hrdesk.services.document_verification import set_verification_status

    set_verification_status(request_id, slot_id, actor, "needs_fix", note="Scan is unreadable")
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from hrdesk.core.actor import Actor, Role
from hrdesk.core.exceptions import InvalidTransition, NotFoundError, Unauthorized, ValidationError
from hrdesk.models import db
from hrdesk.models.history import ITEM_TYPE_SERVICE_REQUEST, write_history
from hrdesk.models.service_request import (
    DocumentSlot,
    RequestStatus,
    ServiceRequest,
    VerificationStatus,
)
from hrdesk.services import change_feed
from hrdesk.services.concurrency import check_expected_version, stale_guard

logger = logging.getLogger(__name__)

_REPLACEABLE_STATUSES = {RequestStatus.SUBMITTED.value, RequestStatus.RETURNED_TO_USER.value}


# ── Boundary normalisation ────────────────────────────────────────────────


def _slot_from_object(obj: dict, position: int) -> dict:
    name = str(obj.get("name") or obj.get("label") or "").strip() or f"Dokumen {position + 1}"
    url = obj.get("url") or obj.get("value") or ""
    if not isinstance(url, str):
        raise ValidationError(
            f"Document '{name}' has a non-string url",
            details={"documents": {name: "url must be a string"}},
        )
    note = obj.get("note")
    return {
        "name": name,
        "url": url.strip(),
        "note": (str(note).strip() or None) if note else None,
        "repository_key": obj.get("repository_key"),
    }


def normalize_documents(raw) -> list[dict]:
    """
    Normalise any accepted document payload into an ordered list of
    ``{"name", "url", "note", "repository_key"}`` dicts.

    Accepted shapes:
        None                          → []
        "https://…"                   → one slot
        {"name": …, "url": …}         → one slot
        {"SK CPNS": "https://…", …}   → one slot per key, in insertion order
        [str | dict, …]               → one slot per element
    """
    if raw is None:
        return []

    if isinstance(raw, str):
        return [_slot_from_object({"url": raw}, 0)] if raw.strip() else []

    if isinstance(raw, dict):
        if "url" in raw or "name" in raw:
            return [_slot_from_object(raw, 0)]
        slots = []
        for position, (name, value) in enumerate(raw.items()):
            if isinstance(value, dict):
                slots.append(_slot_from_object({"name": name, **value}, position))
            elif value is None or isinstance(value, str):
                slots.append(_slot_from_object({"name": name, "url": value or ""}, position))
            else:
                raise ValidationError(
                    f"Unsupported value for document '{name}'",
                    details={"documents": {name: type(value).__name__}},
                )
        return slots

    if isinstance(raw, (list, tuple)):
        slots = []
        for position, item in enumerate(raw):
            if isinstance(item, str):
                slots.append(_slot_from_object({"url": item}, position))
            elif isinstance(item, dict):
                slots.append(_slot_from_object(item, position))
            else:
                raise ValidationError(
                    f"Unsupported document entry at position {position}",
                    details={"documents": {str(position): type(item).__name__}},
                )
        return slots

    raise ValidationError(
        "documents must be a url, an object, a mapping or a list",
        details={"documents": type(raw).__name__},
    )


def build_slots(documents: list[dict]) -> list[DocumentSlot]:
    """Instantiate DocumentSlot rows (unsaved) from normalised dicts."""
    return [
        DocumentSlot(
            position=position,
            name=doc["name"],
            url=doc.get("url") or "",
            note=doc.get("note"),
            repository_key=doc.get("repository_key"),
            verification_status=VerificationStatus.PENDING_REVIEW.value,
        )
        for position, doc in enumerate(documents)
    ]


# ── Aggregates ────────────────────────────────────────────────────────────


def outstanding_slots(request: ServiceRequest) -> list[dict]:
    """Provided slots (non-empty url) that are not yet verified, in checklist order."""
    return [
        {"slot_id": s.id, "name": s.name, "verification_status": s.verification_status}
        for s in request.documents
        if s.is_provided and not s.is_verified
    ]


def verification_summary(request: ServiceRequest) -> dict:
    summary = {
        "total": len(request.documents),
        "not_provided": 0,
        VerificationStatus.PENDING_REVIEW.value: 0,
        VerificationStatus.VERIFIED.value: 0,
        VerificationStatus.NEEDS_FIX.value: 0,
    }
    for slot in request.documents:
        if not slot.is_provided:
            summary["not_provided"] += 1
        else:
            summary[slot.verification_status] += 1
    summary["all_verified"] = summary["not_provided"] + summary[VerificationStatus.VERIFIED.value] == summary["total"]
    return summary


# ── Authorisation ─────────────────────────────────────────────────────────


def can_verify(request: ServiceRequest, actor: Actor) -> bool:
    """Unit reviewer of the owning unit, or central reviewer once the request reached central."""
    if actor.role == Role.UNIT_REVIEWER:
        return actor.reviews_unit(request.work_unit_id)
    if actor.role == Role.CENTRAL_REVIEWER:
        return request.visible_to_central
    return False


def _load(request_id: str, slot_id: str, expected_version) -> tuple[ServiceRequest, DocumentSlot]:
    req = db.session.get(ServiceRequest, request_id)
    if req is None:
        raise NotFoundError(resource="ServiceRequest", resource_id=request_id)
    check_expected_version(req, ITEM_TYPE_SERVICE_REQUEST, expected_version)
    slot = req.slot(slot_id)
    if slot is None:
        raise NotFoundError(resource="DocumentSlot", resource_id=slot_id)
    return req, slot


# ── Writes ────────────────────────────────────────────────────────────────


def set_verification_status(
    request_id: str,
    slot_id: str,
    actor: Actor,
    status: str,
    note: str | None = None,
    *,
    preserve_note: bool = False,
    expected_version: int | None = None,
) -> dict:
    """
    Set one slot's verification status.

    Rules:
        - the owning request must not be terminal (InvalidTransition)
        - reviewer roles only, scoped as in ``can_verify`` (Unauthorized)
        - ``needs_fix`` requires a non-empty note (ValidationError)
        - ``verified`` clears the previous note unless ``preserve_note``

    Bumps the request version and appends one history entry (no status change).

    Returns:
        The updated slot as a dict (reviewer view).
    """
    req, slot = _load(request_id, slot_id, expected_version)

    try:
        target = VerificationStatus(status)
    except ValueError:
        raise ValidationError(
            f"Unknown verification status '{status}'",
            details={"status": f"must be one of {[s.value for s in VerificationStatus]}"},
        ) from None

    if req.is_terminal:
        raise InvalidTransition(
            "document_slot", current=slot.verification_status, requested=target.value,
            reason=f"request is {req.status}",
        )

    if not can_verify(req, actor):
        raise Unauthorized(actor.id, actor.role.value, "verify documents on this request")

    note = (note or "").strip() or None
    if target == VerificationStatus.NEEDS_FIX and not note:
        raise ValidationError("A note is required when marking a document as needs_fix",
                              details={"note": "required"})

    previous = slot.verification_status
    now = datetime.now(timezone.utc)

    with stale_guard(ITEM_TYPE_SERVICE_REQUEST, req.id):
        slot.verification_status = target.value
        if not (target == VerificationStatus.VERIFIED and preserve_note and note is None):
            slot.verification_note = note
        slot.verified_by = actor.id
        slot.verified_at = now
        req.updated_at = now

        write_history(
            item_type=ITEM_TYPE_SERVICE_REQUEST,
            item_id=req.id,
            action=f"document_{target.value}",
            actor=actor,
            note=f"{slot.name}: {note}" if note else slot.name,
        )

    logger.info(
        "Document verification updated",
        extra={"item_type": ITEM_TYPE_SERVICE_REQUEST, "item_id": req.id, "slot_id": slot.id,
               "from": previous, "to": target.value, "actor_id": actor.id},
    )
    _publish_document(req, slot, "document_" + target.value, actor)
    return slot.to_dict()


def replace_document(
    request_id: str,
    slot_id: str,
    actor: Actor,
    url: str,
    *,
    expected_version: int | None = None,
) -> dict:
    """
    Owner supplies a new url for a slot while the request is editable
    (``submitted`` or ``returned_to_user``). The slot goes back to
    ``pending_review`` with no reviewer note.
    """
    req, slot = _load(request_id, slot_id, expected_version)

    if req.status not in _REPLACEABLE_STATUSES:
        raise InvalidTransition(
            "document_slot", current=slot.verification_status,
            requested=VerificationStatus.PENDING_REVIEW.value,
            reason=f"documents cannot be replaced while the request is {req.status}",
        )

    if actor.role != Role.SUBMITTER or actor.id != req.submitted_by:
        raise Unauthorized(actor.id, actor.role.value, "replace documents on this request",
                           reason="only the submitter may replace documents")

    url = (url or "").strip()
    if not url:
        raise ValidationError("url is required", details={"url": "required"})

    now = datetime.now(timezone.utc)
    with stale_guard(ITEM_TYPE_SERVICE_REQUEST, req.id):
        slot.url = url
        slot.verification_status = VerificationStatus.PENDING_REVIEW.value
        slot.verification_note = None
        slot.verified_by = None
        slot.verified_at = None
        req.updated_at = now
        write_history(
            item_type=ITEM_TYPE_SERVICE_REQUEST,
            item_id=req.id,
            action="document_replaced",
            actor=actor,
            note=slot.name,
        )

    logger.info(
        "Document replaced",
        extra={"item_type": ITEM_TYPE_SERVICE_REQUEST, "item_id": req.id, "slot_id": slot.id,
               "actor_id": actor.id},
    )
    _publish_document(req, slot, "document_replaced", actor)
    return slot.to_dict(viewer_is_owner=True)


def _publish_document(req: ServiceRequest, slot: DocumentSlot, action, actor: Actor) -> None:
    change_feed.publish(
        req.id,
        {
            "event": change_feed.EVENT_DOCUMENT_UPDATED,
            "action": action,
            "slot_id": slot.id,
            "verification_status": slot.verification_status,
            "actor_id": actor.id,
            "version": req.version,
        },
        item_type=ITEM_TYPE_SERVICE_REQUEST,
    )
