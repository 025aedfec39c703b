"""
HR Desk — History ledger model.

Models:
    - HistoryEntry: immutable, append-only record of every status transition,
      document verification and consultation message event.
"""

from datetime import datetime, timezone

from sqlalchemy import event

from hrdesk.models import db

# ── Constants ────────────────────────────────────────────────────────────────

ITEM_TYPE_SERVICE_REQUEST = "service_request"
ITEM_TYPE_CONSULTATION = "consultation"

HISTORY_ITEM_TYPES = {ITEM_TYPE_SERVICE_REQUEST, ITEM_TYPE_CONSULTATION}


class HistoryEntry(db.Model):
    """
    One row per engine event on a service request or consultation.

    ``from_status``/``to_status`` are filled for status transitions and left
    NULL for events that leave the status unchanged (message posted,
    document verified), so the status timeline can be rebuilt from the
    ledger alone.
    """

    __tablename__ = "history_entries"
    __table_args__ = (
        db.Index("idx_history_item", "item_type", "item_id"),
        db.Index("idx_history_actor", "actor_id"),
        db.Index("idx_history_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)

    # Polymorphic item reference
    item_id = db.Column(db.String(36), nullable=False)
    item_type = db.Column(
        db.String(30), nullable=False,
        comment="service_request | consultation",
    )

    action = db.Column(
        db.String(80), nullable=False,
        comment="approve_unit | return_to_user | message_posted | escalate | …",
    )
    actor_role = db.Column(db.String(30), nullable=False)
    actor_id = db.Column(db.String(64), nullable=False)
    note = db.Column(db.Text, nullable=True)

    from_status = db.Column(db.String(30), nullable=True)
    to_status = db.Column(db.String(30), nullable=True)

    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_status_change(self) -> bool:
        return self.to_status is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "item_type": self.item_type,
            "action": self.action,
            "actor_role": self.actor_role,
            "actor_id": self.actor_id,
            "note": self.note,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<HistoryEntry {self.id}: {self.action} on {self.item_type}/{self.item_id}>"


@event.listens_for(HistoryEntry, "before_update")
def _refuse_history_update(mapper, connection, target):
    raise RuntimeError(f"HistoryEntry {target.id} is append-only and cannot be modified")


@event.listens_for(HistoryEntry, "before_delete")
def _refuse_history_delete(mapper, connection, target):
    raise RuntimeError(f"HistoryEntry {target.id} is append-only and cannot be deleted")


# ── Convenience writer ───────────────────────────────────────────────────────

def write_history(
    *,
    item_type: str,
    item_id: str,
    action: str,
    actor,
    note: str | None = None,
    from_status: str | None = None,
    to_status: str | None = None,
) -> HistoryEntry:
    """
    Append a single ledger row. Uses ``flush`` so callers keep transaction
    control: a transition that later fails rolls its entry back with it.

    ``actor`` is any object exposing ``id`` and ``role``.
    """
    if item_type not in HISTORY_ITEM_TYPES:
        raise ValueError(f"Unknown history item_type: {item_type}")

    entry = HistoryEntry(
        item_type=item_type,
        item_id=str(item_id),
        action=action,
        actor_role=str(getattr(actor.role, "value", actor.role)),
        actor_id=str(actor.id),
        note=(note or "").strip() or None,
        from_status=from_status,
        to_status=to_status,
    )
    db.session.add(entry)
    db.session.flush()
    return entry
