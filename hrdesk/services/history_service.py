"""
History ledger queries.

Display order is newest first; causal order (oldest first) is what the
status-timeline reconstruction needs. The integer primary key breaks ties
between entries written within the same clock tick.
"""

from sqlalchemy import select

from hrdesk.core.exceptions import ValidationError
from hrdesk.models import db
from hrdesk.models.history import HISTORY_ITEM_TYPES, HistoryEntry


def _base_query(item_type: str, item_id: str):
    if item_type not in HISTORY_ITEM_TYPES:
        raise ValidationError(
            f"Unknown item_type '{item_type}'",
            details={"item_type": f"must be one of {sorted(HISTORY_ITEM_TYPES)}"},
        )
    return select(HistoryEntry).where(
        HistoryEntry.item_type == item_type,
        HistoryEntry.item_id == str(item_id),
    )


def list_history(item_type: str, item_id: str, *, newest_first: bool = True) -> list[HistoryEntry]:
    """All ledger entries for one item."""
    stmt = _base_query(item_type, item_id)
    if newest_first:
        stmt = stmt.order_by(HistoryEntry.timestamp.desc(), HistoryEntry.id.desc())
    else:
        stmt = stmt.order_by(HistoryEntry.timestamp.asc(), HistoryEntry.id.asc())
    return list(db.session.execute(stmt).scalars())


def status_timeline(item_type: str, item_id: str) -> list[str]:
    """
    Status sequence rebuilt from the ledger alone, oldest first.

    The first element is the initial status (the ``to_status`` of the
    creation entry); each further element is the target of one transition.
    """
    timeline = []
    for entry in list_history(item_type, item_id, newest_first=False):
        if entry.to_status is None:
            continue
        if not timeline and entry.from_status:
            timeline.append(entry.from_status)
        timeline.append(entry.to_status)
    return timeline


def status_edges(item_type: str, item_id: str) -> list[tuple[str | None, str]]:
    """(from_status, to_status) pairs of every status-changing entry, oldest first."""
    return [
        (e.from_status, e.to_status)
        for e in list_history(item_type, item_id, newest_first=False)
        if e.to_status is not None
    ]
