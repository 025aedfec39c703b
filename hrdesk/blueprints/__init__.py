"""
HR Desk
Blueprint registry and shared view helpers.
"""

import json
import time

from flask import Response, request, stream_with_context

from hrdesk.core.exceptions import ValidationError
from hrdesk.services import change_feed
from hrdesk.services.concurrency import retry_on_stale


def paginate_query(query, default_limit=200, max_limit=1000):
    """Apply limit/offset pagination to a SQLAlchemy query.

    Query params:
        limit  — max items (default 200, capped at max_limit)
        offset — starting position (default 0)

    Returns:
        (items_list, total_count)
    """
    total = query.count()
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    items = query.limit(limit).offset(offset).all()
    return items, total


def expected_version_from(data: dict):
    """``expected_version`` from a JSON body or the If-Match header; None if absent."""
    raw = data.get("expected_version")
    if raw is None:
        raw = request.headers.get("If-Match", "").strip('"') or None
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError("expected_version must be an integer",
                               details={"expected_version": raw}) from None


def run_write(fn, expected_version):
    """Run a service write; retry on StaleState only when the client did not pin a version."""
    if expected_version is not None:
        return fn()
    return retry_on_stale(fn)


def _sse(event: dict) -> str:
    return f"event: {event.get('event', 'message')}\ndata: {json.dumps(event, default=str)}\n\n"


def event_stream_response(item_type: str, item_id: str):
    """
    ``text/event-stream`` of change-feed events for one item.

    Query params:
        wait       — seconds to block per poll (default 15); a keep-alive
                     comment is sent whenever a poll times out
        idle_limit — close after this many consecutive empty polls (default: never)
    """
    try:
        wait = min(max(float(request.args.get("wait", 15)), 0.05), 60)
    except (TypeError, ValueError):
        wait = 15.0
    idle_limit = request.args.get("idle_limit", type=int)

    subscription = change_feed.subscribe(item_id, item_type=item_type)

    def generate():
        idle = 0
        with subscription:
            yield ": connected\n\n"
            while True:
                event = subscription.get(timeout=wait)
                if event is None:
                    idle += 1
                    if idle_limit is not None and idle >= idle_limit:
                        break
                    yield f": keep-alive {int(time.time())}\n\n"
                    continue
                idle = 0
                yield _sse(event)

    return Response(
        stream_with_context(generate()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
