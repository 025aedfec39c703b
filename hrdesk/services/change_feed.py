"""
Change Feed — per-item publish/subscribe for consultation and request events.

Interested parties (the notification gateway, a browser holding an SSE
connection) subscribe to one item's channel and receive ``message_created``,
``status_changed`` and ``document_updated`` events in publish order.

Uses Redis pub/sub when REDIS_URL points at a Redis server, falls back to
in-process queues for development/testing.

Usage:
    sub = subscribe(consultation_id)
    publish(consultation_id, {"event": "message_created", ...})
    sub.get(timeout=1.0)   → {"event": "message_created", ...}
    sub.close()
"""

import json
import logging
import os
import queue
import threading
from datetime import datetime, timezone

import redis
from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

EVENT_MESSAGE_CREATED = "message_created"
EVENT_STATUS_CHANGED = "status_changed"
EVENT_DOCUMENT_UPDATED = "document_updated"


def channel_name(item_type, item_id):
    return f"hrdesk:{item_type}:{item_id}"


# ── In-memory backend ────────────────────────────────────────────────────

class _MemorySubscription:
    def __init__(self, backend, channel):
        self._backend = backend
        self.channel = channel
        self._queue = queue.Queue()
        self.closed = False

    def _deliver(self, raw):
        self._queue.put(raw)

    def get_raw(self, timeout=None):
        if self.closed:
            return None
        try:
            return self._queue.get(timeout=timeout) if timeout else self._queue.get_nowait()
        except queue.Empty:
            return None

    def close(self):
        if not self.closed:
            self.closed = True
            self._backend._unsubscribe(self)


class _MemoryBackend:
    """Per-channel subscriber queues, for dev/testing."""

    def __init__(self):
        self._lock = threading.Lock()
        self._channels = {}  # channel → [subscription, ...]

    def publish(self, channel, raw):
        with self._lock:
            subscribers = list(self._channels.get(channel, ()))
            for sub in subscribers:
                sub._deliver(raw)
        return len(subscribers)

    def subscribe(self, channel):
        sub = _MemorySubscription(self, channel)
        with self._lock:
            self._channels.setdefault(channel, []).append(sub)
        return sub

    def _unsubscribe(self, sub):
        with self._lock:
            subs = self._channels.get(sub.channel, [])
            if sub in subs:
                subs.remove(sub)
            if not subs:
                self._channels.pop(sub.channel, None)

    def subscriber_count(self, channel):
        with self._lock:
            return len(self._channels.get(channel, ()))

    def ping(self):
        return True


# ── Redis backend ────────────────────────────────────────────────────────

class _RedisSubscription:
    def __init__(self, client, channel):
        self.channel = channel
        self._pubsub = client.pubsub(ignore_subscribe_messages=True)
        self._pubsub.subscribe(channel)
        self.closed = False

    def get_raw(self, timeout=None):
        if self.closed:
            return None
        message = self._pubsub.get_message(timeout=timeout or 0.0)
        if message is None or message.get("type") != "message":
            return None
        return message["data"]

    def close(self):
        if not self.closed:
            self.closed = True
            self._pubsub.close()


class _RedisBackend:
    def __init__(self, client):
        self._client = client

    def publish(self, channel, raw):
        return self._client.publish(channel, raw)

    def subscribe(self, channel):
        return _RedisSubscription(self._client, channel)

    def subscriber_count(self, channel):
        counts = self._client.pubsub_numsub(channel)
        return counts[0][1] if counts else 0

    def ping(self):
        return self._client.ping()


# ── Singleton backend ────────────────────────────────────────────────────

_backend = None
_backend_lock = threading.Lock()


def _redis_url():
    if has_app_context():
        return current_app.config.get("REDIS_URL")
    return os.getenv("REDIS_URL")


def _get_backend():
    """Lazy-initialise Redis or fall back to in-memory."""
    global _backend
    if _backend is not None:
        return _backend

    with _backend_lock:
        if _backend is not None:
            return _backend
        redis_url = _redis_url()
        if redis_url and not redis_url.startswith("memory://"):
            try:
                client = redis.from_url(redis_url, decode_responses=True)
                client.ping()
                _backend = _RedisBackend(client)
                logger.info("Change feed: using Redis at %s", redis_url.split("@")[-1])
            except Exception as exc:
                logger.warning("Redis unavailable (%s); falling back to in-process change feed", exc)
                _backend = _MemoryBackend()
        else:
            _backend = _MemoryBackend()
    return _backend


def reset_backend():
    """Drop the cached backend (tests, config reload)."""
    global _backend
    with _backend_lock:
        _backend = None


# ── Public API ───────────────────────────────────────────────────────────

class Subscription:
    """
    Handle on one item's channel. Iterating yields decoded events until the
    subscription is closed; ``get`` waits for at most ``timeout`` seconds.
    """

    def __init__(self, item_type, item_id, inner):
        self.item_type = item_type
        self.item_id = item_id
        self._inner = inner

    @property
    def closed(self):
        return self._inner.closed

    def get(self, timeout=None):
        raw = self._inner.get_raw(timeout=timeout)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Dropping undecodable change-feed payload", extra={"channel": self._inner.channel})
            return None

    def __iter__(self):
        while not self.closed:
            event = self.get(timeout=1.0)
            if event is not None:
                yield event

    def close(self):
        self._inner.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def publish(item_id, event, item_type="consultation"):
    """
    Publish ``event`` on the item's channel.

    ``event`` must carry an ``event`` key (``message_created`` /
    ``status_changed``). Returns the number of subscribers reached.
    Delivery failures are logged, never raised: the state change that
    produced the event is already committed.
    """
    payload = dict(event)
    payload.setdefault("item_type", item_type)
    payload.setdefault("item_id", str(item_id))
    payload.setdefault("published_at", datetime.now(timezone.utc).isoformat())
    try:
        delivered = _get_backend().publish(channel_name(item_type, item_id), json.dumps(payload, default=str))
    except Exception:
        logger.exception(
            "Change feed publish failed",
            extra={"item_type": item_type, "item_id": str(item_id), "event": payload.get("event")},
        )
        return 0
    logger.debug(
        "Change feed event published",
        extra={"item_type": item_type, "item_id": str(item_id),
               "event": payload.get("event"), "subscribers": delivered},
    )
    return delivered


def subscribe(item_id, item_type="consultation"):
    """Open a subscription on the item's channel."""
    inner = _get_backend().subscribe(channel_name(item_type, item_id))
    return Subscription(item_type, str(item_id), inner)


def subscriber_count(item_id, item_type="consultation"):
    return _get_backend().subscriber_count(channel_name(item_type, item_id))


def health_check():
    """Return change-feed backend status."""
    try:
        be = _get_backend()
        be.ping()
        backend_type = "memory" if isinstance(be, _MemoryBackend) else "redis"
        return {"status": "ok", "backend": backend_type}
    except Exception as exc:
        return {"status": "error", "detail": str(exc)}
