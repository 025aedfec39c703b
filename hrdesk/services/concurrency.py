"""
Optimistic concurrency helpers.

ServiceRequest and Consultation carry a SQLAlchemy ``version_id_col``. Every
UPDATE the ORM emits for those rows includes ``WHERE version = <read>``; if a
competing writer got there first the UPDATE matches zero rows and SQLAlchemy
raises ``StaleDataError`` at flush time. ``stale_guard`` turns that into the
engine's ``StaleState`` after rolling the whole unit of work back, so the
losing attempt leaves no history entry behind.

Usage:
    with stale_guard("service_request", req.id):
        req.status = "approved_by_unit"
        write_history(...)

    result = retry_on_stale(lambda: transition_request(...))
"""

from __future__ import annotations

import logging
from contextlib import contextmanager

from flask import current_app, has_app_context
from sqlalchemy.orm.exc import StaleDataError

from hrdesk.core.exceptions import StaleState
from hrdesk.models import db

logger = logging.getLogger(__name__)

DEFAULT_RETRY_ATTEMPTS = 3


def check_expected_version(item, item_type: str, expected_version) -> None:
    """Raise StaleState if the caller pinned a version that is no longer current."""
    if expected_version is None:
        return
    try:
        expected = int(expected_version)
    except (TypeError, ValueError):
        expected = expected_version
    if item.version != expected:
        logger.info(
            "Stale expected_version",
            extra={"item_type": item_type, "item_id": item.id,
                   "expected_version": expected, "current_version": item.version},
        )
        raise StaleState(item_type, item.id, expected=expected, actual=item.version)


@contextmanager
def stale_guard(item_type: str, item_id: str):
    """
    Run one read-modify-write unit and commit it.

    Any exception inside the block rolls the session back. A version conflict
    detected at flush or commit is re-raised as ``StaleState``.
    """
    try:
        yield
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        logger.warning(
            "Concurrent modification detected",
            extra={"item_type": item_type, "item_id": item_id},
        )
        raise StaleState(item_type, item_id) from None
    except Exception:
        db.session.rollback()
        raise


def retry_on_stale(fn, attempts: int | None = None):
    """
    Call ``fn()`` and retry on ``StaleState``.

    Each retry starts from a clean session so ``fn`` re-reads current state.
    The last ``StaleState`` propagates once attempts are exhausted.
    """
    if attempts is None:
        attempts = (
            current_app.config.get("STALE_RETRY_ATTEMPTS", DEFAULT_RETRY_ATTEMPTS)
            if has_app_context() else DEFAULT_RETRY_ATTEMPTS
        )
    attempts = max(1, int(attempts))

    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except StaleState as exc:
            if attempt == attempts:
                raise
            db.session.expire_all()
            logger.info(
                "Retrying after stale state",
                extra={"item_type": exc.item_type, "item_id": exc.item_id, "attempt": attempt},
            )
