"""
Change feed tests (in-memory backend).

Covers:
  - publish/subscribe ordering and per-channel isolation
  - events published by the consultation and request lifecycles
  - document verification and replacement events
  - subscription close / context manager
"""

import pytest

from hrdesk.core.exceptions import Unauthorized
from hrdesk.models import db
from hrdesk.models.service_request import ServiceRequest
from hrdesk.services import change_feed
from hrdesk.services.consultation_lifecycle import append_message, escalate, submit_consultation
from hrdesk.services.document_verification import replace_document, set_verification_status
from hrdesk.services.request_lifecycle import transition_request


def _drain(sub):
    events = []
    while True:
        event = sub.get()
        if event is None:
            return events
        events.append(event)


class TestPubSub:
    def test_publish_in_order(self):
        with change_feed.subscribe("c-1") as sub:
            for i in range(3):
                assert change_feed.publish("c-1", {"event": "status_changed", "seq": i}) == 1
            events = _drain(sub)
        assert [e["seq"] for e in events] == [0, 1, 2]
        assert events[0]["item_type"] == "consultation"
        assert events[0]["item_id"] == "c-1"
        assert "published_at" in events[0]

    def test_channels_are_isolated(self):
        with change_feed.subscribe("c-1") as one, change_feed.subscribe("c-2") as two:
            change_feed.publish("c-2", {"event": "message_created"})
            assert _drain(one) == []
            assert len(_drain(two)) == 1

    def test_item_type_namespaces_channel(self):
        with change_feed.subscribe("x", item_type="service_request") as sub:
            change_feed.publish("x", {"event": "status_changed"})
            assert _drain(sub) == []

    def test_no_subscribers(self):
        assert change_feed.publish("nobody", {"event": "status_changed"}) == 0

    def test_close_unsubscribes(self):
        sub = change_feed.subscribe("c-1")
        assert change_feed.subscriber_count("c-1") == 1
        sub.close()
        assert sub.closed
        assert change_feed.subscriber_count("c-1") == 0
        assert sub.get() is None

    def test_get_times_out(self):
        with change_feed.subscribe("c-1") as sub:
            assert sub.get(timeout=0.01) is None

    def test_health(self):
        assert change_feed.health_check() == {"status": "ok", "backend": "memory"}


class TestLifecycleEvents:
    def test_consultation_events(self, submitter, unit_reviewer):
        c = submit_consultation(submitter, "Subject", "Body")
        with change_feed.subscribe(c.id) as sub:
            append_message(c.id, unit_reviewer, "Jawaban")
            escalate(c.id, unit_reviewer)
            events = _drain(sub)

        assert [e["event"] for e in events] == [
            "message_created", "status_changed", "status_changed", "status_changed",
        ]
        assert events[0]["message"]["content"] == "Jawaban"
        assert [(e["from_status"], e["to_status"]) for e in events[1:]] == [
            ("submitted", "under_review"), ("under_review", "responded"), ("responded", "escalated"),
        ]

    def test_request_events(self, make_request, unit_reviewer):
        req = make_request()
        with change_feed.subscribe(req.id, item_type="service_request") as sub:
            transition_request(req.id, "open_unit_review", unit_reviewer)
            events = _drain(sub)
        assert len(events) == 1
        assert events[0]["action"] == "open_unit_review"
        assert events[0]["to_status"] == "under_review_unit"
        assert events[0]["version"] == 2

    def test_document_verification_event(self, make_request, unit_reviewer):
        req = make_request(n_docs=2)
        transition_request(req.id, "open_unit_review", unit_reviewer)
        slot_id = db.session.get(ServiceRequest, req.id).documents[1].id
        with change_feed.subscribe(req.id, item_type="service_request") as sub:
            set_verification_status(req.id, slot_id, unit_reviewer, "needs_fix", note="Buram")
            events = _drain(sub)

        assert events == [{
            "event": "document_updated",
            "action": "document_needs_fix",
            "slot_id": slot_id,
            "verification_status": "needs_fix",
            "actor_id": unit_reviewer.id,
            "version": 3,
        }]

    def test_document_replacement_event(self, make_request, submitter):
        req = make_request(n_docs=1)
        slot_id = db.session.get(ServiceRequest, req.id).documents[0].id
        with change_feed.subscribe(req.id, item_type="service_request") as sub:
            replace_document(req.id, slot_id, submitter, "https://files.example/baru.pdf")
            events = _drain(sub)

        assert len(events) == 1
        assert events[0]["event"] == "document_updated"
        assert events[0]["action"] == "document_replaced"
        assert events[0]["verification_status"] == "pending_review"
        assert events[0]["version"] == 2

    def test_refused_verification_publishes_nothing(self, make_request, submitter):
        req = make_request(n_docs=1)
        slot_id = db.session.get(ServiceRequest, req.id).documents[0].id
        with change_feed.subscribe(req.id, item_type="service_request") as sub:
            with pytest.raises(Unauthorized):
                set_verification_status(req.id, slot_id, submitter, "verified")
            assert _drain(sub) == []
