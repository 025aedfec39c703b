"""
Consultation, catalog and health API tests.

Covers:
  - consultation submit / thread / status actions over HTTP
  - escalation routing in the detail payload
  - change-feed event stream
  - catalog reference endpoints
  - health checks
"""

import pytest

from hrdesk.services import change_feed
from hrdesk.services.consultation_lifecycle import append_message

BASE = "/api/v1/consultations"


@pytest.fixture()
def as_submitter(auth_headers, submitter):
    return auth_headers(submitter)


@pytest.fixture()
def as_reviewer(auth_headers, unit_reviewer):
    return auth_headers(unit_reviewer)


@pytest.fixture()
def as_central(auth_headers, central_reviewer):
    return auth_headers(central_reviewer)


@pytest.fixture()
def thread(client, as_submitter):
    res = client.post(BASE, json={"subject": "Tunjangan kinerja",
                                  "description": "Kapan tunjangan dibayarkan?"}, headers=as_submitter)
    assert res.status_code == 201
    return res.get_json()


# ═════════════════════════════════════════════════════════════════════════
# CONSULTATIONS
# ═════════════════════════════════════════════════════════════════════════


class TestConsultationApi:
    def test_submit(self, thread):
        assert thread["status"] == "submitted"
        assert thread["is_escalated"] is False
        assert thread["priority"] == "medium"

    def test_submit_validation(self, client, as_submitter):
        res = client.post(BASE, json={"subject": ""}, headers=as_submitter)
        assert res.status_code == 400
        assert set(res.get_json()["details"]) == {"subject", "description"}

    def test_detail_routing(self, client, thread, as_reviewer, as_submitter):
        data = client.get(f"{BASE}/{thread['id']}", headers=as_reviewer).get_json()
        assert data["routing"]["owning_role"] == "unit_reviewer"
        assert data["routing"]["work_unit_id"] == 8
        assert data["can_write"] is True
        assert client.get(f"{BASE}/{thread['id']}", headers=as_submitter).get_json()["can_write"] is False

    def test_thread(self, client, thread, as_submitter, as_reviewer):
        res = client.post(f"{BASE}/{thread['id']}/messages", json={"content": "Bulan depan."},
                          headers=as_reviewer)
        assert res.status_code == 201
        assert res.get_json()["new_status"] == "responded"

        res = client.post(f"{BASE}/{thread['id']}/messages", json={"content": "Tanggal berapa?"},
                          headers=as_submitter)
        assert res.get_json()["new_status"] == "follow_up_requested"

        data = client.get(f"{BASE}/{thread['id']}/messages", headers=as_submitter).get_json()
        assert [m["content"] for m in data["items"]] == ["Bulan depan.", "Tanggal berapa?"]

    def test_escalate_then_central_answers(self, client, thread, as_reviewer, as_central):
        res = client.post(f"{BASE}/{thread['id']}/escalate", json={"note": "Kebijakan pusat"},
                          headers=as_reviewer)
        assert res.status_code == 200
        assert res.get_json()["new_status"] == "escalated"

        data = client.get(f"{BASE}/{thread['id']}", headers=as_central).get_json()
        assert data["routing"] == {"owning_role": "central_reviewer", "work_unit_id": None,
                                   "current_handler_id": None}

        res = client.post(f"{BASE}/{thread['id']}/messages", json={"content": "Tanggal 1."},
                          headers=as_reviewer)
        assert res.status_code == 403

        res = client.post(f"{BASE}/{thread['id']}/messages", json={"content": "Tanggal 1."},
                          headers=as_central)
        assert res.get_json()["new_status"] == "escalated_responded"

        listing = client.get(f"{BASE}?escalated=true", headers=as_central).get_json()
        assert listing["total"] == 1

    def test_resolved_thread_is_closed(self, client, thread, as_submitter, as_reviewer):
        client.post(f"{BASE}/{thread['id']}/resolve", json={}, headers=as_reviewer)
        res = client.post(f"{BASE}/{thread['id']}/messages", json={"content": "Satu lagi"},
                          headers=as_submitter)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONSULTATION_CLOSED"

    def test_start_review_stale(self, client, thread, as_reviewer):
        res = client.post(f"{BASE}/{thread['id']}/start-review", json={"expected_version": 3},
                          headers=as_reviewer)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_STALE_STATE"

        res = client.post(f"{BASE}/{thread['id']}/start-review", json={"expected_version": 1},
                          headers=as_reviewer)
        assert res.get_json()["new_status"] == "under_review"

    def test_unknown_action(self, client, thread, as_reviewer):
        res = client.post(f"{BASE}/{thread['id']}/archive", json={}, headers=as_reviewer)
        assert res.status_code == 404

    def test_hidden_from_other_unit(self, client, thread, auth_headers, other_unit_reviewer):
        res = client.get(f"{BASE}/{thread['id']}", headers=auth_headers(other_unit_reviewer))
        assert res.status_code == 404

    def test_history(self, client, thread, as_reviewer):
        client.post(f"{BASE}/{thread['id']}/start-review", json={}, headers=as_reviewer)
        data = client.get(f"{BASE}/{thread['id']}/history", headers=as_reviewer).get_json()
        assert [e["action"] for e in data["items"]] == ["start_review", "submitted"]


class TestEventStream:
    def test_stream_delivers_events(self, client, thread, as_submitter, unit_reviewer):
        res = client.get(f"{BASE}/{thread['id']}/events?wait=0.05&idle_limit=1", headers=as_submitter)
        assert res.status_code == 200
        assert res.mimetype == "text/event-stream"
        assert change_feed.subscriber_count(thread["id"]) == 1

        append_message(thread["id"], unit_reviewer, "Jawaban")
        body = res.get_data(as_text=True)

        assert body.startswith(": connected")
        assert body.index("event: message_created") < body.index("event: status_changed")
        assert change_feed.subscriber_count(thread["id"]) == 0

    def test_stream_requires_read_access(self, client, thread, auth_headers, other_submitter):
        res = client.get(f"{BASE}/{thread['id']}/events", headers=auth_headers(other_submitter))
        assert res.status_code == 404


# ═════════════════════════════════════════════════════════════════════════
# CATALOG & HEALTH
# ═════════════════════════════════════════════════════════════════════════


class TestCatalogApi:
    def test_work_units(self, client, as_submitter):
        data = client.get("/api/v1/catalog/work-units", headers=as_submitter).get_json()
        assert data["total"] == 28

    def test_categories(self, client, as_submitter):
        data = client.get("/api/v1/catalog/transfer/categories", headers=as_submitter).get_json()
        assert [c["id"] for c in data["categories"]] == [
            "dalam_unit_eselon_1", "antar_unit_eselon_1", "antar_kementerian",
        ]
        assert "surat_lolos_butuh" in data["repository_keys"]

    def test_unknown_request_type(self, client, as_submitter):
        res = client.get("/api/v1/catalog/sabbatical/categories", headers=as_submitter)
        assert res.status_code == 400

    def test_checklist(self, client, as_submitter):
        res = client.get("/api/v1/catalog/promotion/categories/reguler_pelaksana/checklist",
                         headers=as_submitter)
        documents = res.get_json()["documents"]
        assert documents[0]["name"] == "SKP 2 tahun terakhir"
        assert documents[0]["repository_key"] == "skp_2_tahun"

    def test_requires_actor(self, client):
        assert client.get("/api/v1/catalog/work-units").status_code == 401

    def test_central_assigns_unit_admin(self, client, as_central, as_submitter, unit_reviewer):
        res = client.put("/api/v1/catalog/work-units/8/admin",
                         json={"admin_unit_id": unit_reviewer.id}, headers=as_central)
        assert res.status_code == 200
        assert res.get_json()["admin_unit_id"] == unit_reviewer.id

        thread = client.post(BASE, json={"subject": "Cuti", "description": "Sisa cuti?"},
                             headers=as_submitter).get_json()
        assert thread["current_handler_id"] == unit_reviewer.id

    def test_unit_reviewer_cannot_assign_unit_admin(self, client, as_reviewer):
        res = client.put("/api/v1/catalog/work-units/8/admin",
                         json={"admin_unit_id": "rev-8"}, headers=as_reviewer)
        assert res.status_code == 403

    def test_assign_admin_unknown_unit(self, client, as_central):
        res = client.put("/api/v1/catalog/work-units/99/admin",
                         json={"admin_unit_id": "rev-8"}, headers=as_central)
        assert res.status_code == 404


class TestHealth:
    def test_ready(self, client):
        res = client.get("/api/v1/health/ready")
        assert res.status_code == 200
        assert res.get_json() == {"status": "ok"}

    def test_live(self, client):
        res = client.get("/api/v1/health/live")
        data = res.get_json()
        assert res.status_code == 200
        assert data["status"] == "healthy"
        assert data["checks"]["database"]["status"] == "ok"
        assert data["checks"]["change_feed"] == {"status": "ok", "backend": "memory"}

    def test_timing_headers(self, client):
        res = client.get("/api/v1/health/ready", headers={"X-Request-ID": "abc123"})
        assert res.headers["X-Request-ID"] == "abc123"
        assert "X-Request-Duration-Ms" in res.headers
