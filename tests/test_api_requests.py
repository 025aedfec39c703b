"""
Service request API tests.

Covers:
  - actor resolution (headers, bearer JWT, 401s)
  - submit / list / detail / open / transition endpoints
  - engine errors rendered as {error, code, details} with the right status
  - document verification endpoints
  - history, summary, letter context
"""

import jwt as pyjwt
import pytest

from hrdesk.services.jwt_service import decode_access_token, generate_access_token

BASE = "/api/v1/requests"


def _docs(n=2):
    return [{"name": f"Doc {i + 1}", "url": f"https://files.example/{i + 1}.pdf"} for i in range(n)]


@pytest.fixture()
def as_submitter(auth_headers, submitter):
    return auth_headers(submitter)


@pytest.fixture()
def as_reviewer(auth_headers, unit_reviewer):
    return auth_headers(unit_reviewer)


@pytest.fixture()
def submitted(client, as_submitter):
    res = client.post(BASE, json={"request_type": "promotion", "title": "Kenaikan pangkat",
                                  "documents": _docs()}, headers=as_submitter)
    assert res.status_code == 201
    return res.get_json()


# ═════════════════════════════════════════════════════════════════════════
# ACTOR RESOLUTION
# ═════════════════════════════════════════════════════════════════════════


class TestActorResolution:
    def test_no_actor_is_401(self, client):
        res = client.get(BASE)
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHENTICATED"

    def test_bad_role_header_is_401(self, client):
        res = client.get(BASE, headers={"X-Actor-Id": "x", "X-Actor-Role": "admin"})
        assert res.status_code == 401
        assert "Unknown role" in res.get_json()["error"]

    def test_bearer_token(self, client, submitted, unit_reviewer):
        token = generate_access_token(unit_reviewer)
        res = client.get(f"{BASE}/{submitted['id']}", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 200
        assert res.get_json()["id"] == submitted["id"]

    def test_token_claims(self, app, unit_reviewer):
        claims = decode_access_token(generate_access_token(unit_reviewer))
        assert (claims["sub"], claims["role"], claims["unit_id"]) == ("rev-8", "unit_reviewer", 8)

    def test_externally_issued_token(self, app, client, submitted):
        token = pyjwt.encode({"sub": "rev-8", "role": "unit_reviewer", "unit_id": 8, "type": "access"},
                             app.config["JWT_SECRET_KEY"], algorithm="HS256")
        res = client.get(f"{BASE}/{submitted['id']}", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 200

    def test_invalid_token(self, client):
        res = client.get(BASE, headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid token"

    def test_token_wins_over_headers(self, client, submitted, unit_reviewer, auth_headers, other_unit_reviewer):
        headers = auth_headers(other_unit_reviewer)
        headers["Authorization"] = f"Bearer {generate_access_token(unit_reviewer)}"
        res = client.get(f"{BASE}/{submitted['id']}", headers=headers)
        assert res.status_code == 200


# ═════════════════════════════════════════════════════════════════════════
# SUBMISSION & READS
# ═════════════════════════════════════════════════════════════════════════


class TestSubmitAndRead:
    def test_submit(self, submitted):
        assert submitted["status"] == "submitted"
        assert submitted["version"] == 1
        assert len(submitted["documents"]) == 2
        assert submitted["verification"]["pending_review"] == 2

    def test_request_type_required(self, client, as_submitter):
        res = client.post(BASE, json={"title": "x"}, headers=as_submitter)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_reviewer_cannot_submit(self, client, as_reviewer):
        res = client.post(BASE, json={"request_type": "promotion", "title": "x"}, headers=as_reviewer)
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_submit_leave(self, client, as_submitter):
        res = client.post(BASE, json={
            "request_type": "leave",
            "title": "Cuti tahunan",
            "leave": {"leave_type": "annual", "start_date": "2026-11-02", "end_date": "2026-11-06"},
        }, headers=as_submitter)
        assert res.status_code == 201
        assert res.get_json()["leave_detail"]["total_days"] == 5

    def test_non_json_body_is_415(self, client, as_submitter):
        res = client.post(BASE, data="request_type=promotion", content_type="text/plain",
                          headers=as_submitter)
        assert res.status_code == 415

    def test_list_and_paginate(self, client, as_submitter):
        for i in range(3):
            client.post(BASE, json={"request_type": "transfer", "title": f"Mutasi {i}"}, headers=as_submitter)
        res = client.get(f"{BASE}?limit=2", headers=as_submitter)
        data = res.get_json()
        assert data["total"] == 3
        assert len(data["items"]) == 2
        assert "documents" not in data["items"][0]

    def test_other_unit_gets_404(self, client, submitted, auth_headers, other_unit_reviewer):
        res = client.get(f"{BASE}/{submitted['id']}", headers=auth_headers(other_unit_reviewer))
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_detail_lists_available_actions(self, client, submitted, as_reviewer):
        res = client.get(f"{BASE}/{submitted['id']}", headers=as_reviewer)
        actions = res.get_json()["available_actions"]
        assert "open_unit_review" in actions
        assert "approve_final" not in actions

    def test_unknown_route(self, client, as_submitter):
        res = client.get("/api/v1/nothing-here", headers=as_submitter)
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"


# ═════════════════════════════════════════════════════════════════════════
# TRANSITIONS
# ═════════════════════════════════════════════════════════════════════════


class TestTransitions:
    def test_open_moves_into_review(self, client, submitted, as_reviewer):
        res = client.post(f"{BASE}/{submitted['id']}/open", headers=as_reviewer)
        data = res.get_json()
        assert res.status_code == 200
        assert data["transition"]["new_status"] == "under_review_unit"
        assert data["request"]["status"] == "under_review_unit"

        res = client.post(f"{BASE}/{submitted['id']}/open", headers=as_reviewer)
        assert res.get_json()["transition"] is None

    def test_action_required(self, client, submitted, as_reviewer):
        res = client.post(f"{BASE}/{submitted['id']}/transition", json={}, headers=as_reviewer)
        assert res.status_code == 400

    def test_invalid_transition_is_409(self, client, submitted, as_reviewer):
        res = client.post(f"{BASE}/{submitted['id']}/transition",
                          json={"action": "approve_final"}, headers=as_reviewer)
        assert res.status_code == 409
        body = res.get_json()
        assert body["code"] == "ERR_INVALID_TRANSITION"
        assert body["details"] == {"current_status": "submitted", "requested_status": "approved_final"}

    def test_document_gate_is_422(self, client, submitted, as_reviewer):
        client.post(f"{BASE}/{submitted['id']}/open", headers=as_reviewer)
        res = client.post(f"{BASE}/{submitted['id']}/transition",
                          json={"action": "approve_unit"}, headers=as_reviewer)
        assert res.status_code == 422
        body = res.get_json()
        assert body["code"] == "ERR_PRECONDITION_FAILED"
        assert [d["name"] for d in body["details"]["outstanding_documents"]] == ["Doc 1", "Doc 2"]

    def test_verify_then_approve(self, client, submitted, as_reviewer):
        client.post(f"{BASE}/{submitted['id']}/open", headers=as_reviewer)
        for slot in submitted["documents"]:
            res = client.put(f"{BASE}/{submitted['id']}/documents/{slot['id']}/verification",
                             json={"status": "verified"}, headers=as_reviewer)
            assert res.status_code == 200
        res = client.post(f"{BASE}/{submitted['id']}/transition",
                          json={"action": "approve_unit"}, headers=as_reviewer)
        assert res.status_code == 200
        assert res.get_json()["new_status"] == "approved_by_unit"

    def test_verification_status_required(self, client, submitted, as_reviewer):
        slot_id = submitted["documents"][0]["id"]
        res = client.put(f"{BASE}/{submitted['id']}/documents/{slot_id}/verification",
                         json={}, headers=as_reviewer)
        assert res.status_code == 400

    def test_stale_expected_version_is_409(self, client, submitted, as_reviewer):
        res = client.post(f"{BASE}/{submitted['id']}/transition",
                          json={"action": "open_unit_review", "expected_version": 4}, headers=as_reviewer)
        assert res.status_code == 409
        body = res.get_json()
        assert body["code"] == "ERR_STALE_STATE"
        assert body["details"] == {"expected_version": 4, "current_version": 1}

    def test_if_match_header(self, client, submitted, as_reviewer):
        headers = {**as_reviewer, "If-Match": '"1"'}
        res = client.post(f"{BASE}/{submitted['id']}/transition",
                          json={"action": "open_unit_review"}, headers=headers)
        assert res.status_code == 200
        assert res.get_json()["version"] == 2

    def test_non_integer_version(self, client, submitted, as_reviewer):
        res = client.post(f"{BASE}/{submitted['id']}/transition",
                          json={"action": "open_unit_review", "expected_version": "abc"}, headers=as_reviewer)
        assert res.status_code == 400

    def test_return_and_replace(self, client, submitted, as_submitter, as_reviewer):
        slot_id = submitted["documents"][0]["id"]
        client.post(f"{BASE}/{submitted['id']}/open", headers=as_reviewer)
        res = client.post(f"{BASE}/{submitted['id']}/transition", json={
            "action": "return_to_user", "note": "Scan buram", "flagged_slots": [{"slot_id": slot_id}],
        }, headers=as_reviewer)
        assert res.get_json()["new_status"] == "returned_to_user"

        detail = client.get(f"{BASE}/{submitted['id']}", headers=as_submitter).get_json()
        assert detail["documents"][0]["verification_note"] == "Scan buram"

        res = client.put(f"{BASE}/{submitted['id']}/documents/{slot_id}",
                         json={"url": "https://files.example/fixed.pdf"}, headers=as_submitter)
        assert res.status_code == 200
        assert res.get_json()["verification_status"] == "pending_review"

        res = client.post(f"{BASE}/{submitted['id']}/transition", json={"action": "resubmit"},
                          headers=as_submitter)
        assert res.get_json()["new_status"] == "submitted"

    def test_transitions_listing(self, client, submitted, as_submitter):
        res = client.get(f"{BASE}/{submitted['id']}/transitions", headers=as_submitter)
        data = res.get_json()
        assert data["status"] == "submitted"
        assert data["version"] == 1
        assert data["available_actions"] == []


# ═════════════════════════════════════════════════════════════════════════
# READ-ONLY VIEWS
# ═════════════════════════════════════════════════════════════════════════


class TestReadViews:
    def test_history_newest_first(self, client, submitted, as_reviewer):
        client.post(f"{BASE}/{submitted['id']}/open", headers=as_reviewer)
        data = client.get(f"{BASE}/{submitted['id']}/history", headers=as_reviewer).get_json()
        assert data["total"] == 2
        assert [e["action"] for e in data["items"]] == ["open_unit_review", "submitted"]

    def test_summary_reviewers_only(self, client, submitted, as_submitter, as_reviewer):
        assert client.get(f"{BASE}/summary", headers=as_submitter).status_code == 403
        data = client.get(f"{BASE}/summary", headers=as_reviewer).get_json()
        assert data["total"] == 1
        assert data["by_type"]["promotion"] == {"submitted": 1}

    def test_letter_context(self, client, submitted, as_submitter, as_reviewer):
        res = client.get(f"{BASE}/{submitted['id']}/letter-context", headers=as_submitter)
        assert res.status_code == 403
        res = client.get(f"{BASE}/{submitted['id']}/letter-context", headers=as_reviewer)
        assert res.status_code == 400
        assert res.get_json()["details"] == {"status": "submitted"}
