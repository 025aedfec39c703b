"""
Document verification tracker tests.

Covers:
  - normalize_documents across every accepted payload shape
  - set_verification_status rules (notes, terminal requests, roles)
  - replace_document by the owner
  - verification_summary / outstanding_slots aggregates
  - verification notes hidden from the owner unless needs_fix
"""

import pytest

from hrdesk.core.exceptions import (
    InvalidTransition,
    NotFoundError,
    Unauthorized,
    ValidationError,
)
from hrdesk.models import db
from hrdesk.models.history import ITEM_TYPE_SERVICE_REQUEST
from hrdesk.models.service_request import ServiceRequest
from hrdesk.services import history_service
from hrdesk.services.document_verification import (
    normalize_documents,
    outstanding_slots,
    replace_document,
    set_verification_status,
    verification_summary,
)
from hrdesk.services.request_lifecycle import transition_request


def _slots(req_id):
    return db.session.get(ServiceRequest, req_id).documents


# ═════════════════════════════════════════════════════════════════════════
# NORMALISATION
# ═════════════════════════════════════════════════════════════════════════


class TestNormalizeDocuments:
    def test_none_and_blank(self):
        assert normalize_documents(None) == []
        assert normalize_documents("   ") == []

    def test_bare_url(self):
        docs = normalize_documents("https://files.example/a.pdf")
        assert docs == [{"name": "Dokumen 1", "url": "https://files.example/a.pdf",
                         "note": None, "repository_key": None}]

    def test_single_object(self):
        docs = normalize_documents({"name": "SK CPNS", "url": " https://files.example/cpns.pdf "})
        assert len(docs) == 1
        assert docs[0]["name"] == "SK CPNS"
        assert docs[0]["url"] == "https://files.example/cpns.pdf"

    def test_mapping_keeps_order(self):
        docs = normalize_documents({
            "SK CPNS": "https://files.example/cpns.pdf",
            "Kartu Pegawai": None,
            "Ijazah": {"url": "https://files.example/ijazah.pdf", "note": "legalisir"},
        })
        assert [d["name"] for d in docs] == ["SK CPNS", "Kartu Pegawai", "Ijazah"]
        assert docs[1]["url"] == ""
        assert docs[2]["note"] == "legalisir"

    def test_list_of_mixed_entries(self):
        docs = normalize_documents([
            "https://files.example/1.pdf",
            {"label": "Nota dinas", "value": "https://files.example/nota.pdf"},
        ])
        assert [d["name"] for d in docs] == ["Dokumen 1", "Nota dinas"]
        assert docs[1]["url"] == "https://files.example/nota.pdf"

    @pytest.mark.parametrize("payload", [42, [3.5], {"SK CPNS": 7}, [{"name": "x", "url": 5}]])
    def test_unsupported_shapes(self, payload):
        with pytest.raises(ValidationError):
            normalize_documents(payload)


# ═════════════════════════════════════════════════════════════════════════
# VERIFICATION
# ═════════════════════════════════════════════════════════════════════════


class TestSetVerificationStatus:
    def test_verify_slot(self, make_request, unit_reviewer):
        req = make_request(n_docs=2)
        slot_id = _slots(req.id)[0].id
        result = set_verification_status(req.id, slot_id, unit_reviewer, "verified")
        assert result["verification_status"] == "verified"
        assert result["verified_by"] == unit_reviewer.id
        assert _slots(req.id)[1].verification_status == "pending_review"

    def test_verification_bumps_version_and_logs(self, make_request, unit_reviewer):
        req = make_request(n_docs=1)
        slot_id = _slots(req.id)[0].id
        set_verification_status(req.id, slot_id, unit_reviewer, "needs_fix", note="Tidak terbaca")
        assert db.session.get(ServiceRequest, req.id).version == 2

        latest = history_service.list_history(ITEM_TYPE_SERVICE_REQUEST, req.id)[0]
        assert latest.action == "document_needs_fix"
        assert latest.to_status is None
        assert "Tidak terbaca" in latest.note

    def test_needs_fix_requires_note(self, make_request, unit_reviewer):
        req = make_request(n_docs=1)
        with pytest.raises(ValidationError):
            set_verification_status(req.id, _slots(req.id)[0].id, unit_reviewer, "needs_fix")

    def test_unknown_status(self, make_request, unit_reviewer):
        req = make_request(n_docs=1)
        with pytest.raises(ValidationError):
            set_verification_status(req.id, _slots(req.id)[0].id, unit_reviewer, "approved")

    def test_unknown_slot(self, make_request, unit_reviewer):
        req = make_request(n_docs=1)
        with pytest.raises(NotFoundError):
            set_verification_status(req.id, "no-such-slot", unit_reviewer, "verified")

    def test_verified_clears_note_unless_preserved(self, make_request, unit_reviewer):
        req = make_request(n_docs=2)
        first, second = (s.id for s in _slots(req.id))
        for slot_id in (first, second):
            set_verification_status(req.id, slot_id, unit_reviewer, "needs_fix", note="Perbaiki")

        cleared = set_verification_status(req.id, first, unit_reviewer, "verified")
        kept = set_verification_status(req.id, second, unit_reviewer, "verified", preserve_note=True)
        assert cleared["verification_note"] is None
        assert kept["verification_note"] == "Perbaiki"

    def test_submitter_cannot_verify(self, make_request, submitter):
        req = make_request(n_docs=1)
        with pytest.raises(Unauthorized):
            set_verification_status(req.id, _slots(req.id)[0].id, submitter, "verified")

    def test_other_unit_cannot_verify(self, make_request, other_unit_reviewer):
        req = make_request(n_docs=1)
        with pytest.raises(Unauthorized):
            set_verification_status(req.id, _slots(req.id)[0].id, other_unit_reviewer, "verified")

    def test_central_can_verify_after_unit_approval(self, make_request, unit_reviewer, central_reviewer):
        req = make_request(n_docs=1)
        slot_id = _slots(req.id)[0].id
        with pytest.raises(Unauthorized):
            set_verification_status(req.id, slot_id, central_reviewer, "verified")

        transition_request(req.id, "open_unit_review", unit_reviewer)
        set_verification_status(req.id, slot_id, unit_reviewer, "verified")
        transition_request(req.id, "approve_unit", unit_reviewer)
        result = set_verification_status(req.id, slot_id, central_reviewer, "needs_fix", note="Kurang cap")
        assert result["verification_status"] == "needs_fix"

    def test_terminal_request_rejects_verification(self, make_request, unit_reviewer):
        req = make_request(n_docs=1)
        transition_request(req.id, "reject", unit_reviewer, note="Tidak memenuhi syarat")
        with pytest.raises(InvalidTransition):
            set_verification_status(req.id, _slots(req.id)[0].id, unit_reviewer, "verified")


# ═════════════════════════════════════════════════════════════════════════
# REPLACEMENT
# ═════════════════════════════════════════════════════════════════════════


class TestReplaceDocument:
    def test_owner_replaces_flagged_document(self, make_request, submitter, unit_reviewer):
        req = make_request(n_docs=1)
        slot_id = _slots(req.id)[0].id
        transition_request(req.id, "open_unit_review", unit_reviewer)
        transition_request(req.id, "return_to_user", unit_reviewer, note="Scan ulang",
                           flagged_slots=[{"slot_id": slot_id}])

        result = replace_document(req.id, slot_id, submitter, "https://files.example/new.pdf")
        assert result["url"] == "https://files.example/new.pdf"
        assert result["verification_status"] == "pending_review"
        assert result["verification_note"] is None

    def test_not_while_under_review(self, make_request, submitter, unit_reviewer):
        req = make_request(n_docs=1)
        transition_request(req.id, "open_unit_review", unit_reviewer)
        with pytest.raises(InvalidTransition):
            replace_document(req.id, _slots(req.id)[0].id, submitter, "https://files.example/x.pdf")

    def test_only_owner(self, make_request, other_submitter):
        req = make_request(n_docs=1)
        with pytest.raises(Unauthorized):
            replace_document(req.id, _slots(req.id)[0].id, other_submitter, "https://files.example/x.pdf")

    def test_url_required(self, make_request, submitter):
        req = make_request(n_docs=1)
        with pytest.raises(ValidationError):
            replace_document(req.id, _slots(req.id)[0].id, submitter, "  ")


# ═════════════════════════════════════════════════════════════════════════
# AGGREGATES & VIEWS
# ═════════════════════════════════════════════════════════════════════════


class TestAggregates:
    def test_summary_and_outstanding(self, make_request, unit_reviewer):
        req = make_request(documents=[
            {"name": "A", "url": "https://files.example/a.pdf"},
            {"name": "B", "url": "https://files.example/b.pdf"},
            {"name": "C", "url": ""},
        ])
        a, b, _ = (s.id for s in _slots(req.id))
        set_verification_status(req.id, a, unit_reviewer, "verified")
        set_verification_status(req.id, b, unit_reviewer, "needs_fix", note="Salah file")

        req = db.session.get(ServiceRequest, req.id)
        summary = verification_summary(req)
        assert summary == {
            "total": 3, "not_provided": 1, "pending_review": 0,
            "verified": 1, "needs_fix": 1, "all_verified": False,
        }
        assert [o["name"] for o in outstanding_slots(req)] == ["B"]

        set_verification_status(req.id, b, unit_reviewer, "verified")
        assert verification_summary(db.session.get(ServiceRequest, req.id))["all_verified"] is True

    def test_owner_sees_note_only_on_needs_fix(self, make_request, unit_reviewer):
        req = make_request(n_docs=2)
        first, second = (s.id for s in _slots(req.id))
        set_verification_status(req.id, first, unit_reviewer, "needs_fix", note="Perbaiki")
        set_verification_status(req.id, second, unit_reviewer, "needs_fix", note="Internal")
        set_verification_status(req.id, second, unit_reviewer, "verified", preserve_note=True)

        owner_view = db.session.get(ServiceRequest, req.id).to_dict(viewer_is_owner=True)["documents"]
        assert owner_view[0]["verification_note"] == "Perbaiki"
        assert owner_view[1]["verification_note"] is None
        reviewer_view = db.session.get(ServiceRequest, req.id).to_dict()["documents"]
        assert reviewer_view[1]["verification_note"] == "Internal"
