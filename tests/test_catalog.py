"""
Document catalog tests.

Covers:
  - category listing per request type
  - repository key mapping
  - checklist pre-fill from the user's document repository
  - work unit seeding
  - unit admin assignment (service, CLI)
"""

import json
import logging

import pytest

from hrdesk.core.exceptions import NotFoundError, Unauthorized, ValidationError
from hrdesk.middleware.logging_config import JSONFormatter
from hrdesk.models import db
from hrdesk.models.organization import UserDocument, WorkUnit
from hrdesk.services.document_catalog import (
    WORK_UNITS,
    assign_unit_admin,
    build_checklist,
    get_category,
    list_categories,
    repository_key_for,
    repository_keys,
    request_types_using,
    seed_work_units,
)


class TestCategories:
    @pytest.mark.parametrize("request_type,count", [
        ("promotion", 6),
        ("transfer", 3),
        ("retirement", 8),
        ("leave", 0),
    ])
    def test_category_counts(self, request_type, count):
        assert len(list_categories(request_type)) == count

    def test_first_promotion_category(self):
        first = list_categories("promotion")[0]
        assert first["id"] == "reguler_pelaksana"
        assert [d["name"] for d in first["documents"]][:2] == ["SKP 2 tahun terakhir", "SK Jabatan terakhir"]

    def test_listing_returns_copies(self):
        list_categories("promotion")[0]["documents"][0]["name"] = "changed"
        assert list_categories("promotion")[0]["documents"][0]["name"] == "SKP 2 tahun terakhir"

    def test_unknown_request_type(self):
        with pytest.raises(ValidationError):
            list_categories("sabbatical")

    def test_unknown_category(self):
        with pytest.raises(ValidationError) as exc:
            get_category("transfer", "reguler_pelaksana")
        assert exc.value.details == {"category": "reguler_pelaksana"}


class TestRepositoryKeys:
    def test_label_variants_share_a_key(self):
        assert repository_key_for("promotion", "SK Jabatan terakhir") == "sk_jabatan_terakhir"
        assert repository_key_for("transfer", "SK Jabatan Terakhir (Fotokopi legalisir)") == "sk_jabatan_terakhir"

    def test_unmapped_label(self):
        assert repository_key_for("promotion", "Surat cinta") is None
        assert repository_key_for("leave", "SK CPNS") is None

    def test_distinct_keys(self):
        keys = repository_keys("promotion")
        assert keys == sorted(set(keys))
        assert "sk_cpns" in keys

    def test_request_types_using(self):
        assert request_types_using("sk_pns") == ["promotion", "transfer", "retirement"]
        assert request_types_using("visum") == ["retirement"]


class TestChecklist:
    def test_prefill_from_repository(self):
        db.session.add(UserDocument(user_id="emp-1", key="karpeg", name="Kartu Pegawai",
                                    url="https://files.example/karpeg.pdf"))
        db.session.commit()

        checklist = build_checklist("promotion", "reguler_pelaksana", "emp-1")
        by_name = {item["name"]: item for item in checklist}
        assert by_name["Kartu Pegawai"]["url"] == "https://files.example/karpeg.pdf"
        assert by_name["Kartu Pegawai"]["repository_key"] == "karpeg"
        assert by_name["Nota dinas"]["url"] == ""

    def test_no_user_means_empty_urls(self):
        checklist = build_checklist("transfer", "antar_kementerian")
        assert len(checklist) == 15
        assert all(item["url"] == "" for item in checklist)

    def test_other_users_documents_ignored(self):
        db.session.add(UserDocument(user_id="emp-2", key="karpeg", name="Kartu Pegawai",
                                    url="https://files.example/other.pdf"))
        db.session.commit()
        checklist = build_checklist("promotion", "reguler_pelaksana", "emp-1")
        assert all(item["url"] == "" for item in checklist)

    def test_submission_snapshots_checklist(self, make_request):
        db.session.add(UserDocument(user_id="emp-1", key="sk_cpns", name="SK CPNS",
                                    url="https://files.example/cpns.pdf"))
        db.session.commit()

        req = make_request(documents=None, n_docs=0, category="pensiun_reguler",
                           request_type="retirement", title="Pensiun")
        names = [slot.name for slot in req.documents]
        assert names[:2] == ["Surat Permohonan Pensiun dari Ybs", "Foto Pegawai"]
        sk_cpns = next(slot for slot in req.documents if slot.name == "SK CPNS")
        assert sk_cpns.url == "https://files.example/cpns.pdf"

        # later repository changes do not reach the existing request
        db.session.get(UserDocument, 1).url = "https://files.example/cpns-v2.pdf"
        db.session.commit()
        db.session.expire_all()
        sk_cpns = next(slot for slot in req.documents if slot.name == "SK CPNS")
        assert sk_cpns.url == "https://files.example/cpns.pdf"


class TestWorkUnits:
    def test_seed_is_idempotent(self):
        assert seed_work_units() == 0
        assert db.session.query(WorkUnit).count() == len(WORK_UNITS) == 28

    def test_unit_lookup(self):
        assert db.session.get(WorkUnit, 8).code == "BBPVP-BEKASI"

    def test_seed_logs_created_count(self, caplog):
        db.session.delete(db.session.get(WorkUnit, 28))
        db.session.commit()

        with caplog.at_level(logging.INFO, logger="hrdesk.services.document_catalog"):
            assert seed_work_units() == 1
        record = next(r for r in caplog.records if r.getMessage() == "Seeded work units")
        assert record.created_count == 1
        assert json.loads(JSONFormatter().format(record))["created_count"] == 1


class TestUnitAdmin:
    def test_assign_and_clear(self, unit_reviewer):
        unit = assign_unit_admin(8, unit_reviewer.id)
        assert unit.admin_unit_id == "rev-8"
        assert db.session.get(WorkUnit, 8).to_dict()["admin_unit_id"] == "rev-8"

        assert assign_unit_admin(8, None).admin_unit_id is None

    def test_central_reviewer_may_assign(self, central_reviewer):
        assert assign_unit_admin(9, "rev-9", central_reviewer).admin_unit_id == "rev-9"

    @pytest.mark.parametrize("actor_fixture", ["submitter", "unit_reviewer"])
    def test_other_roles_refused(self, request, actor_fixture):
        actor = request.getfixturevalue(actor_fixture)
        with pytest.raises(Unauthorized):
            assign_unit_admin(8, "rev-8", actor)
        assert db.session.get(WorkUnit, 8).admin_unit_id is None

    def test_unknown_unit(self):
        with pytest.raises(NotFoundError):
            assign_unit_admin(99, "rev-8")

    def test_blank_reviewer(self):
        with pytest.raises(ValidationError):
            assign_unit_admin(8, "   ")

    def test_cli_command(self, app):
        result = app.test_cli_runner().invoke(args=["assign-unit-admin", "8", "rev-8"])
        assert result.exit_code == 0
        db.session.expire_all()
        assert db.session.get(WorkUnit, 8).admin_unit_id == "rev-8"
