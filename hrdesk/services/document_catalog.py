"""
Document Catalog — required evidence per request type and category.

Static tables: for each request type, its categories and the ordered list of
documents a submitter has to provide. Document labels stay in the language
the forms use, because they are shown verbatim to submitters and reviewers
and are also the lookup key into the user's document repository.

    build_checklist("promotion", "reguler_pelaksana", user_id)
      → [{"name", "note", "url", "repository_key"}, ...]

Leave requests have no mandatory catalog documents; any attachments are
supplied ad hoc and normalised by ``document_verification.normalize_documents``.
"""

import logging

from sqlalchemy import select

from hrdesk.core.actor import Actor, Role
from hrdesk.core.exceptions import NotFoundError, Unauthorized, ValidationError
from hrdesk.models import db
from hrdesk.models.organization import UserDocument, WorkUnit
from hrdesk.models.service_request import RequestType

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════════
# Work units
# ═════════════════════════════════════════════════════════════════════════════

WORK_UNITS = [
    (1, "SETDITJEN", "Setditjen Binalavotas"),
    (2, "STANKOM", "Direktorat Bina Stankomproglat"),
    (3, "LEMLATVOK", "Direktorat Bina Lemlatvok"),
    (4, "LAVOGAN", "Direktorat Bina Lavogan"),
    (5, "INTALA", "Direktorat Bina Intala"),
    (6, "PRODUKTIVITAS", "Direktorat Bina Peningkatan Produktivitas"),
    (7, "BNSP", "Set. BNSP"),
    (8, "BBPVP-BEKASI", "BBPVP Bekasi"),
    (9, "BBPVP-BANDUNG", "BBPVP Bandung"),
    (10, "BBPVP-SERANG", "BBPVP Serang"),
    (11, "BBPVP-MEDAN", "BBPVP Medan"),
    (12, "BBPVP-SEMARANG", "BBPVP Semarang"),
    (13, "BBPVP-MAKASSAR", "BBPVP Makassar"),
    (14, "BPVP-SURAKARTA", "BPVP Surakarta"),
    (15, "BPVP-AMBON", "BPVP Ambon"),
    (16, "BPVP-TERNATE", "BPVP Ternate"),
    (17, "BPVP-ACEH", "BPVP Banda Aceh"),
    (18, "BPVP-SORONG", "BPVP Sorong"),
    (19, "BPVP-KENDARI", "BPVP Kendari"),
    (20, "BPVP-SAMARINDA", "BPVP Samarinda"),
    (21, "BPVP-PADANG", "BPVP Padang"),
    (22, "BPVP-BANDUNG-BARAT", "BPVP Bandung Barat"),
    (23, "BPVP-LOTIM", "BPVP Lotim"),
    (24, "BPVP-BANTAENG", "BPVP Bantaeng"),
    (25, "BPVP-BANYUWANGI", "BPVP Banyuwangi"),
    (26, "BPVP-SIDOARJO", "BPVP Sidoarjo"),
    (27, "BPVP-PANGKEP", "BPVP Pangkep"),
    (28, "BPVP-BELITUNG", "BPVP Belitung"),
]


def seed_work_units() -> int:
    """Insert any missing work units. Returns the number of rows created."""
    existing = set(db.session.execute(select(WorkUnit.id)).scalars())
    created = 0
    for unit_id, code, name in WORK_UNITS:
        if unit_id in existing:
            continue
        db.session.add(WorkUnit(id=unit_id, code=code, name=name))
        created += 1
    db.session.commit()
    logger.info("Seeded work units", extra={"created_count": created})
    return created


def assign_unit_admin(unit_id: int, reviewer_id: str | None, actor: Actor | None = None) -> WorkUnit:
    """Set (or clear, with ``None``) the unit reviewer in charge of a work unit.

    New consultations from the unit start with this reviewer as handler.
    Only central reviewers may reassign through the API; the CLI passes no actor.
    """
    if actor is not None and actor.role != Role.CENTRAL_REVIEWER:
        raise Unauthorized(actor.id, actor.role.value, "assign a unit admin")
    unit = db.session.get(WorkUnit, unit_id)
    if unit is None:
        raise NotFoundError("WorkUnit", unit_id)
    if reviewer_id is not None:
        reviewer_id = str(reviewer_id).strip()
        if not reviewer_id:
            raise ValidationError("Reviewer id must not be blank", details={"admin_unit_id": "blank"})
    unit.admin_unit_id = reviewer_id
    db.session.commit()
    logger.info(
        "Unit admin assigned",
        extra={"work_unit_id": unit.id, "admin_unit_id": reviewer_id,
               "actor_id": actor.id if actor else None},
    )
    return unit


# ═════════════════════════════════════════════════════════════════════════════
# Checklists
# ═════════════════════════════════════════════════════════════════════════════

_SKP_NOTE = (
    "Nilai minimal 'Baik'; Nilai 'Sangat Baik' perlu dilampirkan bukti inovasi; "
    "Wajib ada lembar 'Dokumen Evaluasi Kinerja Pegawai'"
)
_CHILD_NOTE = "Apabila masih ada anak yang menjadi tanggungan"
_SCHOOL_NOTE = "Bila terdapat anak yang masih menjadi tanggungan"
_DISCIPLINE_NOTE = "Dalam 1 tahun terakhir"
_ACCOUNT_NOTE = "Lembar yang terdapat nomor rekening"


def _doc(name, note=None):
    return {"name": name, "note": note}


PROMOTION_CATEGORIES = [
    {
        "id": "reguler_pelaksana",
        "name": "Kenaikan Pangkat Reguler (Jabatan Pelaksana)",
        "documents": [
            _doc("SKP 2 tahun terakhir", _SKP_NOTE),
            _doc("SK Jabatan terakhir"),
            _doc("SK Pangkat terakhir"),
            _doc("Kartu Pegawai"),
            _doc("Ijazah + Transkrip nilai terakhir"),
            _doc("Nota dinas"),
        ],
    },
    {
        "id": "fungsional",
        "name": "Kenaikan Pangkat Jabatan Fungsional",
        "documents": [
            _doc("PAK tahun 2022 hingga saat ini", "Wajib 3 lembar di setiap tahun"),
            _doc("SKP 2 tahun terakhir", _SKP_NOTE),
            _doc(
                "SK Jabatan terakhir",
                "Wajib disertai sertifikat uji kompetensi bagi pegawai yang naik jenjang",
            ),
            _doc("SK Pangkat terakhir"),
            _doc("Kartu Pegawai"),
            _doc("Ijazah + transkrip nilai terakhir"),
            _doc("Nota dinas"),
        ],
    },
    {
        "id": "struktural",
        "name": "Kenaikan Pangkat Jabatan Struktural",
        "documents": [
            _doc("SKP 2 tahun terakhir", _SKP_NOTE),
            _doc("SK Jabatan terakhir"),
            _doc("SK Pangkat terakhir"),
            _doc("Kartu Pegawai"),
            _doc("Ijazah + Transkrip Nilai terakhir"),
            _doc("Surat Pernyataan Pelantikan"),
            _doc("Surat Pernyataan Melaksanakan Tugas"),
            _doc("Surat Pernyataan Menduduki Jabatan"),
            _doc(
                "Diklat PIM III",
                "Khusus untuk Pejabat Struktural Eselon III yang pendidikan terakhirnya S1 "
                "dan pangkat terakhirnya III/d",
            ),
            _doc("Nota dinas"),
        ],
    },
    {
        "id": "pertama_kali",
        "name": "Kenaikan Pangkat Pertama Kali",
        "documents": [
            _doc("SK CPNS"),
            _doc("SK PNS"),
            _doc("SKP 2 tahun terakhir", _SKP_NOTE),
            _doc(
                "PAK tahun 2022 hingga saat ini",
                "Khusus untuk jabatan fungsional; Wajib 3 lembar di setiap tahun",
            ),
            _doc("SK Jabatan", "Khusus untuk jabatan fungsional"),
            _doc("Berita Acara Pengambilan Sumpah Jabatan PNS", "Khusus untuk jabatan fungsional"),
            _doc("SK Pangkat terakhir"),
            _doc("Kartu Pegawai"),
            _doc("Ijazah + Transkrip Nilai terakhir"),
            _doc("Nota dinas"),
        ],
    },
    {
        "id": "penyesuaian_ijazah",
        "name": "Kenaikan Pangkat Penyesuaian Ijazah",
        "documents": [
            _doc("Surat Tanda Lulus Ujian Penyesuaian Kenaikan Pangkat"),
            _doc("Ijazah + Transkrip Nilai terakhir yang telah dilegalisir"),
            _doc("Uraian Tugas"),
            _doc("SKP 2 tahun terakhir", _SKP_NOTE),
            _doc("SK Jabatan terakhir"),
            _doc("SK Pangkat terakhir"),
            _doc("Kartu Pegawai"),
            _doc("Nota dinas"),
        ],
    },
    {
        "id": "golongan_2d_3a",
        "name": "Kenaikan Pangkat Golongan II/d ke III/a",
        "documents": [
            _doc("Surat Tanda Lulus Ujian Dinas"),
            _doc("SKP 2 tahun terakhir", _SKP_NOTE),
            _doc("SK Jabatan terakhir"),
            _doc("SK Pangkat terakhir"),
            _doc("Ijazah + Transkrip nilai terakhir"),
            _doc("Kartu Pegawai"),
            _doc("Nota dinas"),
        ],
    },
]

_COMMON_TRANSFER_DOCUMENTS = [
    _doc("Surat Pernyataan Lolos Butuh dari PPK Instansi Asal (Asli)"),
    _doc("Surat Keterangan Tidak Sedang Menjalani Hukuman Disiplin (Asli)"),
    _doc("Surat Keterangan Tidak Sedang Menjalani Tugas Belajar/Ikatan Dinas (Asli)"),
    _doc("Surat Keterangan Tidak Mempunyai Hutang Piutang dengan Pihak Bank (Asli)"),
    _doc(
        "Surat Pernyataan Bebas Temuan yang Diterbitkan oleh ITJEN (Asli)",
        "Form dapat diunduh pada link https://bit.ly/FormulirBebasTemuan-ITJEN",
    ),
    _doc("ANJAB dan ABK yang ditandatangani oleh PPK Instansi Asal (Bila Pindah Antar Kementerian)"),
    _doc("SK CPNS (Fotokopi legalisir)"),
    _doc("SK PNS (Fotokopi legalisir)"),
    _doc("SK Pangkat Terakhir (Fotokopi legalisir)"),
    _doc("SK Jabatan Terakhir (Fotokopi legalisir)"),
    _doc("KARPEG (Fotokopi legalisir)"),
    _doc("Ijazah dan Transkrip Nilai Universitas (Fotokopi legalisir)"),
    _doc("SKP 2 tahun terakhir (Fotokopi legalisir)"),
    _doc("Surat permohonan mutasi dari ybs"),
    _doc("Daftar Riwayat Hidup (DRH) sesuai Keputusan Kepala BKN Nomor 11 Tahun 2002"),
]

TRANSFER_CATEGORIES = [
    {
        "id": "dalam_unit_eselon_1",
        "name": "Mutasi Dalam Unit Kerja Eselon 1",
        "documents": _COMMON_TRANSFER_DOCUMENTS,
    },
    {
        "id": "antar_unit_eselon_1",
        "name": "Mutasi Keluar Antar Unit Eselon 1",
        "documents": _COMMON_TRANSFER_DOCUMENTS,
    },
    {
        "id": "antar_kementerian",
        "name": "Mutasi Keluar Antar Kementerian/Lembaga",
        "documents": _COMMON_TRANSFER_DOCUMENTS,
    },
]

_SERVICE_RECORD_DOCUMENTS = [
    _doc("SK CPNS"),
    _doc("SK PNS"),
    _doc("SK Kenaikan Pangkat Terakhir"),
    _doc("SK Jabatan Terakhir"),
]

RETIREMENT_CATEGORIES = [
    {
        "id": "pensiun_reguler",
        "name": "Pensiun Reguler",
        "documents": [
            _doc("Surat Permohonan Pensiun dari Ybs"),
            _doc("Foto Pegawai"),
            _doc("KTP"),
            _doc("NPWP"),
            _doc("Daftar Susunan Keluarga"),
            _doc("Kartu Pegawai"),
            _doc("Surat Nikah"),
            _doc("Akte Kelahiran Anak", _CHILD_NOTE),
            *_SERVICE_RECORD_DOCUMENTS,
            _doc("Kenaikan Gaji Berkala Terakhir"),
            _doc("SKP 2 Tahun Terakhir"),
            _doc("Surat Pernyataan Tidak Pernah Dijatuhi Hukuman Disiplin Sedang/Berat", _DISCIPLINE_NOTE),
            _doc("Surat Pernyataan Tidak Sedang Menjalani Proses Pidana"),
            _doc("Data Perorangan Calon Penerimaan Pensiun (DPCPP)"),
            _doc("Buku Tabungan", _ACCOUNT_NOTE),
            _doc("Karis/Karsu"),
            _doc("Surat Keterangan Kematian", "Bila ada"),
            _doc("Surat Keterangan Anak masih sekolah/kuliah", _SCHOOL_NOTE),
        ],
    },
    {
        "id": "pensiun_janda_duda",
        "name": "Pensiun Janda/Duda (PNS Meninggal)",
        "documents": [
            _doc("Surat Permohonan Pensiun dari Janda/Duda Ybs"),
            _doc("Foto Janda/Duda Ybs"),
            _doc("KTP Janda/Duda"),
            _doc("NPWP Janda/Duda"),
            _doc("Daftar Susunan Keluarga"),
            _doc("Kartu Pegawai"),
            _doc("Surat Nikah"),
            _doc("Akte Kelahiran Anak", _CHILD_NOTE),
            *_SERVICE_RECORD_DOCUMENTS,
            _doc("Kenaikan Gaji Berkala Terakhir"),
            _doc("SKP 2 Tahun Terakhir"),
            _doc("Surat Pernyataan Tidak Pernah Dijatuhi Hukuman Disiplin Sedang/Berat", _DISCIPLINE_NOTE),
            _doc("Surat Pernyataan Tidak Sedang Menjalani Proses Pidana"),
            _doc("Data perorangan Calon Penerimaan Pensiun (DPCPP)"),
            _doc("Buku Tabungan Janda/Duda", _ACCOUNT_NOTE),
            _doc("Surat Keterangan Kematian Ybs"),
            _doc("Surat Keterangan Janda/Duda dari Kelurahan"),
            _doc("Karis/Karsu"),
            _doc("Surat Keterangan Anak masih sekolah/kuliah", _SCHOOL_NOTE),
        ],
    },
    {
        "id": "pensiun_anak",
        "name": "Pensiun Anak (PNS dan pasangan meninggal dunia)",
        "documents": [
            _doc("Surat Permohonan Pensiun dari Anak Ybs"),
            _doc("Foto Anak Ybs"),
            _doc("KTP Anak"),
            _doc("Daftar Susunan Keluarga"),
            _doc("Kartu Pegawai"),
            _doc("Akte Kelahiran Anak"),
            _doc("SK CPNS"),
            _doc("SK PNS"),
            _doc("SK Kenaikan Pangkat Terakhir"),
            _doc("Kenaikan Gaji Berkala Terakhir"),
            _doc("SKP 2 Tahun Terakhir"),
            _doc("Surat Pernyataan Tidak Pernah Dijatuhi Hukuman Disiplin Sedang/Berat", _DISCIPLINE_NOTE),
            _doc("Surat Pernyataan Tidak Sedang Menjalani Proses Pidana"),
            _doc("Data perorangan Calon Penerimaan Pensiun (DPCPP)"),
            _doc("Buku Tabungan Anak", _ACCOUNT_NOTE),
            _doc("Surat Keterangan Kematian Ybs"),
            _doc("Surat Keterangan Kematian Pasangan YBS"),
        ],
    },
    {
        "id": "pns_meninggal_tanpa_ahli_waris",
        "name": "PNS Meninggal Tanpa Ahli Waris",
        "documents": [_doc("Surat Kematian"), *_SERVICE_RECORD_DOCUMENTS],
    },
    {
        "id": "pns_meninggal_belum_menikah",
        "name": "PNS Meninggal Status Belum Menikah",
        "documents": [
            _doc("Surat Permohonan Pensiun dari Ortu Ybs"),
            _doc("Foto Ortu Ybs"),
            _doc("KTP Ortu Ybs"),
            _doc("Daftar Susunan Keluarga"),
            *_SERVICE_RECORD_DOCUMENTS,
            _doc("Data perorangan Calon Penerimaan Pensiun (DPCPP)"),
            _doc("Buku Tabungan Ortu", _ACCOUNT_NOTE),
            _doc("Surat Keterangan Kematian Ybs"),
        ],
    },
    {
        "id": "pensiun_dini",
        "name": "Pensiun Dini",
        "documents": [
            _doc("Surat Permohonan Pensiun dari Ybs"),
            _doc("Foto Pegawai"),
            _doc("KTP"),
            _doc("NPWP"),
            _doc("Daftar Susunan Keluarga"),
            _doc("Kartu Pegawai"),
            _doc("Surat Nikah", "Bila ada"),
            _doc("Akte Kelahiran Anak", _CHILD_NOTE),
            *_SERVICE_RECORD_DOCUMENTS,
            _doc("Kenaikan Gaji Berkala Terakhir"),
            _doc("SKP 2 Tahun Terakhir"),
            _doc("Surat Pernyataan Tidak Pernah Dijatuhi Hukuman Disiplin Sedang/Berat", _DISCIPLINE_NOTE),
            _doc("Surat Pernyataan Tidak Sedang Menjalani Proses Pidana"),
            _doc("Data perorangan Calon Penerimaan Pensiun (DPCPP)"),
        ],
    },
    {
        "id": "pensiun_anumerta",
        "name": "Pensiun Anumerta",
        "documents": [
            _doc("Berita Acara", "Kejadian yang mengakibatkan ybs meninggal dunia"),
            _doc("Visum et repertum"),
            _doc("Surat Tugas Ybs"),
            _doc("Surat Keterangan", "Yang menyatakan ybs meninggal karena dinas"),
            _doc("Laporan Dari Pimpinan Unit Kerja", "Yang menyatakan bahwa ybs meninggal karna dinas"),
            _doc("Kenaikan Pangkat Anumerta Sementara"),
            *_SERVICE_RECORD_DOCUMENTS,
            _doc("Kenaikan Gaji Berkala Terakhir"),
            _doc("Surat Nikah", "Bila ada"),
            _doc("Akte Kelahiran Anak", _CHILD_NOTE),
            _doc("Foto Janda/Duda Ybs"),
            _doc("Buku Tabungan Janda/Duda", _ACCOUNT_NOTE),
            _doc("Surat Keterangan Kematian Ybs"),
            _doc("Karis/Karsu"),
            _doc("Surat Keterangan Anak masih sekolah/kuliah", _SCHOOL_NOTE),
        ],
    },
    {
        "id": "masa_pra_pensiun",
        "name": "Masa Pra Pensiun",
        "documents": [
            _doc("Surat Permohonan Pensiun dari Ybs"),
            _doc("Foto Pegawai"),
            _doc("KTP"),
            _doc("NPWP"),
            _doc("Daftar Susunan Keluarga"),
            _doc("Kartu Pegawai"),
            _doc("Surat Nikah"),
            _doc("Akte Kelahiran Anak", _CHILD_NOTE),
            *_SERVICE_RECORD_DOCUMENTS,
            _doc("Kenaikan Gaji Berkala Terakhir"),
            _doc("SKP 2 Tahun Terakhir"),
            _doc("Surat Pernyataan Tidak Pernah Dijatuhi Hukuman Disiplin Sedang/Berat", _DISCIPLINE_NOTE),
            _doc("Surat Pernyataan Tidak Sedang Menjalani Proses Pidana"),
        ],
    },
]

CATALOG = {
    RequestType.PROMOTION.value: PROMOTION_CATEGORIES,
    RequestType.TRANSFER.value: TRANSFER_CATEGORIES,
    RequestType.RETIREMENT.value: RETIREMENT_CATEGORIES,
    RequestType.LEAVE.value: [],
}


# ═════════════════════════════════════════════════════════════════════════════
# Repository key mapping
# ═════════════════════════════════════════════════════════════════════════════

REPOSITORY_KEYS = {
    RequestType.PROMOTION.value: {
        "SKP 2 tahun terakhir": "skp_2_tahun",
        "SK Jabatan terakhir": "sk_jabatan_terakhir",
        "SK Jabatan": "sk_jabatan_terakhir",
        "SK Pangkat terakhir": "sk_pangkat_terakhir",
        "Kartu Pegawai": "karpeg",
        "Ijazah + Transkrip nilai terakhir": "ijazah_terakhir",
        "Ijazah + transkrip nilai terakhir": "ijazah_terakhir",
        "Ijazah + Transkrip Nilai terakhir": "ijazah_terakhir",
        "Ijazah + Transkrip Nilai terakhir yang telah dilegalisir": "ijazah_terakhir",
        "Transkrip Nilai": "transkrip_nilai",
        "Nota dinas": "nota_dinas",
        "PAK tahun 2022 hingga saat ini": "pak",
        "SK CPNS": "sk_cpns",
        "SK PNS": "sk_pns",
        "Surat Tanda Lulus Ujian Penyesuaian Kenaikan Pangkat": "surat_lulus_ujian_penyesuaian",
        "Surat Tanda Lulus Ujian Dinas": "surat_lulus_ujian_dinas",
        "Uraian Tugas": "uraian_tugas",
        "Berita Acara Pengambilan Sumpah Jabatan PNS": "ba_sumpah_pns",
        "Surat Pernyataan Pelantikan": "surat_pernyataan_pelantikan",
        "Surat Pernyataan Melaksanakan Tugas": "surat_pernyataan_tugas",
        "Surat Pernyataan Menduduki Jabatan": "surat_pernyataan_jabatan",
        "Diklat PIM III": "diklat_pim_3",
    },
    RequestType.TRANSFER.value: {
        "Surat Pernyataan Lolos Butuh dari PPK Instansi Asal (Asli)": "surat_lolos_butuh",
        "Surat Keterangan Tidak Sedang Menjalani Hukuman Disiplin (Asli)": "surat_tidak_hukuman",
        "Surat Keterangan Tidak Sedang Menjalani Tugas Belajar/Ikatan Dinas (Asli)": "surat_tidak_tugas_belajar",
        "Surat Keterangan Tidak Mempunyai Hutang Piutang dengan Pihak Bank (Asli)": "surat_tidak_hutang",
        "Surat Pernyataan Bebas Temuan yang Diterbitkan oleh ITJEN (Asli)": "surat_bebas_temuan",
        "ANJAB dan ABK yang ditandatangani oleh PPK Instansi Asal (Bila Pindah Antar Kementerian)": "anjab_abk",
        "SK CPNS (Fotokopi legalisir)": "sk_cpns",
        "SK PNS (Fotokopi legalisir)": "sk_pns",
        "SK Pangkat Terakhir (Fotokopi legalisir)": "sk_pangkat_terakhir",
        "SK Jabatan Terakhir (Fotokopi legalisir)": "sk_jabatan_terakhir",
        "KARPEG (Fotokopi legalisir)": "karpeg",
        "Ijazah dan Transkrip Nilai Universitas (Fotokopi legalisir)": "ijazah_terakhir",
        "SKP 2 tahun terakhir (Fotokopi legalisir)": "skp_2_tahun",
        "Surat permohonan mutasi dari ybs": "surat_permohonan_mutasi",
        "Daftar Riwayat Hidup (DRH) sesuai Keputusan Kepala BKN Nomor 11 Tahun 2002": "drh",
        "Transkrip Nilai": "transkrip_nilai",
        "Kartu Keluarga": "kk",
    },
    RequestType.RETIREMENT.value: {
        "Surat Permohonan Pensiun dari Ybs": "surat_permohonan_pensiun",
        "Surat Permohonan Pensiun dari Janda/Duda Ybs": "surat_permohonan_pensiun",
        "Surat Permohonan Pensiun dari Anak Ybs": "surat_permohonan_pensiun",
        "Surat Permohonan Pensiun dari Ortu Ybs": "surat_permohonan_pensiun",
        "Foto Pegawai": "pas_foto",
        "Foto Janda/Duda Ybs": "pas_foto",
        "Foto Anak Ybs": "pas_foto",
        "Foto Ortu Ybs": "pas_foto",
        "KTP": "ktp",
        "KTP Janda/Duda": "ktp",
        "KTP Anak": "ktp",
        "KTP Ortu Ybs": "ktp",
        "NPWP": "npwp",
        "NPWP Janda/Duda": "npwp",
        "Daftar Susunan Keluarga": "daftar_keluarga",
        "Kartu Pegawai": "karpeg",
        "Surat Nikah": "surat_nikah",
        "Akte Kelahiran Anak": "akte_kelahiran_anak",
        "SK CPNS": "sk_cpns",
        "SK PNS": "sk_pns",
        "SK Kenaikan Pangkat Terakhir": "sk_pangkat_terakhir",
        "SK Jabatan Terakhir": "sk_jabatan_terakhir",
        "Kenaikan Gaji Berkala Terakhir": "kgb_terakhir",
        "SKP 2 Tahun Terakhir": "skp_2_tahun",
        "Surat Pernyataan Tidak Pernah Dijatuhi Hukuman Disiplin Sedang/Berat": "surat_tidak_hukuman_disiplin",
        "Surat Pernyataan Tidak Sedang Menjalani Proses Pidana": "surat_tidak_pidana",
        "Data Perorangan Calon Penerimaan Pensiun (DPCPP)": "dpcpp",
        "Data perorangan Calon Penerimaan Pensiun (DPCPP)": "dpcpp",
        "Buku Tabungan": "buku_tabungan",
        "Buku Tabungan Janda/Duda": "buku_tabungan",
        "Buku Tabungan Anak": "buku_tabungan",
        "Buku Tabungan Ortu": "buku_tabungan",
        "Karis/Karsu": "karis_karsu",
        "Surat Keterangan Kematian": "surat_kematian",
        "Surat Keterangan Kematian Ybs": "surat_kematian",
        "Surat Keterangan Kematian Pasangan YBS": "surat_kematian",
        "Surat Keterangan": "surat_kematian",
        "Surat Kematian": "surat_kematian",
        "Surat Keterangan Anak masih sekolah/kuliah": "surat_anak_sekolah",
        "Surat Keterangan Janda/Duda dari Kelurahan": "surat_janda_duda",
        "Berita Acara": "berita_acara_kematian",
        "Visum et repertum": "visum",
        "Surat Tugas Ybs": "surat_tugas",
        "Laporan Dari Pimpinan Unit Kerja": "laporan_pimpinan",
        "Kenaikan Pangkat Anumerta Sementara": "kp_anumerta",
        "Kartu Keluarga": "kk",
        "BPJS / KIS": "bpjs",
    },
}


# ═════════════════════════════════════════════════════════════════════════════
# Lookups
# ═════════════════════════════════════════════════════════════════════════════

def _check_request_type(request_type: str) -> str:
    if request_type not in CATALOG:
        raise ValidationError(
            f"Unknown request type '{request_type}'",
            details={"request_type": f"must be one of {sorted(CATALOG)}"},
        )
    return request_type


def list_categories(request_type: str) -> list[dict]:
    """Categories of a request type with their ordered document checklists."""
    return [
        {"id": c["id"], "name": c["name"], "documents": [dict(d) for d in c["documents"]]}
        for c in CATALOG[_check_request_type(request_type)]
    ]


def get_category(request_type: str, category: str) -> dict:
    for c in CATALOG[_check_request_type(request_type)]:
        if c["id"] == category:
            return c
    raise ValidationError(
        f"Unknown {request_type} category '{category}'",
        details={"category": category},
    )


def repository_key_for(request_type: str, document_name: str) -> str | None:
    """Repository key of a catalog document label, or None if unmapped."""
    return REPOSITORY_KEYS.get(request_type, {}).get(document_name)


def repository_keys(request_type: str) -> list[str]:
    """Distinct repository keys a request type can draw on."""
    return sorted(set(REPOSITORY_KEYS.get(request_type, {}).values()))


def request_types_using(repository_key: str) -> list[str]:
    """Request types whose checklists consume the given repository key."""
    return [rt for rt, mapping in REPOSITORY_KEYS.items() if repository_key in mapping.values()]


def build_checklist(request_type: str, category: str, user_id: str | None = None) -> list[dict]:
    """
    Ordered slot payloads for a (request_type, category) checklist.

    URLs are pre-filled from the user's document repository when a matching
    entry exists. This is a snapshot: later repository uploads do not touch
    existing requests.
    """
    entry = get_category(request_type, category)
    stored = {}
    if user_id:
        rows = db.session.execute(
            select(UserDocument).where(UserDocument.user_id == str(user_id))
        ).scalars()
        stored = {row.key: row.url for row in rows}

    checklist = []
    for doc in entry["documents"]:
        key = repository_key_for(request_type, doc["name"])
        checklist.append({
            "name": doc["name"],
            "note": doc["note"],
            "url": stored.get(key, "") if key else "",
            "repository_key": key,
        })
    return checklist
