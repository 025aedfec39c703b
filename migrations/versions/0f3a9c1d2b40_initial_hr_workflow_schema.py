"""initial_hr_workflow_schema

Create work units, user document repository, service requests with their
document slots and leave details, consultations with messages, and the
append-only history ledger.

Revision ID: 0f3a9c1d2b40
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "0f3a9c1d2b40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "work_units" not in existing_tables:
        op.create_table(
            "work_units",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("code", sa.String(length=40), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("admin_unit_id", sa.String(length=64), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("code"),
        )

    if "user_documents" not in existing_tables:
        op.create_table(
            "user_documents",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.String(length=64), nullable=False),
            sa.Column("key", sa.String(length=80), nullable=False),
            sa.Column("name", sa.String(length=300), nullable=False),
            sa.Column("url", sa.String(length=1000), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("user_id", "key", name="uq_user_documents_user_key"),
        )
        op.create_index("ix_user_documents_user_id", "user_documents", ["user_id"])

    if "service_requests" not in existing_tables:
        op.create_table(
            "service_requests",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("request_type", sa.String(length=20), nullable=False),
            sa.Column("category", sa.String(length=60), nullable=True),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("submitted_by", sa.String(length=64), nullable=False),
            sa.Column("work_unit_id", sa.Integer(), nullable=False),
            sa.Column("target_work_unit_id", sa.Integer(), nullable=True),
            sa.Column("status", sa.String(length=30), nullable=False),
            sa.Column("details", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("unit_approved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(["work_unit_id"], ["work_units.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["target_work_unit_id"], ["work_units.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_service_requests_submitted_by", "service_requests", ["submitted_by"])
        op.create_index("ix_service_requests_work_unit_id", "service_requests", ["work_unit_id"])
        op.create_index("ix_service_requests_status", "service_requests", ["status"])
        op.create_index("idx_service_requests_unit_status", "service_requests", ["work_unit_id", "status"])

    if "document_slots" not in existing_tables:
        op.create_table(
            "document_slots",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("request_id", sa.String(length=36), nullable=False),
            sa.Column("position", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=300), nullable=False),
            sa.Column("url", sa.String(length=1000), nullable=False, server_default=""),
            sa.Column("note", sa.Text(), nullable=True),
            sa.Column("repository_key", sa.String(length=80), nullable=True),
            sa.Column("verification_status", sa.String(length=20), nullable=False,
                      server_default="pending_review"),
            sa.Column("verification_note", sa.Text(), nullable=True),
            sa.Column("verified_by", sa.String(length=64), nullable=True),
            sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["request_id"], ["service_requests.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("request_id", "position", name="uq_document_slots_request_position"),
        )
        op.create_index("ix_document_slots_request_id", "document_slots", ["request_id"])

    if "leave_details" not in existing_tables:
        op.create_table(
            "leave_details",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("request_id", sa.String(length=36), nullable=False),
            sa.Column("leave_type", sa.String(length=30), nullable=False),
            sa.Column("start_date", sa.Date(), nullable=False),
            sa.Column("end_date", sa.Date(), nullable=False),
            sa.Column("total_days", sa.Integer(), nullable=False),
            sa.Column("substitute_employee", sa.String(length=200), nullable=True),
            sa.Column("reason", sa.Text(), nullable=True),
            sa.Column("emergency_contact", sa.String(length=200), nullable=True),
            sa.ForeignKeyConstraint(["request_id"], ["service_requests.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("request_id"),
        )

    if "consultations" not in existing_tables:
        op.create_table(
            "consultations",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("subject", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("category", sa.String(length=30), nullable=False, server_default="other"),
            sa.Column("priority", sa.String(length=10), nullable=False, server_default="medium"),
            sa.Column("submitted_by", sa.String(length=64), nullable=False),
            sa.Column("work_unit_id", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(length=30), nullable=False),
            sa.Column("is_escalated", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("current_handler_id", sa.String(length=64), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(["work_unit_id"], ["work_units.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_consultations_submitted_by", "consultations", ["submitted_by"])
        op.create_index("ix_consultations_work_unit_id", "consultations", ["work_unit_id"])
        op.create_index("ix_consultations_status", "consultations", ["status"])
        op.create_index("idx_consultations_unit_status", "consultations", ["work_unit_id", "status"])

    if "consultation_messages" not in existing_tables:
        op.create_table(
            "consultation_messages",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("consultation_id", sa.String(length=36), nullable=False),
            sa.Column("sender_id", sa.String(length=64), nullable=False),
            sa.Column("sender_role", sa.String(length=30), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("message_type", sa.String(length=20), nullable=False),
            sa.Column("is_from_central_reviewer", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["consultation_id"], ["consultations.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_consultation_messages_thread", "consultation_messages",
                        ["consultation_id", "created_at"])

    if "history_entries" not in existing_tables:
        op.create_table(
            "history_entries",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("item_id", sa.String(length=36), nullable=False),
            sa.Column("item_type", sa.String(length=30), nullable=False),
            sa.Column("action", sa.String(length=80), nullable=False),
            sa.Column("actor_role", sa.String(length=30), nullable=False),
            sa.Column("actor_id", sa.String(length=64), nullable=False),
            sa.Column("note", sa.Text(), nullable=True),
            sa.Column("from_status", sa.String(length=30), nullable=True),
            sa.Column("to_status", sa.String(length=30), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_history_item", "history_entries", ["item_type", "item_id"])
        op.create_index("idx_history_actor", "history_entries", ["actor_id"])
        op.create_index("idx_history_ts", "history_entries", ["timestamp"])


def downgrade():
    op.drop_table("history_entries")
    op.drop_table("consultation_messages")
    op.drop_table("consultations")
    op.drop_table("leave_details")
    op.drop_table("document_slots")
    op.drop_table("service_requests")
    op.drop_table("user_documents")
    op.drop_table("work_units")
