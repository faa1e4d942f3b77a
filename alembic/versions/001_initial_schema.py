"""Initial schema - profiles, bookings, policy_acceptances, cases, messages, evidence, decisions, audit_logs.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("profile_id", sa.UUID(), primary_key=True),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("token_hash", sa.String(255), unique=True, nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )

    op.create_table(
        "bookings",
        sa.Column("booking_id", sa.UUID(), primary_key=True),
        sa.Column("renter_id", sa.UUID(), sa.ForeignKey("profiles.profile_id"), nullable=False),
        sa.Column("dealer_id", sa.UUID(), sa.ForeignKey("profiles.profile_id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("start_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("end_date", sa.TIMESTAMP(timezone=True), nullable=False),
    )

    op.create_table(
        "policy_acceptances",
        sa.Column("acceptance_id", sa.UUID(), primary_key=True),
        sa.Column("profile_id", sa.UUID(), sa.ForeignKey("profiles.profile_id"), nullable=False),
        sa.Column("policy_key", sa.Text(), nullable=False),
        sa.Column("policy_version", sa.String(20), nullable=False),
        sa.Column("resource_type", sa.String(20), nullable=True),
        sa.Column("resource_id", sa.UUID(), nullable=True),
        sa.Column("accepted_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_policy_acceptances_profile_policy",
        "policy_acceptances",
        ["profile_id", "policy_key", "policy_version"],
    )

    op.create_table(
        "cases",
        sa.Column("case_id", sa.UUID(), primary_key=True),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("booking_id", sa.UUID(), sa.ForeignKey("bookings.booking_id"), nullable=False),
        sa.Column("opened_by", sa.UUID(), nullable=False),
        sa.Column("opened_by_role", sa.String(20), nullable=False),
        sa.Column("renter_id", sa.UUID(), nullable=False),
        sa.Column("dealer_id", sa.UUID(), nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index("ix_cases_kind_created_at", "cases", ["kind", "created_at"])
    op.create_index("ix_cases_renter_id", "cases", ["renter_id"])
    op.create_index("ix_cases_dealer_id", "cases", ["dealer_id"])
    op.create_index("ix_cases_booking_id", "cases", ["booking_id"])

    op.create_table(
        "case_messages",
        sa.Column("message_id", sa.UUID(), primary_key=True),
        sa.Column("case_id", sa.UUID(), sa.ForeignKey("cases.case_id"), nullable=False),
        sa.Column("sender_id", sa.UUID(), nullable=False),
        sa.Column("sender_role", sa.String(20), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index("ix_case_messages_case_id", "case_messages", ["case_id", "created_at"])

    op.create_table(
        "case_evidence",
        sa.Column("evidence_id", sa.UUID(), primary_key=True),
        sa.Column("case_id", sa.UUID(), sa.ForeignKey("cases.case_id"), nullable=False),
        sa.Column("uploaded_by", sa.UUID(), nullable=False),
        sa.Column("uploaded_by_role", sa.String(20), nullable=False),
        sa.Column("bucket", sa.Text(), nullable=False),
        sa.Column("storage_path", sa.Text(), nullable=False),
        sa.Column("file_name", sa.Text(), nullable=False),
        sa.Column("content_type", sa.String(100), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_case_evidence_case_id", "case_evidence", ["case_id", "created_at", "position"]
    )

    op.create_table(
        "case_decisions",
        sa.Column("decision_id", sa.UUID(), primary_key=True),
        sa.Column("case_id", sa.UUID(), sa.ForeignKey("cases.case_id"), nullable=False),
        sa.Column("decided_by", sa.UUID(), nullable=False),
        sa.Column("decided_by_role", sa.String(20), nullable=False),
        sa.Column("decision", sa.String(32), nullable=False),
        sa.Column("is_override", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("from_status", sa.String(32), nullable=False),
        sa.Column("to_status", sa.String(32), nullable=False),
        sa.Column("notes", sa.Text(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index("ix_case_decisions_case_id", "case_decisions", ["case_id", "created_at"])

    op.create_table(
        "audit_logs",
        sa.Column("audit_id", sa.UUID(), primary_key=True),
        sa.Column("actor_id", sa.UUID(), nullable=True),
        sa.Column("actor_role", sa.String(20), nullable=True),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("resource_type", sa.String(20), nullable=False),
        sa.Column("resource_id", sa.Text(), nullable=True),
        sa.Column("previous_state", postgresql.JSONB(), nullable=True),
        sa.Column("new_state", postgresql.JSONB(), nullable=True),
        sa.Column("details", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_audit_logs_resource",
        "audit_logs",
        ["resource_type", "resource_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_audit_logs_resource", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_case_decisions_case_id", table_name="case_decisions")
    op.drop_table("case_decisions")
    op.drop_index("ix_case_evidence_case_id", table_name="case_evidence")
    op.drop_table("case_evidence")
    op.drop_index("ix_case_messages_case_id", table_name="case_messages")
    op.drop_table("case_messages")
    op.drop_index("ix_cases_booking_id", table_name="cases")
    op.drop_index("ix_cases_dealer_id", table_name="cases")
    op.drop_index("ix_cases_renter_id", table_name="cases")
    op.drop_index("ix_cases_kind_created_at", table_name="cases")
    op.drop_table("cases")
    op.drop_index("ix_policy_acceptances_profile_policy", table_name="policy_acceptances")
    op.drop_table("policy_acceptances")
    op.drop_table("bookings")
    op.drop_table("profiles")
