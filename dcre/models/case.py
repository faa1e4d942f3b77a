"""Case, message, evidence and decision models."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from dcre.database import Base


class Case(Base):
    """Dispute or complaint tied to exactly one booking."""

    __tablename__ = "cases"

    case_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)  # dispute|complaint
    booking_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("bookings.booking_id"), nullable=False
    )
    opened_by: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    opened_by_role: Mapped[str] = mapped_column(String(20), nullable=False)
    renter_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    dealer_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class CaseMessage(Base):
    """Case messages - append-only."""

    __tablename__ = "case_messages"

    message_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    case_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("cases.case_id"), nullable=False
    )
    sender_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    sender_role: Mapped[str] = mapped_column(String(20), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class CaseEvidence(Base):
    """Evidence pointers into the object store - append-only."""

    __tablename__ = "case_evidence"

    evidence_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    case_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("cases.case_id"), nullable=False
    )
    uploaded_by: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    uploaded_by_role: Mapped[str] = mapped_column(String(20), nullable=False)
    bucket: Mapped[str] = mapped_column(Text, nullable=False)
    storage_path: Mapped[str] = mapped_column(Text, nullable=False)
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    content_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    # Index within one upload batch; rows in a batch share created_at
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class CaseDecision(Base):
    """Decision ledger - rows are never updated."""

    __tablename__ = "case_decisions"

    decision_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    case_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("cases.case_id"), nullable=False
    )
    decided_by: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    decided_by_role: Mapped[str] = mapped_column(String(20), nullable=False)
    decision: Mapped[str] = mapped_column(String(32), nullable=False)
    is_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    from_status: Mapped[str] = mapped_column(String(32), nullable=False)
    to_status: Mapped[str] = mapped_column(String(32), nullable=False)
    notes: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
