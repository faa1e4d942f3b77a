"""Booking directory and policy acceptance models (read-only here)."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from dcre.database import Base


class Booking(Base):
    """Bookings table - owned by the marketplace, consulted by the eligibility gate."""

    __tablename__ = "bookings"

    booking_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    renter_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("profiles.profile_id"), nullable=False
    )
    dealer_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("profiles.profile_id"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False
    )  # pending|confirmed|active|completed|canceled
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class PolicyAcceptance(Base):
    """Recorded acceptance of a versioned policy, optionally scoped to one resource."""

    __tablename__ = "policy_acceptances"

    acceptance_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    profile_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("profiles.profile_id"), nullable=False
    )
    policy_key: Mapped[str] = mapped_column(Text, nullable=False)
    policy_version: Mapped[str] = mapped_column(String(20), nullable=False)
    resource_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    resource_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)
    accepted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
