"""Profile model - marketplace users as seen by the resolution engine."""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from dcre.database import Base


class Profile(Base):
    """Profiles table - one per marketplace user, looked up by bearer token."""

    __tablename__ = "profiles"

    profile_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    full_name: Mapped[str] = mapped_column(Text, nullable=False)
    # renter|dealer|private_host|admin|prime_admin|super_admin
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    token_hash: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
