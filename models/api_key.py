from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, false as sa_false, func
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class ApiKey(Base):
    """One row per registered handle. Doubles as the subscription record."""

    __tablename__ = "api_keys"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    # canonical identity: lowercase X/Twitter handle without '@'
    twitter_handle: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    api_key: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    revoked: Mapped[bool] = mapped_column(Boolean, default=False, server_default=sa_false(), nullable=False)

    subscription_tier: Mapped[str] = mapped_column(String(16), default="free", server_default="free", nullable=False)  # free | premium
    subscription_expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    wallet_address: Mapped[str | None] = mapped_column(String(42), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
