from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class PaymentReceipt(Base):
    """A redeemed on-chain transfer. tx_hash is unique so a transfer pays for one thing only."""

    __tablename__ = "payment_receipts"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    tx_hash: Mapped[str] = mapped_column(String(66), unique=True, index=True, nullable=False)
    purpose: Mapped[str] = mapped_column(String(32), nullable=False)  # sponsored_spot | subscription
    twitter_handle: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    payment_token: Mapped[str] = mapped_column(String(8), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(36, 18), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
