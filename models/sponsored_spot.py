from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, Index, Numeric, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from database import Base

# At most one live (held or active) booking per slot-week. Expired holds are
# deleted before a new hold is inserted, so the index is the double-booking guard.
_LIVE_SLOT_WHERE = text("status IN ('held', 'active')")


class SponsoredSpot(Base):
    __tablename__ = "sponsored_spots"
    __table_args__ = (
        Index(
            "uq_sponsored_spots_live_slot",
            "spot_type",
            "week_start",
            unique=True,
            postgresql_where=_LIVE_SLOT_WHERE,
            sqlite_where=_LIVE_SLOT_WHERE,
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    spot_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)  # homepage_inline | homepage_banner | project_sidebar
    advertiser: Mapped[str] = mapped_column(String(120), nullable=False)
    booked_by: Mapped[str | None] = mapped_column(String(32), nullable=True)

    title: Mapped[str] = mapped_column(String(60), nullable=False)
    description: Mapped[str | None] = mapped_column(String(120), nullable=True)
    url: Mapped[str] = mapped_column(String(500), nullable=False)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    payment_token: Mapped[str | None] = mapped_column(String(8), nullable=True)  # USDC | SNR
    payment_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    payment_tx_hash: Mapped[str | None] = mapped_column(String(66), unique=True, nullable=True)

    week_start: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    week_end: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[str] = mapped_column(String(16), default="held", nullable=False, index=True)  # held | active | expired
    hold_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
