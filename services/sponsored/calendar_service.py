from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.sponsored_spot import SponsoredSpot
from services.errors import ValidationError
from services.sponsored.pricing import SLOT_LABELS, SLOT_PRICING, SNR_DISCOUNT, SPOT_TYPES, upcoming_weeks
from utils.common_helpers import as_utc

logger = logging.getLogger(__name__)


def week_status(spot: Optional[SponsoredSpot], now: datetime) -> Dict[str, Any]:
    """available / held / booked for one slot-week. Expired holds read as available."""
    if spot is None:
        return {"status": "available"}
    if spot.status == "active":
        return {"status": "booked", "advertiser": spot.title or spot.advertiser}
    if spot.status == "held":
        if spot.hold_expires_at and as_utc(spot.hold_expires_at) < now:
            return {"status": "available"}
        return {"status": "held"}
    return {"status": "available"}


def list_slot_calendar(db: Session, now: Optional[datetime] = None) -> Dict[str, List[Dict[str, Any]]]:
    """Availability for every bookable slot type over the current and next four weeks.

    Read-only: expired holds are reported as available, never deleted here.
    """
    now = now or datetime.now(timezone.utc)
    weeks = upcoming_weeks(now.date())

    try:
        rows = (
            db.query(SponsoredSpot)
            .filter(
                SponsoredSpot.week_start.in_([start for start, _ in weeks]),
                SponsoredSpot.status.in_(("active", "held")),
            )
            .all()
        )
    except SQLAlchemyError as exc:
        logger.error("slot_calendar_query_failed error=%s", exc)
        return {"slots": []}

    by_slot = {(row.spot_type, row.week_start): row for row in rows}
    discount_label = f"{int(SNR_DISCOUNT * 100)}%"

    slots = []
    for spot_type, price in SLOT_PRICING.items():
        slot_weeks = []
        for start, end in weeks:
            entry = {"week_start": start.isoformat(), "week_end": end.isoformat()}
            entry.update(week_status(by_slot.get((spot_type, start)), now))
            slot_weeks.append(entry)
        slots.append({
            "type": spot_type,
            "label": SLOT_LABELS[spot_type],
            "price_usd": int(price),
            "price_snr_discount": discount_label,
            "weeks": slot_weeks,
        })
    return {"slots": slots}


def get_active_spot(db: Session, spot_type: Optional[str], today: Optional[date] = None) -> Optional[SponsoredSpot]:
    """The newest active spot of *spot_type* whose week contains *today*."""
    if not spot_type:
        raise ValidationError("type parameter is required (e.g., ?type=homepage_inline)")
    if spot_type not in SPOT_TYPES:
        raise ValidationError(f"Invalid type. Must be one of: {', '.join(SPOT_TYPES)}")

    today = today or datetime.now(timezone.utc).date()
    return (
        db.query(SponsoredSpot)
        .filter(
            SponsoredSpot.spot_type == spot_type,
            SponsoredSpot.status == "active",
            SponsoredSpot.week_start <= today,
            SponsoredSpot.week_end >= today,
        )
        .order_by(SponsoredSpot.created_at.desc(), SponsoredSpot.id.desc())
        .first()
    )
