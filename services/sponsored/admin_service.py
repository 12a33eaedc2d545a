from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.sponsored_spot import SponsoredSpot
from services.errors import ConflictError, NotFoundError, ValidationError
from services.sponsored.booking_service import SLOT_TAKEN_MESSAGE, delete_expired_holds
from services.sponsored.pricing import SPOT_TYPES, parse_week_start, week_end_for

logger = logging.getLogger(__name__)


def list_spots(db: Session) -> List[SponsoredSpot]:
    return (
        db.query(SponsoredSpot)
        .order_by(SponsoredSpot.created_at.desc(), SponsoredSpot.id.desc())
        .all()
    )


def create_spot(
    db: Session,
    *,
    spot_type: Optional[str],
    advertiser: Optional[str],
    title: Optional[str],
    url: Optional[str],
    week_start: Optional[str],
    description: Optional[str] = None,
    image_url: Optional[str] = None,
    payment_amount: Optional[Union[str, Decimal]] = None,
    now: Optional[datetime] = None,
) -> SponsoredSpot:
    """Create an already-paid (active) spot, e.g. for deals settled off-platform."""
    if not spot_type or not advertiser or not title or not url or not week_start:
        raise ValidationError("Required fields: spot_type, advertiser, title, url, week_start")
    if spot_type not in SPOT_TYPES:
        raise ValidationError(f"Invalid spot_type. Must be one of: {', '.join(SPOT_TYPES)}")
    try:
        week = parse_week_start(week_start)
    except ValueError as exc:
        raise ValidationError(str(exc)) from None

    amount = None
    if payment_amount is not None:
        try:
            amount = Decimal(str(payment_amount))
        except InvalidOperation:
            raise ValidationError("payment_amount must be a number") from None
        if amount < 0:
            raise ValidationError("payment_amount must not be negative")

    now = now or datetime.now(timezone.utc)
    spot = SponsoredSpot(
        spot_type=spot_type,
        advertiser=advertiser,
        title=title,
        description=description,
        url=url,
        image_url=image_url,
        payment_amount=amount,
        week_start=week,
        week_end=week_end_for(week),
        status="active",
        created_at=now,
        updated_at=now,
    )
    delete_expired_holds(db, spot_type, week, now)
    db.add(spot)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(SLOT_TAKEN_MESSAGE) from None
    db.refresh(spot)
    logger.info("admin_spot_created id=%s spot_type=%s week_start=%s", spot.id, spot_type, week)
    return spot


def deactivate_spot(db: Session, spot_id: int) -> SponsoredSpot:
    spot = db.get(SponsoredSpot, spot_id)
    if not spot:
        raise NotFoundError("Sponsored spot not found")
    spot.status = "expired"
    spot.hold_expires_at = None
    spot.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(spot)
    logger.info("admin_spot_deactivated id=%s", spot_id)
    return spot
