# services/sponsored/booking_service.py
"""
Sponsored slot booking: hold a slot-week, then confirm it with an on-chain payment.

A booking starts as a `held` row that expires after HOLD_MINUTES. The partial
unique index on (spot_type, week_start) over held/active rows is what prevents
double booking: expired holds for the slot-week are deleted and the new hold is
inserted in the same transaction, and a live competitor turns the insert into
an IntegrityError (409).
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from config.settings import Settings
from models.sponsored_spot import SponsoredSpot
from services.errors import (
    ConfigurationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PaymentRequiredError,
    ServiceError,
    ValidationError,
)
from services.payments.receipts import TX_REPLAY_MESSAGE, ensure_tx_unused, normalize_tx_hash, stage_receipt
from services.payments.tokens import BASE_CHAIN_ID, BASE_CHAIN_NAME, PAYMENT_TOKENS, get_payment_token
from services.payments.verify_payment import ReceiptSource, verify_payment
from services.sponsored.pricing import (
    HOLD_MINUTES,
    SLOT_PRICING,
    compute_price,
    parse_week_start,
    week_end_for,
)
from utils.common_helpers import as_utc

logger = logging.getLogger(__name__)

TITLE_MAX = 60
DESCRIPTION_MAX = 120

SLOT_TAKEN_MESSAGE = "This slot is already booked or held for the selected week"


def _require_payment_address(settings: Settings) -> str:
    if not settings.sponsored_payment_address:
        logger.error("sponsored_payment_address_missing")
        raise ConfigurationError("Payment address not configured")
    return settings.sponsored_payment_address


def delete_expired_holds(db: Session, spot_type: str, week: date, now: datetime) -> int:
    """Lazy cleanup: an expired hold no longer blocks its slot-week. Does not commit."""
    return (
        db.query(SponsoredSpot)
        .filter(
            SponsoredSpot.spot_type == spot_type,
            SponsoredSpot.week_start == week,
            SponsoredSpot.status == "held",
            SponsoredSpot.hold_expires_at < now,
        )
        .delete(synchronize_session=False)
    )


def _validate_booking_fields(
    *,
    spot_type: Optional[str],
    week_start: Optional[str],
    title: Optional[str],
    description: Optional[str],
    url: Optional[str],
    payment_token: Optional[str],
):
    if not spot_type or not week_start or not title or not url or not payment_token:
        raise ValidationError("Missing required fields: spot_type, week_start, title, url, payment_token")
    if spot_type not in SLOT_PRICING:
        raise ValidationError(f"Invalid spot_type. Must be one of: {', '.join(SLOT_PRICING)}")
    if len(title) > TITLE_MAX:
        raise ValidationError(f"Title must be {TITLE_MAX} characters or less")
    if description and len(description) > DESCRIPTION_MAX:
        raise ValidationError(f"Description must be {DESCRIPTION_MAX} characters or less")
    if not url.startswith("https://"):
        raise ValidationError("URL must start with https://")
    if payment_token not in PAYMENT_TOKENS:
        raise ValidationError("payment_token must be USDC or SNR")
    try:
        return parse_week_start(week_start)
    except ValueError as exc:
        raise ValidationError(str(exc)) from None


def book_slot(
    db: Session,
    settings: Settings,
    handle: str,
    *,
    spot_type: Optional[str],
    week_start: Optional[str],
    title: Optional[str],
    description: Optional[str] = None,
    url: Optional[str] = None,
    image_url: Optional[str] = None,
    payment_token: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Place a HOLD_MINUTES hold on (spot_type, week_start) for *handle*.

    Every check runs before the first write. Returns booking id, payment
    instructions and a spot summary.
    """
    week = _validate_booking_fields(
        spot_type=spot_type,
        week_start=week_start,
        title=title,
        description=description,
        url=url,
        payment_token=payment_token,
    )
    week_end = week_end_for(week)
    amount = compute_price(spot_type, payment_token)
    token = get_payment_token(payment_token)
    payment_address = _require_payment_address(settings)

    now = now or datetime.now(timezone.utc)
    hold_expires_at = now + timedelta(minutes=HOLD_MINUTES)

    spot = SponsoredSpot(
        spot_type=spot_type,
        advertiser=handle,
        booked_by=handle,
        title=title,
        description=description or None,
        url=url,
        image_url=image_url or None,
        payment_token=token.symbol,
        payment_amount=amount,
        week_start=week,
        week_end=week_end,
        status="held",
        hold_expires_at=hold_expires_at,
        created_at=now,
        updated_at=now,
    )

    try:
        delete_expired_holds(db, spot_type, week, now)
        db.add(spot)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("slot_unavailable spot_type=%s week_start=%s handle=%s", spot_type, week, handle)
        raise ConflictError(SLOT_TAKEN_MESSAGE) from None
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("slot_booking_failed spot_type=%s week_start=%s error=%s", spot_type, week, exc)
        raise ServiceError("Failed to create booking") from exc

    db.refresh(spot)
    logger.info(
        "slot_held booking_id=%s spot_type=%s week_start=%s handle=%s token=%s amount=%s",
        spot.id, spot_type, week, handle, token.symbol, amount,
    )

    return {
        "booking_id": spot.id,
        "payment_instructions": {
            "address": payment_address,
            "amount": amount,
            "token": token.label,
            "token_contract": token.contract,
            "chain": BASE_CHAIN_NAME,
            "chain_id": BASE_CHAIN_ID,
            "expires_at": hold_expires_at,
        },
        "spot": {
            "type": spot_type,
            "week_start": week,
            "week_end": week_end,
            "title": title,
            "description": description or None,
            "url": url,
        },
    }


async def confirm_booking(
    db: Session,
    rpc: ReceiptSource,
    settings: Settings,
    handle: str,
    *,
    booking_id: Optional[int],
    tx_hash: Optional[str],
    now: Optional[datetime] = None,
) -> SponsoredSpot:
    """Turn a held booking into an active one once its payment verifies on-chain.

    The hold must still be live: once `hold_expires_at` passes, the slot-week
    reads as available and the booker has to hold it again.
    """
    if not booking_id or not tx_hash:
        raise ValidationError("booking_id and tx_hash are required")
    try:
        tx = normalize_tx_hash(tx_hash)
    except ValueError as exc:
        raise ValidationError(str(exc)) from None

    spot = db.get(SponsoredSpot, booking_id)
    if not spot:
        raise NotFoundError("Booking not found")
    if spot.booked_by != handle:
        raise ForbiddenError("This booking belongs to another account")
    if spot.status == "active":
        raise ConflictError("Booking is already active")
    if spot.status != "held":
        raise ConflictError("Booking is no longer held. Book the slot again.")

    now = now or datetime.now(timezone.utc)
    if spot.hold_expires_at is None or as_utc(spot.hold_expires_at) <= now:
        logger.info("booking_hold_expired booking_id=%s handle=%s", booking_id, handle)
        raise ConflictError("Hold expired. Book the slot again.")

    payment_address = _require_payment_address(settings)
    ensure_tx_unused(db, tx)

    result = await verify_payment(rpc, tx, spot.payment_token, spot.payment_amount, payment_address)
    if not result.valid:
        logger.info(
            "booking_payment_rejected booking_id=%s kind=%s",
            booking_id, result.error_kind.value if result.error_kind else None,
        )
        raise PaymentRequiredError(
            result.error or "Payment verification failed",
            extra={
                "error_kind": result.error_kind.value if result.error_kind else None,
                "retryable": result.retryable,
            },
        )

    stage_receipt(db, tx_hash=tx, purpose="sponsored_spot", handle=handle, result=result)
    spot.status = "active"
    spot.hold_expires_at = None
    spot.payment_tx_hash = tx
    spot.updated_at = now

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(TX_REPLAY_MESSAGE) from None
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("booking_confirm_failed booking_id=%s error=%s", booking_id, exc)
        raise ServiceError("Failed to confirm booking") from exc

    db.refresh(spot)
    logger.info("slot_activated booking_id=%s spot_type=%s week_start=%s", spot.id, spot.spot_type, spot.week_start)
    return spot
