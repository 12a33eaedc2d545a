from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config.settings import Settings
from models.api_key import ApiKey
from services.auth import generate_api_key
from services.errors import ConfigurationError, ConflictError, PaymentRequiredError, ValidationError
from services.payments.receipts import TX_REPLAY_MESSAGE, ensure_tx_unused, normalize_tx_hash, stage_receipt
from services.payments.tokens import BASE_CHAIN_NAME, PAYMENT_TOKENS, SNR, USDC
from services.payments.verify_payment import ReceiptSource, verify_payment
from utils.common_helpers import as_utc

logger = logging.getLogger(__name__)

SUBSCRIPTION_PRICE_USD = Decimal("9.99")
SUBSCRIPTION_DAYS = 30
WALLET_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def get_or_create_account(db: Session, handle: str) -> ApiKey:
    """Humans signed in with X may not have registered a key yet."""
    row = db.query(ApiKey).filter(ApiKey.twitter_handle == handle).first()
    if row:
        return row
    row = ApiKey(twitter_handle=handle, api_key=generate_api_key(), subscription_tier="free")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_subscription_status(db: Session, handle: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    row = db.query(ApiKey).filter(ApiKey.twitter_handle == handle).first()
    if not row or row.subscription_tier != "premium":
        return {"tier": "free", "expires": None, "days_remaining": 0}

    expires = as_utc(row.subscription_expires) if row.subscription_expires else None
    if not expires or expires <= now:
        # Lapsed premium reverts to free on read.
        row.subscription_tier = "free"
        db.commit()
        logger.info("subscription_lapsed handle=%s", handle)
        return {"tier": "free", "expires": None, "days_remaining": 0}

    days_remaining = math.ceil((expires - now).total_seconds() / 86_400)
    return {"tier": "premium", "expires": expires, "days_remaining": days_remaining}


def get_payment_instructions(
    db: Session,
    settings: Settings,
    handle: str,
    *,
    wallet_address: Optional[str] = None,
) -> Dict[str, Any]:
    if wallet_address:
        if not WALLET_RE.match(wallet_address):
            raise ValidationError("wallet_address must be a 0x-prefixed 20-byte hex address")
        row = get_or_create_account(db, handle)
        row.wallet_address = wallet_address
        db.commit()

    payment_address = settings.subscription_payment_address
    if not payment_address:
        logger.error("subscription_payment_address_missing")
        raise ConfigurationError("Payment system not configured")

    return {
        "payment_address": payment_address,
        "price_usd": SUBSCRIPTION_PRICE_USD,
        "accepted_tokens": {t.symbol: t.contract for t in (USDC, SNR)},
        "payment_note": "Priced at $9.99/month. USDC must match exactly; $SNR is accepted at market rate.",
        "chain": BASE_CHAIN_NAME,
        "duration_days": SUBSCRIPTION_DAYS,
        "instructions": (
            "Send $9.99 in USDC (or the equivalent in $SNR) to the payment address, "
            "then call POST /subscribe/confirm with the tx hash."
        ),
    }


async def confirm_subscription(
    db: Session,
    rpc: ReceiptSource,
    settings: Settings,
    handle: str,
    *,
    tx_hash: str,
    payment_token: str = "SNR",
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Verify a subscription payment and extend premium by SUBSCRIPTION_DAYS."""
    if payment_token not in PAYMENT_TOKENS:
        raise ValidationError("payment_token must be USDC or SNR")
    try:
        tx = normalize_tx_hash(tx_hash)
    except ValueError as exc:
        raise ValidationError(str(exc)) from None

    payment_address = settings.subscription_payment_address
    if not payment_address:
        raise ConfigurationError("Payment system not configured")

    ensure_tx_unused(db, tx)
    result = await verify_payment(rpc, tx, payment_token, SUBSCRIPTION_PRICE_USD, payment_address)
    if not result.valid:
        raise PaymentRequiredError(
            result.error or "Payment verification failed",
            extra={
                "error_kind": result.error_kind.value if result.error_kind else None,
                "retryable": result.retryable,
            },
        )

    now = now or datetime.now(timezone.utc)
    row = get_or_create_account(db, handle)
    current = as_utc(row.subscription_expires) if row.subscription_expires else None
    start = current if row.subscription_tier == "premium" and current and current > now else now
    expires = start + timedelta(days=SUBSCRIPTION_DAYS)

    stage_receipt(db, tx_hash=tx, purpose="subscription", handle=handle, result=result)
    row.subscription_tier = "premium"
    row.subscription_expires = expires
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(TX_REPLAY_MESSAGE) from None

    logger.info("subscription_confirmed handle=%s token=%s expires=%s", handle, payment_token, expires.isoformat())
    return {
        "tier": "premium",
        "expires": expires,
        "days_remaining": math.ceil((expires - now).total_seconds() / 86_400),
        "payment": result.to_dict(),
    }
