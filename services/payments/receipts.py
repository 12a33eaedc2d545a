from __future__ import annotations

from sqlalchemy.orm import Session

from models.payment_receipt import PaymentReceipt
from services.errors import ConflictError
from services.payments.verify_payment import PaymentVerificationResult

TX_REPLAY_MESSAGE = "This transaction has already been used for a payment"


def normalize_tx_hash(tx_hash: str) -> str:
    value = (tx_hash or "").strip().lower()
    if len(value) != 66 or not value.startswith("0x"):
        raise ValueError("tx_hash must be a 0x-prefixed 32-byte hex string")
    try:
        int(value, 16)
    except ValueError:
        raise ValueError("tx_hash must be a 0x-prefixed 32-byte hex string") from None
    return value


def ensure_tx_unused(db: Session, tx_hash: str) -> None:
    exists = db.query(PaymentReceipt.id).filter(PaymentReceipt.tx_hash == tx_hash).first()
    if exists:
        raise ConflictError(TX_REPLAY_MESSAGE)


def stage_receipt(
    db: Session,
    *,
    tx_hash: str,
    purpose: str,
    handle: str,
    result: PaymentVerificationResult,
) -> PaymentReceipt:
    """Add a receipt to the caller's transaction; the caller commits.

    The unique index on tx_hash still backs ensure_tx_unused() when two
    confirmations race, so callers treat an IntegrityError on commit as replay.
    """
    receipt = PaymentReceipt(
        tx_hash=tx_hash,
        purpose=purpose,
        twitter_handle=handle,
        payment_token=result.payment_token,
        amount=result.amount,
    )
    db.add(receipt)
    return receipt
