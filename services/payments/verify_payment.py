# services/payments/verify_payment.py
"""
On-chain payment verification for Base ERC-20 transfers.

Usage:
    result = await verify_payment(rpc, tx_hash, "USDC", Decimal("299"), payment_address)
    if not result.valid:
        ...  # result.error_kind / result.retryable tell the caller what to do

Checks, in order:
  1. the receipt exists and the transaction succeeded
  2. it emitted a Transfer event from the expected token contract
  3. the recipient is our payment address
  4. USDC: amount matches the USD price within 0.01 (USDC is pegged 1:1)
     SNR: amount is positive. There is no price oracle yet, so the SNR amount
     is NOT checked against the expected price.

Read-only and idempotent. Nothing here raises for bad chain data or RPC
failures; every failure comes back as a PaymentVerificationResult.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Union

from services.chain.rpc_client import RpcClientError
from services.payments.tokens import TRANSFER_EVENT_TOPIC, PaymentToken, get_payment_token

logger = logging.getLogger(__name__)

USD_TOLERANCE = Decimal("0.01")


class ReceiptSource(Protocol):
    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        ...


class PaymentErrorKind(str, Enum):
    RPC_ERROR = "rpc_error"
    TX_NOT_FOUND = "tx_not_found"
    TX_REVERTED = "tx_reverted"
    NO_TRANSFER_EVENT = "no_transfer_event"
    INVALID_TRANSFER_EVENT = "invalid_transfer_event"
    WRONG_RECIPIENT = "wrong_recipient"
    AMOUNT_MISMATCH = "amount_mismatch"
    ZERO_AMOUNT = "zero_amount"
    UNSUPPORTED_TOKEN = "unsupported_token"


# Worth asking the client to try again later (tx pending, node flaky).
RETRYABLE_KINDS = frozenset({PaymentErrorKind.RPC_ERROR, PaymentErrorKind.TX_NOT_FOUND})


@dataclass(frozen=True)
class PaymentVerificationResult:
    valid: bool
    payment_token: str
    error_kind: Optional[PaymentErrorKind] = None
    error: Optional[str] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    amount: Optional[Decimal] = None

    @property
    def retryable(self) -> bool:
        return self.error_kind in RETRYABLE_KINDS

    @property
    def display_amount(self) -> Optional[str]:
        if self.amount is None:
            return None
        places = 2 if self.payment_token == "USDC" else 4
        return f"{self.amount:.{places}f}"

    def to_dict(self) -> Dict[str, Any]:
        if self.valid:
            return {
                "valid": True,
                "from": self.from_address,
                "to": self.to_address,
                "amount": self.display_amount,
            }
        return {
            "valid": False,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "retryable": self.retryable,
        }


def _fail(token: PaymentToken, kind: PaymentErrorKind, message: str, **fields: Any) -> PaymentVerificationResult:
    return PaymentVerificationResult(
        valid=False,
        payment_token=token.symbol,
        error_kind=kind,
        error=message,
        **fields,
    )


def _receipt_succeeded(status: Any) -> bool:
    if isinstance(status, str):
        try:
            return int(status, 16) == 1
        except ValueError:
            return False
    return status == 1


def _topic_address(topic: str) -> str:
    """Indexed address topics are 32 bytes; the address is the low 20."""
    if not isinstance(topic, str) or len(topic) < 40:
        raise ValueError("topic too short for an address")
    return "0x" + topic[-40:].lower()


def find_transfer_log(logs: List[Dict[str, Any]], token: PaymentToken) -> Optional[Dict[str, Any]]:
    contract = token.contract.lower()
    for entry in logs:
        if not isinstance(entry, dict):
            continue
        topics = entry.get("topics") or []
        if not isinstance(topics, list) or not topics:
            continue
        if str(topics[0]).lower() != TRANSFER_EVENT_TOPIC:
            continue
        if str(entry.get("address", "")).lower() != contract:
            continue
        return entry
    return None


def decode_transfer(entry: Dict[str, Any], token: PaymentToken) -> tuple[str, str, Decimal]:
    """(from, to, amount in whole tokens). Raises ValueError on a malformed log."""
    topics = entry.get("topics") or []
    if len(topics) < 3:
        raise ValueError("Transfer event needs 3 topics")
    from_address = _topic_address(topics[1])
    to_address = _topic_address(topics[2])
    raw_amount = int(str(entry.get("data") or ""), 16)
    amount = Decimal(raw_amount).scaleb(-token.decimals)
    return from_address, to_address, amount


async def verify_payment(
    rpc: ReceiptSource,
    tx_hash: str,
    payment_token: str,
    expected_amount_usd: Union[Decimal, int, float, str],
    payment_address: str,
) -> PaymentVerificationResult:
    try:
        token = get_payment_token(payment_token)
    except ValueError as exc:
        return PaymentVerificationResult(
            valid=False,
            payment_token=str(payment_token),
            error_kind=PaymentErrorKind.UNSUPPORTED_TOKEN,
            error=str(exc),
        )
    expected = Decimal(str(expected_amount_usd))

    try:
        receipt = await rpc.get_transaction_receipt(tx_hash)
    except RpcClientError as exc:
        logger.warning("payment_rpc_error token=%s tx=%s error=%s", token.symbol, tx_hash, exc)
        return _fail(token, PaymentErrorKind.RPC_ERROR, f"RPC error: {exc}")

    if not receipt:
        return _fail(token, PaymentErrorKind.TX_NOT_FOUND, "Transaction not found or not mined")
    if not isinstance(receipt, dict):
        logger.warning("payment_receipt_malformed tx=%s type=%s", tx_hash, type(receipt).__name__)
        return _fail(token, PaymentErrorKind.RPC_ERROR, "RPC error: malformed transaction receipt")

    if not _receipt_succeeded(receipt.get("status")):
        return _fail(token, PaymentErrorKind.TX_REVERTED, "Transaction failed")

    logs = receipt.get("logs") or []
    if not isinstance(logs, list):
        logs = []
    transfer_log = find_transfer_log(logs, token)
    if transfer_log is None:
        return _fail(
            token,
            PaymentErrorKind.NO_TRANSFER_EVENT,
            f"No {token.symbol} Transfer event found in transaction",
        )

    try:
        from_address, to_address, amount = decode_transfer(transfer_log, token)
    except (TypeError, ValueError) as exc:
        logger.warning("payment_transfer_decode_failed tx=%s error=%s", tx_hash, exc)
        return _fail(token, PaymentErrorKind.INVALID_TRANSFER_EVENT, "Invalid Transfer event format")

    fields = {"from_address": from_address, "to_address": to_address, "amount": amount}

    if to_address != payment_address.lower():
        return _fail(
            token,
            PaymentErrorKind.WRONG_RECIPIENT,
            f"Payment sent to wrong address. Expected: {payment_address}, Got: {to_address}",
            **fields,
        )

    if token.symbol == "USDC":
        if abs(amount - expected) > USD_TOLERANCE:
            return _fail(
                token,
                PaymentErrorKind.AMOUNT_MISMATCH,
                f"Incorrect USDC amount. Expected: {expected}, Got: {amount:.2f}",
                **fields,
            )
    elif amount <= 0:
        return _fail(
            token,
            PaymentErrorKind.ZERO_AMOUNT,
            f"{token.symbol} transfer amount must be greater than 0",
            **fields,
        )

    logger.info(
        "payment_verified token=%s tx=%s from=%s amount=%s",
        token.symbol, tx_hash, from_address, amount,
    )
    return PaymentVerificationResult(valid=True, payment_token=token.symbol, **fields)
