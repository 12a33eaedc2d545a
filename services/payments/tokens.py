from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

BASE_CHAIN_NAME = "Base"
BASE_CHAIN_ID = 8453

# keccak256("Transfer(address,address,uint256)")
TRANSFER_EVENT_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"


@dataclass(frozen=True)
class PaymentToken:
    symbol: str
    label: str
    contract: str
    decimals: int


USDC = PaymentToken(
    symbol="USDC",
    label="USDC",
    contract="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
    decimals=6,
)

SNR = PaymentToken(
    symbol="SNR",
    label="$SNR",
    contract="0xE1231f809124e4Aa556cD9d8c28CB33f02c75b07",
    decimals=18,
)

PAYMENT_TOKENS: Dict[str, PaymentToken] = {t.symbol: t for t in (USDC, SNR)}


def get_payment_token(symbol: str) -> PaymentToken:
    try:
        return PAYMENT_TOKENS[symbol]
    except KeyError:
        raise ValueError(f"payment_token must be one of: {', '.join(PAYMENT_TOKENS)}") from None
