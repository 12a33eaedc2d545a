from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, field_serializer


class SubscribeRequest(BaseModel):
    wallet_address: Optional[str] = None


class SubscriptionConfirmRequest(BaseModel):
    tx_hash: Optional[str] = None
    payment_token: str = "SNR"


class SubscriptionStatus(BaseModel):
    tier: str
    expires: Optional[datetime] = None
    days_remaining: int = 0


class SubscriptionInstructions(BaseModel):
    payment_address: str
    price_usd: Decimal
    accepted_tokens: Dict[str, str]
    payment_note: str
    chain: str
    duration_days: int
    instructions: str

    @field_serializer("price_usd")
    def _price(self, value: Decimal) -> float:
        return float(value)


class SubscriptionConfirmed(SubscriptionStatus):
    payment: Dict[str, Any]
