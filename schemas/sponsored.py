from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_serializer


# Request bodies stay loose; the booking service owns field validation so the
# caller gets one 400 with a field-specific message instead of a 422 list.
class BookSlotRequest(BaseModel):
    spot_type: Optional[str] = None
    week_start: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    image_url: Optional[str] = None
    payment_token: Optional[str] = None


class ConfirmBookingRequest(BaseModel):
    booking_id: Optional[int] = None
    tx_hash: Optional[str] = None


class AdminSpotCreate(BaseModel):
    spot_type: Optional[str] = None
    advertiser: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    image_url: Optional[str] = None
    week_start: Optional[str] = None
    payment_amount: Optional[Decimal] = None


class PaymentInstructions(BaseModel):
    address: str
    amount: Decimal
    token: str
    token_contract: str
    chain: str
    chain_id: int
    expires_at: datetime

    @field_serializer("amount")
    def _amount(self, value: Decimal) -> float:
        return float(value)


class BookedSpotSummary(BaseModel):
    type: str
    week_start: date
    week_end: date
    title: str
    description: Optional[str] = None
    url: str


class BookSlotResponse(BaseModel):
    booking_id: int
    payment_instructions: PaymentInstructions
    spot: BookedSpotSummary


class SponsoredSpotOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    spot_type: str
    advertiser: str
    booked_by: Optional[str] = None
    title: str
    description: Optional[str] = None
    url: str
    image_url: Optional[str] = None
    payment_token: Optional[str] = None
    payment_amount: Optional[Decimal] = None
    payment_tx_hash: Optional[str] = None
    week_start: date
    week_end: date
    status: str
    hold_expires_at: Optional[datetime] = None
    created_at: datetime

    @field_serializer("payment_amount")
    def _payment_amount(self, value: Optional[Decimal]) -> Optional[float]:
        return None if value is None else float(value)


class ActiveSpotResponse(BaseModel):
    active_spot: Optional[SponsoredSpotOut] = None
    count: int


class ConfirmBookingResponse(BaseModel):
    success: bool = True
    booking: SponsoredSpotOut
    message: str = "Payment verified. Your sponsored spot is now active."


class AdminSpotList(BaseModel):
    sponsored_spots: List[SponsoredSpotOut]


class AdminSpotCreated(BaseModel):
    success: bool = True
    sponsored_spot: SponsoredSpotOut
    message: str = "Sponsored spot created successfully"
