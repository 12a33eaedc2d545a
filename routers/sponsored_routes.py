from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from config.settings import Settings, get_settings
from database import get_db
from middleware.rate_limit import WRITE_RATE_LIMIT, limiter
from schemas.sponsored import (
    ActiveSpotResponse,
    BookSlotRequest,
    BookSlotResponse,
    ConfirmBookingRequest,
    ConfirmBookingResponse,
)
from services.auth import Identity, get_current_identity
from services.chain.rpc_client import BaseRpcClient, get_rpc_client
from services.sponsored.booking_service import book_slot, confirm_booking
from services.sponsored.calendar_service import get_active_spot, list_slot_calendar

router = APIRouter(tags=["sponsored"])


@router.get("", response_model=ActiveSpotResponse)
def get_sponsored_spot(
    spot_type: Optional[str] = Query(default=None, alias="type"),
    db: Session = Depends(get_db),
):
    spot = get_active_spot(db, spot_type)
    return {"active_spot": spot, "count": 1 if spot else 0}


@router.get("/slots")
def get_slot_calendar(db: Session = Depends(get_db)):
    return list_slot_calendar(db)


@router.post("/book", response_model=BookSlotResponse)
@limiter.limit(WRITE_RATE_LIMIT)
def book_sponsored_slot(
    request: Request,
    body: BookSlotRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return book_slot(
        db,
        settings,
        identity.handle,
        spot_type=body.spot_type,
        week_start=body.week_start,
        title=body.title,
        description=body.description,
        url=body.url,
        image_url=body.image_url,
        payment_token=body.payment_token,
    )


@router.post("/confirm", response_model=ConfirmBookingResponse)
@limiter.limit(WRITE_RATE_LIMIT)
async def confirm_sponsored_slot(
    request: Request,
    body: ConfirmBookingRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    rpc: BaseRpcClient = Depends(get_rpc_client),
):
    spot = await confirm_booking(
        db,
        rpc,
        settings,
        identity.handle,
        booking_id=body.booking_id,
        tx_hash=body.tx_hash,
    )
    return {"booking": spot}
