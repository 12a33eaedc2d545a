from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from config.settings import Settings, get_settings
from database import get_db
from middleware.rate_limit import WRITE_RATE_LIMIT, limiter
from schemas.subscription import (
    SubscribeRequest,
    SubscriptionConfirmed,
    SubscriptionConfirmRequest,
    SubscriptionInstructions,
    SubscriptionStatus,
)
from services.auth import Identity, get_current_identity
from services.chain.rpc_client import BaseRpcClient, get_rpc_client
from services.subscription_service import (
    confirm_subscription,
    get_payment_instructions,
    get_subscription_status,
)

router = APIRouter(tags=["subscribe"])


@router.get("", response_model=SubscriptionStatus)
def subscription_status(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    return get_subscription_status(db, identity.handle)


@router.post("", response_model=SubscriptionInstructions)
def start_subscription(
    body: SubscribeRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return get_payment_instructions(db, settings, identity.handle, wallet_address=body.wallet_address)


@router.post("/confirm", response_model=SubscriptionConfirmed)
@limiter.limit(WRITE_RATE_LIMIT)
async def confirm_subscription_payment(
    request: Request,
    body: SubscriptionConfirmRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    rpc: BaseRpcClient = Depends(get_rpc_client),
):
    return await confirm_subscription(
        db,
        rpc,
        settings,
        identity.handle,
        tx_hash=body.tx_hash,
        payment_token=body.payment_token,
    )
