from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from schemas.sponsored import AdminSpotCreate, AdminSpotCreated, AdminSpotList
from services.auth import require_admin
from services.sponsored.admin_service import create_spot, deactivate_spot, list_spots

router = APIRouter(tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/sponsored", response_model=AdminSpotList)
def list_sponsored_spots(db: Session = Depends(get_db)):
    return {"sponsored_spots": list_spots(db)}


@router.post("/sponsored", response_model=AdminSpotCreated, status_code=status.HTTP_201_CREATED)
def create_sponsored_spot(body: AdminSpotCreate, db: Session = Depends(get_db)):
    spot = create_spot(
        db,
        spot_type=body.spot_type,
        advertiser=body.advertiser,
        title=body.title,
        url=body.url,
        week_start=body.week_start,
        description=body.description,
        image_url=body.image_url,
        payment_amount=body.payment_amount,
    )
    return {"sponsored_spot": spot}


@router.delete("/sponsored/{spot_id}")
def deactivate_sponsored_spot(spot_id: int, db: Session = Depends(get_db)):
    deactivate_spot(db, spot_id)
    return {"success": True, "message": "Sponsored spot deactivated successfully"}
