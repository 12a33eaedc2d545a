from typing import Optional

from fastapi import APIRouter

from schemas.project import HandleCheck
from services.auth import is_valid_handle, normalize_handle
from services.errors import ValidationError

router = APIRouter(tags=["verify-twitter"])


# Format check only; whether the account exists is verified out of band.
@router.post("")
def verify_handle(body: HandleCheck):
    if not body.handle:
        raise ValidationError("X handle is required", extra={"verified": False})
    handle = normalize_handle(body.handle)
    if not is_valid_handle(handle):
        raise ValidationError("Invalid handle format", extra={"verified": False})
    return {"verified": True, "handle": handle, "message": "Handle accepted"}


@router.get("")
def check_handle(handle: Optional[str] = None):
    if not handle:
        raise ValidationError("handle param required")
    clean = normalize_handle(handle)
    valid = is_valid_handle(clean)
    return {
        "handle": clean,
        "verified": valid,
        "note": "Format valid. Account existence is checked separately." if valid else "Invalid format",
    }
