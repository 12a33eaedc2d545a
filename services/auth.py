# services/auth.py
"""
Identity resolution.

Agents authenticate with an API key (`Authorization: Bearer snr_...` or
`x-api-key`); humans with a Supabase session JWT from signing in with X.
Both resolve to the same canonical identity: a lowercase handle.

Usage in a route:
    @router.post("/things")
    def create_thing(identity: Identity = Depends(get_current_identity)):
        ...
"""
from __future__ import annotations

import hmac
import logging
import re
import secrets
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from config.settings import Settings, get_settings
from database import get_db
from models.api_key import ApiKey
from services.errors import AuthenticationError
from services.supabase_auth import decode_supabase_token, handle_from_supabase_claims

logger = logging.getLogger(__name__)

API_KEY_PREFIX = "snr_"
HANDLE_RE = re.compile(r"^[a-z0-9_]{1,15}$")


@dataclass(frozen=True)
class Identity:
    handle: str
    source: str  # api_key | supabase


# ========================
# Handle helpers
# ========================

def normalize_handle(raw: str) -> str:
    return (raw or "").strip().lstrip("@").strip().lower()


def is_valid_handle(handle: str) -> bool:
    return bool(HANDLE_RE.match(handle or ""))


def generate_api_key() -> str:
    return API_KEY_PREFIX + secrets.token_hex(24)


# ========================
# Resolution
# ========================

def _bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    token = authorization.split(" ", 1)[1].strip()
    return token or None


def handle_for_api_key(db: Session, api_key: str) -> Optional[str]:
    row = (
        db.query(ApiKey)
        .filter(ApiKey.api_key == api_key, ApiKey.revoked.is_(False))
        .first()
    )
    return row.twitter_handle if row else None


def resolve_identity(
    db: Session,
    settings: Settings,
    *,
    authorization: Optional[str] = None,
    x_api_key: Optional[str] = None,
) -> Optional[Identity]:
    token = _bearer(authorization) or (x_api_key or "").strip() or None
    if not token:
        return None

    if token.startswith(API_KEY_PREFIX):
        handle = handle_for_api_key(db, token)
        return Identity(handle=handle, source="api_key") if handle else None

    payload = decode_supabase_token(token, settings)
    if not payload:
        return None
    raw_handle = handle_from_supabase_claims(payload)
    if not raw_handle:
        logger.info("supabase_token_without_handle sub=%s", payload.get("sub"))
        return None
    return Identity(handle=normalize_handle(raw_handle), source="supabase")


# ========================
# Dependencies
# ========================

def get_optional_identity(
    authorization: Optional[str] = Header(default=None),
    x_api_key: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Optional[Identity]:
    return resolve_identity(db, settings, authorization=authorization, x_api_key=x_api_key)


def get_current_identity(
    identity: Optional[Identity] = Depends(get_optional_identity),
) -> Identity:
    if identity is None:
        raise AuthenticationError(
            "Authentication required. Use API key (Bearer snr_...) or sign in with X."
        )
    return identity


def require_admin(
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    provided = _bearer(authorization)
    expected = settings.admin_api_key
    if not expected or not provided or not hmac.compare_digest(provided, expected):
        raise AuthenticationError("Admin API key required")
