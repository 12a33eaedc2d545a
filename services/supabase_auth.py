# services/supabase_auth.py
"""Humans sign in with X through Supabase OAuth; their session JWT carries the handle."""
import logging
from typing import Optional

from jose import JWTError, jwt

from config.settings import Settings

logger = logging.getLogger(__name__)


def decode_supabase_token(token: str, settings: Settings) -> Optional[dict]:
    if not settings.supabase_jwt_secret:
        return None
    try:
        return jwt.decode(
            token,
            settings.supabase_jwt_secret,  # HS256 uses shared secret
            algorithms=["HS256"],
            audience=settings.supabase_jwt_aud,
            issuer=f"{settings.supabase_project_url}/auth/v1",
        )
    except JWTError as e:
        logger.info("supabase_jwt_rejected reason=%s", e)
        return None


def handle_from_supabase_claims(payload: dict) -> Optional[str]:
    # The X provider puts the screen name in user_metadata
    meta = payload.get("user_metadata") or {}
    for key in ("user_name", "preferred_username"):
        value = meta.get(key) or payload.get(key)
        if value:
            return str(value)
    return None
