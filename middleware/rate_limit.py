# middleware/rate_limit.py
"""
Request-rate limiting using slowapi.

This is the per-minute abuse guard. Plan quotas (submissions per week,
upvotes per day) live in services/tier.py.

Usage in route files:
    from middleware.rate_limit import limiter

    @router.post("/book")
    @limiter.limit("10/minute")
    async def book(request: Request, ...):
        ...
"""
import hashlib
import logging
import os

from fastapi import Request
from jose import JWTError, jwt
from slowapi import Limiter
from slowapi.util import get_remote_address

from services.auth import API_KEY_PREFIX

logger = logging.getLogger(__name__)


def _get_rate_limit_key(request: Request) -> str:
    """
    Identify the caller for rate-limiting.

    Strategy:
      1. API key callers bucket on a hash of the key (never the raw key).
      2. Supabase JWT callers bucket on the unverified 'sub' claim. Auth is
         enforced separately by the get_current_identity dependency.
      3. Otherwise, fall back to client IP.
    """
    auth = request.headers.get("Authorization", "")
    token = auth.split(" ", 1)[1].strip() if auth.lower().startswith("bearer ") else ""
    token = token or request.headers.get("x-api-key", "").strip()

    if token.startswith(API_KEY_PREFIX):
        return "key:" + hashlib.sha256(token.encode()).hexdigest()[:16]

    if token:
        try:
            sub = jwt.get_unverified_claims(token).get("sub")
            if sub:
                return f"user:{sub}"
        except JWTError:
            pass  # fall through to IP-based limiting

    return get_remote_address(request)


# ─── Default limits ────────────────────────────────────────────────
# Env-overridable so you can tune per-environment without redeploying.
DEFAULT_RATE_LIMIT = os.getenv("RATE_LIMIT_DEFAULT", "60/minute")
WRITE_RATE_LIMIT = os.getenv("RATE_LIMIT_WRITE", "20/minute")

limiter = Limiter(
    key_func=_get_rate_limit_key,
    default_limits=[DEFAULT_RATE_LIMIT],
    storage_uri=os.getenv("REDIS_URL", "memory://"),
    strategy="fixed-window",
)
