# services/tier.py
"""
Tier / plan gating for Sonarbot actions.

Usage in a service:
    from services.tier import require_within_limit

    def submit_project(db, identity, ...):
        require_within_limit(db, identity.handle, "project_submissions")
        ...

Counts come straight from the store (projects / project_upvotes rows in the
window), so there is no counter to drift out of sync with the data.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from models.api_key import ApiKey
from models.project import Project, ProjectUpvote
from services.errors import ServiceError
from utils.common_helpers import as_utc

logger = logging.getLogger(__name__)

# ─── Plan definitions ────────────────────────────────────────────
# -1 = unlimited.

DAY = timedelta(days=1)
WEEK = timedelta(days=7)

UPGRADE_PATH = "/subscribe"


@dataclass(frozen=True)
class PlanLimits:
    project_submissions: int = 0
    upvotes: int = 0


PLAN_LIMITS: Dict[str, PlanLimits] = {
    "free": PlanLimits(
        project_submissions=1,   # 1 per WEEK (see FEATURE_WINDOWS)
        upvotes=5,               # 5 per day
    ),
    "premium": PlanLimits(
        project_submissions=-1,
        upvotes=-1,
    ),
}

FEATURE_WINDOWS: Dict[str, timedelta] = {
    "project_submissions": WEEK,
    "upvotes": DAY,
}


class RateLimitError(ServiceError):
    status_code = 429


@dataclass(frozen=True)
class LimitDecision:
    allowed: bool
    limit: int
    used: int

    @property
    def remaining(self) -> Optional[int]:
        if self.limit == -1:
            return None
        return max(0, self.limit - self.used)


# ─── Helpers ─────────────────────────────────────────────────────

def get_user_plan(db: Session, handle: str, now: Optional[datetime] = None) -> str:
    """'premium' while a paid subscription is unexpired, else 'free'."""
    now = now or datetime.now(timezone.utc)
    row = db.query(ApiKey).filter(ApiKey.twitter_handle == handle).first()
    if not row or row.subscription_tier != "premium":
        return "free"
    if row.subscription_expires and as_utc(row.subscription_expires) > now:
        return "premium"
    return "free"


def get_limit(plan: str, feature: str) -> int:
    limits = PLAN_LIMITS.get(plan, PLAN_LIMITS["free"])
    return getattr(limits, feature, 0)


def _count_submissions(db: Session, handle: str, since: datetime) -> int:
    return (
        db.query(func.count(Project.id))
        .filter(Project.submitted_by_twitter == handle, Project.created_at >= since)
        .scalar()
        or 0
    )


def _count_upvotes(db: Session, handle: str, since: datetime) -> int:
    return (
        db.query(func.count(ProjectUpvote.id))
        .filter(ProjectUpvote.twitter_handle == handle, ProjectUpvote.created_at >= since)
        .scalar()
        or 0
    )


USAGE_COUNTERS: Dict[str, Callable[[Session, str, datetime], int]] = {
    "project_submissions": _count_submissions,
    "upvotes": _count_upvotes,
}


def get_usage(db: Session, handle: str, feature: str, now: Optional[datetime] = None) -> int:
    now = now or datetime.now(timezone.utc)
    since = now - FEATURE_WINDOWS[feature]
    return USAGE_COUNTERS[feature](db, handle, since)


def evaluate_limit(used: int, limit: int) -> LimitDecision:
    """Pure decision: -1 is unlimited, 0 means the feature is unavailable."""
    if limit == -1:
        return LimitDecision(allowed=True, limit=limit, used=used)
    return LimitDecision(allowed=used < limit, limit=limit, used=used)


# ─── Public gate ─────────────────────────────────────────────────

def require_within_limit(
    db: Session,
    handle: str,
    feature: str,
    *,
    now: Optional[datetime] = None,
) -> LimitDecision:
    """
    Raise 429 when *handle* has used up *feature* for the current window:
        { "detail": "Rate limit exceeded", "code": "RATE_LIMIT", "plan": "free",
          "feature": "...", "limit": 1, "used": 1, "upgrade": "/subscribe" }
    """
    now = now or datetime.now(timezone.utc)
    plan = get_user_plan(db, handle, now)
    limit = get_limit(plan, feature)
    used = get_usage(db, handle, feature, now) if limit != -1 else 0

    decision = evaluate_limit(used, limit)
    if not decision.allowed:
        window_label = "weekly" if FEATURE_WINDOWS[feature] >= WEEK else "daily"
        logger.info("tier_limit_hit handle=%s feature=%s plan=%s used=%s", handle, feature, plan, used)
        raise RateLimitError(
            "Rate limit exceeded",
            extra={
                "message": f"You've reached your {window_label} limit for this action. Upgrade to premium to continue.",
                "code": "RATE_LIMIT",
                "plan": plan,
                "feature": feature,
                "limit": limit,
                "used": used,
                "upgrade": UPGRADE_PATH,
            },
        )
    return decision
