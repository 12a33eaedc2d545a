from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Tuple

from services.payments.tokens import SNR, get_payment_token

# Bookable placements and their weekly USD price.
SLOT_PRICING: Dict[str, Decimal] = {
    "homepage_inline": Decimal("299"),
    "project_sidebar": Decimal("149"),
}

SLOT_LABELS: Dict[str, str] = {
    "homepage_inline": "Homepage — Featured after #3 product",
    "project_sidebar": "Product Detail — Sidebar ad",
}

# homepage_banner predates weekly booking; only admins create it.
SPOT_TYPES: Tuple[str, ...] = ("homepage_inline", "homepage_banner", "project_sidebar")

SNR_DISCOUNT = Decimal("0.20")
HOLD_MINUTES = 5
CALENDAR_WEEKS = 5

_CENT = Decimal("0.01")


def compute_price(spot_type: str, payment_token: str) -> Decimal:
    base = SLOT_PRICING[spot_type]
    token = get_payment_token(payment_token)
    if token is SNR:
        return (base * (1 - SNR_DISCOUNT)).quantize(_CENT, rounding=ROUND_HALF_UP)
    return base


def parse_week_start(raw: str) -> date:
    """YYYY-MM-DD that falls on a Monday, else ValueError."""
    try:
        value = datetime.strptime(raw, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValueError("week_start must be a valid date that falls on a Monday (YYYY-MM-DD)") from None
    if value.weekday() != 0:
        raise ValueError("week_start must be a valid date that falls on a Monday (YYYY-MM-DD)")
    return value


def week_end_for(week_start: date) -> date:
    return week_start + timedelta(days=6)


def monday_of(day: date) -> date:
    return day - timedelta(days=day.weekday())


def upcoming_weeks(today: date, count: int = CALENDAR_WEEKS) -> List[Tuple[date, date]]:
    """(week_start, week_end) for the current week and the next count-1."""
    first = monday_of(today)
    weeks = []
    for i in range(count):
        start = first + timedelta(weeks=i)
        weeks.append((start, week_end_for(start)))
    return weeks
