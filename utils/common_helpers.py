import re
from datetime import datetime, timezone
from typing import Any, Optional

_TAG_RE = re.compile(r"<[^>]*>")


def sanitize_text(value: Any) -> str:
    """Strip HTML tags and surrounding whitespace; non-strings become ''."""
    if not isinstance(value, str):
        return ""
    return _TAG_RE.sub("", value).strip()


def clamp_int(raw: Any, lo: int, hi: int, default: int) -> int:
    try:
        n = int(raw)
    except (TypeError, ValueError):
        return default
    return max(lo, min(hi, n))


def parse_iso_datetime(raw: Optional[str]) -> Optional[datetime]:
    """ISO-8601 timestamp (a trailing 'Z' is accepted) as an aware UTC datetime, or None."""
    if not raw or not isinstance(raw, str):
        return None
    s = raw.strip()
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    try:
        value = datetime.fromisoformat(s)
    except ValueError:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything we store is UTC.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
