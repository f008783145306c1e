from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from concierge.config import settings
from concierge.logging_config import get_logger

logger = get_logger("business_hours")

ALL_DAYS = frozenset(range(7))


def get_business_timezone(name: Optional[str] = None) -> ZoneInfo:
    name = name or settings.business_timezone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown business timezone {name!r}, using UTC")
        return ZoneInfo("UTC")


def parse_business_days(raw: Optional[str] = None) -> frozenset[int]:
    """Parse "0,1,2" or "0-4,6" (Monday=0). Empty or fully invalid input means every day."""
    raw = settings.business_days if raw is None else raw
    days: set[int] = set()
    for token in (raw or "").split(","):
        token = token.strip()
        if not token:
            continue
        try:
            if "-" in token:
                first, last = (int(part) for part in token.split("-", 1))
                days.update(range(first, last + 1))
            else:
                days.add(int(token))
        except ValueError:
            logger.warning(f"Ignoring invalid business day {token!r}")
    days &= ALL_DAYS
    return frozenset(days) if days else ALL_DAYS


def is_open_hour(hour: int, start: int, end: int) -> bool:
    if start == end:
        return True
    if start < end:
        return start <= hour < end
    # Window wraps past midnight, e.g. 20 -> 4
    return hour >= start or hour < end


def is_within_business_hours(now: Optional[datetime] = None) -> bool:
    """Check ``now`` (default: current time) against the configured window."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(get_business_timezone())

    if local.weekday() not in parse_business_days():
        return False
    return is_open_hour(local.hour, settings.business_hours_start, settings.business_hours_end)
