"""Countdown dates: nine reveal days from Dec 16 to Dec 24, voting closes Dec 15."""

from __future__ import annotations

import math
from datetime import datetime, timedelta, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context

TOTAL_DAYS = 9
FIRST_UNLOCK_DAY_OF_DECEMBER = 16
VOTING_DEADLINE_DAY_OF_DECEMBER = 15
DEFAULT_TIMEZONE = "Europe/London"


def calendar_timezone() -> tzinfo:
    """Timezone the fixed dates are anchored to ("local" midnight)."""
    name = DEFAULT_TIMEZONE
    if has_app_context():
        name = current_app.config.get("GIFT_CALENDAR_TIMEZONE") or DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except Exception:
        return ZoneInfo(DEFAULT_TIMEZONE)


def localize(now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> datetime:
    """Return `now` as an aware datetime in the calendar timezone."""
    tz = tz or calendar_timezone()
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        return now.replace(tzinfo=tz)
    return now.astimezone(tz)


def unlock_date(day: int, year: int, tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """Midnight on which `day` (1..9) unlocks, or None for an unknown day."""
    if not isinstance(day, int) or isinstance(day, bool) or not 1 <= day <= TOTAL_DAYS:
        return None
    tz = tz or calendar_timezone()
    return datetime(year, 12, FIRST_UNLOCK_DAY_OF_DECEMBER + day - 1, tzinfo=tz)


def is_unlocked(day: int, now: Optional[datetime] = None, test_mode: bool = False) -> bool:
    if test_mode:
        return True
    local_now = localize(now)
    unlock_at = unlock_date(day, local_now.year, local_now.tzinfo)
    if unlock_at is None:
        return False
    return local_now >= unlock_at


def voting_deadline(year: int, tz: Optional[tzinfo] = None) -> datetime:
    tz = tz or calendar_timezone()
    return datetime(year, 12, VOTING_DEADLINE_DAY_OF_DECEMBER, 23, 59, 59, tzinfo=tz)


def is_voting_open(now: Optional[datetime] = None) -> bool:
    """Single global deadline shared by every calendar."""
    local_now = localize(now)
    return local_now < voting_deadline(local_now.year, local_now.tzinfo)


def next_unlock_day(now: Optional[datetime] = None) -> Optional[int]:
    """First day still locked this season, or None once everything is open."""
    local_now = localize(now)
    for day in range(1, TOTAL_DAYS + 1):
        if local_now < unlock_date(day, local_now.year, local_now.tzinfo):
            return day
    return None


def days_until_christmas(now: Optional[datetime] = None) -> int:
    local_now = localize(now)
    christmas = datetime(local_now.year, 12, 25, tzinfo=local_now.tzinfo)
    if local_now.month == 12 and local_now.day > 25:
        christmas = datetime(local_now.year + 1, 12, 25, tzinfo=local_now.tzinfo)
    diff_days = (christmas - local_now) / timedelta(days=1)
    return max(0, math.ceil(diff_days))


def format_countdown(target: datetime, now: Optional[datetime] = None) -> str:
    local_now = localize(now)
    remaining = localize(target, local_now.tzinfo) - local_now
    if remaining <= timedelta(0):
        return "Now!"

    total_minutes = int(remaining.total_seconds() // 60)
    days, rest = divmod(total_minutes, 60 * 24)
    hours, minutes = divmod(rest, 60)
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def schedule_status(now: Optional[datetime] = None) -> dict:
    """Snapshot used by the countdown endpoint and the owner overview."""
    local_now = localize(now)
    next_day = next_unlock_day(local_now)
    next_at = unlock_date(next_day, local_now.year, local_now.tzinfo) if next_day else None
    return {
        "now": local_now.isoformat(),
        "voting_open": is_voting_open(local_now),
        "voting_deadline": voting_deadline(local_now.year, local_now.tzinfo).isoformat(),
        "next_unlock_day": next_day,
        "next_unlock_at": next_at.isoformat() if next_at else None,
        "countdown": format_countdown(next_at, local_now) if next_at else None,
        "days_until_christmas": days_until_christmas(local_now),
        "unlocked_days": [
            day for day in range(1, TOTAL_DAYS + 1) if is_unlocked(day, local_now)
        ],
    }
