from datetime import datetime, timedelta, timezone

import pytest

from gift_calendar.schedule import (
    days_until_christmas,
    format_countdown,
    is_unlocked,
    is_voting_open,
    next_unlock_day,
    schedule_status,
    unlock_date,
)
from tests.conftest import LONDON, london


@pytest.mark.parametrize("day", range(1, 10))
def test_day_unlocks_at_local_midnight(day):
    unlock_at = london(2025, 12, 15 + day)
    assert not is_unlocked(day, unlock_at - timedelta(seconds=1))
    assert is_unlocked(day, unlock_at)
    assert is_unlocked(day, unlock_at + timedelta(days=3))


def test_test_mode_unlocks_everything():
    early = london(2025, 3, 1)
    assert all(is_unlocked(day, early, test_mode=True) for day in range(1, 10))
    assert is_unlocked(42, early, test_mode=True)


@pytest.mark.parametrize("day", [0, 10, -1])
def test_unknown_days_stay_locked(day):
    assert not is_unlocked(day, london(2025, 12, 31))
    assert unlock_date(day, 2025) is None


def test_naive_now_is_read_in_calendar_timezone():
    assert is_unlocked(1, datetime(2025, 12, 16, 0, 0))
    assert not is_unlocked(1, datetime(2025, 12, 15, 23, 59))


def test_aware_now_in_other_timezone_is_converted():
    # 23:30 UTC on Dec 15 is still Dec 15 in London (GMT in winter).
    assert not is_unlocked(1, datetime(2025, 12, 15, 23, 30, tzinfo=timezone.utc))


def test_voting_window_closes_at_deadline():
    assert is_voting_open(london(2025, 12, 15, 23, 59, 58))
    assert not is_voting_open(london(2025, 12, 15, 23, 59, 59))
    assert not is_voting_open(london(2025, 12, 16))
    assert is_voting_open(london(2026, 1, 2))


def test_voting_and_unlock_do_not_overlap():
    boundary = london(2025, 12, 16)
    assert not is_voting_open(boundary)
    assert is_unlocked(1, boundary)


def test_next_unlock_day():
    assert next_unlock_day(london(2025, 12, 1)) == 1
    assert next_unlock_day(london(2025, 12, 18, 12)) == 4
    assert next_unlock_day(london(2025, 12, 24)) is None


def test_days_until_christmas():
    assert days_until_christmas(london(2025, 12, 24, 12)) == 1
    assert days_until_christmas(london(2025, 12, 25)) == 0
    assert days_until_christmas(london(2025, 12, 26)) == 364


def test_format_countdown():
    now = london(2025, 12, 1, 12)
    assert format_countdown(now + timedelta(days=2, hours=3, minutes=5), now) == "2d 3h"
    assert format_countdown(now + timedelta(hours=5, minutes=10), now) == "5h 10m"
    assert format_countdown(now + timedelta(minutes=42), now) == "42m"
    assert format_countdown(now - timedelta(minutes=1), now) == "Now!"


def test_schedule_status_snapshot():
    status = schedule_status(london(2025, 12, 17, 9))
    assert status["voting_open"] is False
    assert status["unlocked_days"] == [1, 2]
    assert status["next_unlock_day"] == 3
    assert status["next_unlock_at"] == datetime(2025, 12, 18, tzinfo=LONDON).isoformat()
    assert status["countdown"] == "15h 0m"
