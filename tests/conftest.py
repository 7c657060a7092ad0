"""
Pytest fixtures for the gift calendar backend.
"""

import os
import sys
import uuid
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

# Keep the real Supabase client out of tests.
os.environ.setdefault("USE_SUPABASE", "false")

from app import create_app  # noqa: E402
from extensions import db  # noqa: E402
from gift_calendar import Principal  # noqa: E402
from models import User  # noqa: E402

LONDON = ZoneInfo("Europe/London")


def london(year, month, day, hour=0, minute=0, second=0):
    return datetime(year, month, day, hour, minute, second, tzinfo=LONDON)


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class FakeAuth:
    """Principal provider keyed by the X-Test-User request header."""

    def __init__(self):
        self.principals = {}

    def add(self, email, name=None, user_id=None):
        principal = Principal(id=user_id or str(uuid.uuid4()), email=email, name=name)
        self.principals[principal.id] = principal
        return principal

    def __call__(self):
        from flask import request

        return self.principals.get(request.headers.get("X-Test-User", ""))


def headers_for(principal):
    return {"X-Test-User": principal.id}


@pytest.fixture
def clock():
    return FakeClock(london(2025, 12, 1, 12))


@pytest.fixture
def auth():
    return FakeAuth()


@pytest.fixture
def app_config():
    return {
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "USE_SUPABASE": False,
        "SUPABASE_CLIENT": None,
        "GIFT_CALENDAR_ALLOW_TEST_MODE": True,
        "GIFT_CALENDAR_TIMEZONE": "Europe/London",
        "APP_BASE_URL": "https://gifts.example",
        "OVERVIEW_CACHE_MAX_AGE_SECONDS": 30,
    }


@pytest.fixture
def app(app_config, auth, clock):
    flask_app = create_app(app_config, principal_provider=auth, clock=clock)
    yield flask_app
    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    """Application context for calling services directly."""
    with app.app_context():
        yield app
        db.session.rollback()


@pytest.fixture
def make_user(ctx):
    def _make(email, name=None, calendar_code=None, user_id=None, **fields):
        user = User(
            id=user_id or str(uuid.uuid4()),
            email=email,
            name=name,
            calendar_code=calendar_code,
            **fields,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make
