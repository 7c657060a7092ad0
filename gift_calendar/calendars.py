"""Calendar codes, public calendar lookup and per-calendar voting settings."""

from __future__ import annotations

import secrets
import string
from datetime import datetime, timezone
from typing import Any, Optional

from dateutil import parser as date_parser
from flask import current_app
from sqlalchemy.exc import IntegrityError

from extensions import db
from gift_calendar.catalog import list_categories
from gift_calendar.errors import DependencyFailure, InvalidInput, NotFound
from gift_calendar.schedule import is_voting_open
from models import User

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8
MAX_CODE_ATTEMPTS = 10


def generate_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def get_user(user_id: str) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound("User not found", code="user_not_found")
    return user


def generate_calendar_code(owner_id: str) -> dict:
    """Assign a calendar code once; later calls return the existing one."""
    owner = get_user(owner_id)
    if owner.calendar_code:
        return {"calendar_code": owner.calendar_code, "created": False}

    for _ in range(MAX_CODE_ATTEMPTS):
        candidate = generate_code()
        if User.query.filter_by(calendar_code=candidate).first():
            continue
        owner.calendar_code = candidate
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            owner = get_user(owner_id)
            if owner.calendar_code:
                return {"calendar_code": owner.calendar_code, "created": False}
            continue
        current_app.logger.info("Calendar code %s assigned to %s", candidate, owner_id)
        return {"calendar_code": candidate, "created": True}

    raise DependencyFailure(
        "Could not generate unique code",
        code="calendar_code_exhausted",
        status_code=500,
    )


def get_calendar(code: str, now: Optional[datetime] = None) -> dict:
    """Public view of a calendar for the voting page."""
    cleaned = (code or "").strip().upper()
    owner = User.query.filter_by(calendar_code=cleaned).first() if cleaned else None
    if not owner:
        raise NotFound("Calendar not found", code="calendar_not_found")

    return {
        "owner": {
            "id": owner.id,
            "name": owner.display_name,
            "calendar_code": owner.calendar_code,
            "voting_enabled": owner.voting_enabled,
            "voting_deadline": owner.to_owner_dict()["voting_deadline"],
        },
        "voting_open": bool(
            owner.voting_enabled and not owner.deadline_passed(now) and is_voting_open(now)
        ),
        "categories": [category.to_dict() for category in list_categories()],
    }


def update_voting_settings(
    owner_id: str,
    voting_enabled: Optional[Any] = None,
    voting_deadline: Any = ...,
) -> User:
    """Toggle voting and set or clear (None) the calendar's own deadline."""
    owner = get_user(owner_id)

    if voting_enabled is not None:
        if not isinstance(voting_enabled, bool):
            raise InvalidInput("voting_enabled must be true or false", code="invalid_voting_enabled")
        owner.voting_enabled = voting_enabled

    if voting_deadline is not ...:
        owner.voting_deadline = _parse_deadline(voting_deadline)

    db.session.commit()
    return owner


def _parse_deadline(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = date_parser.isoparse(str(value))
        except (TypeError, ValueError) as exc:
            raise InvalidInput("voting_deadline must be an ISO 8601 timestamp", code="invalid_deadline") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
