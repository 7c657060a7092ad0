"""Database models shared across the gift calendar app."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func

from extensions import db


class User(db.Model):
    """Local mirror of an authenticated account plus its calendar settings."""

    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = db.Column(db.String(320), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=True)

    calendar_code = db.Column(db.String(8), unique=True, nullable=True)
    voting_enabled = db.Column(db.Boolean, default=True, nullable=False)
    voting_deadline = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def display_name(self) -> str:
        """Name shown next to a vote: name, else email local part, else Anonymous."""
        if self.name and self.name.strip():
            return self.name.strip()
        local_part = (self.email or "").split("@")[0].strip()
        return local_part or "Anonymous"

    def deadline_passed(self, reference: Optional[datetime] = None) -> bool:
        deadline = _ensure_aware(self.voting_deadline)
        if deadline is None:
            return False
        # Naive references are calendar-local, matching the unlock schedule.
        from gift_calendar.schedule import localize

        return localize(reference) > deadline

    def to_owner_dict(self) -> dict:
        """Serialize the account for its owner."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "calendar_code": self.calendar_code,
            "voting_enabled": self.voting_enabled,
            "voting_deadline": _isoformat_or_none(self.voting_deadline),
        }

    def __repr__(self) -> str:  # pragma: no cover - helper for shell debugging
        return f"<User id={self.id} email={self.email!r} code={self.calendar_code!r}>"


def _isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    aware = _ensure_aware(value)
    return aware.astimezone(timezone.utc).isoformat()


def _ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
