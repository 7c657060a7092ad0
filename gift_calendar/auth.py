"""Resolve the signed-in principal from a Supabase access token."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from flask import current_app, request
from sqlalchemy.exc import IntegrityError

from extensions import db
from gift_calendar.invitations import mark_accepted, normalize_email
from models import User


@dataclass(frozen=True)
class Principal:
    id: str
    email: str
    name: Optional[str] = None


PrincipalProvider = Callable[[], Optional[Principal]]


def bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


def supabase_principal_provider(client=None) -> PrincipalProvider:
    """Provider that trusts Supabase Auth to validate the request's bearer token."""

    def _provider() -> Optional[Principal]:
        supabase = client or current_app.config.get("SUPABASE_CLIENT")
        if not supabase:
            current_app.logger.warning("Supabase client unavailable; rejecting request.")
            return None
        token = bearer_token()
        if not token:
            return None
        try:
            resp = supabase.auth.get_user(token)
        except Exception as exc:  # pragma: no cover - external service dependency
            current_app.logger.warning("Supabase auth lookup failed: %s", exc)
            return None

        user = getattr(resp, "user", None)
        if not user or not getattr(user, "id", None):
            return None
        metadata = getattr(user, "user_metadata", None) or {}
        return Principal(
            id=str(user.id),
            email=normalize_email(getattr(user, "email", None)),
            name=(metadata.get("name") or metadata.get("full_name") or None),
        )

    return _provider


def ensure_user_record(principal: Principal) -> User:
    """Mirror the principal into `users`; first sight also accepts pending invites."""
    user = db.session.get(User, principal.id)
    if user:
        if principal.name and not user.name:
            user.name = principal.name
            db.session.commit()
        return user

    user = User(id=principal.id, email=normalize_email(principal.email), name=principal.name)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        existing = db.session.get(User, principal.id)
        if existing:
            return existing
        raise

    accepted = mark_accepted(user)
    if accepted:
        current_app.logger.info("Linked %s pending invitation(s) to %s", accepted, user.id)
    return user
