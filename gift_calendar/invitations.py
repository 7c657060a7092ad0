"""Invitation lifecycle: pending -> accepted -> voted, scoped to the sending owner."""

from __future__ import annotations

import re
import uuid
from typing import Iterable, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from extensions import db
from gift_calendar.errors import Forbidden, InvalidInput, NotFound
from gift_calendar.models import (
    INVITATION_ACCEPTED,
    INVITATION_PENDING,
    INVITATION_VOTED,
    Invitation,
    Vote,
)
from gift_calendar.results import InvitationBatch, InviteLink
from models import User

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email or ""))


def build_invite_link(base_url: str, calendar_code: str, invite_token: str) -> str:
    return f"{base_url.rstrip('/')}/vote/{calendar_code}?invite={invite_token}"


def create_invitations(sender: User, emails: Iterable, base_url: str) -> InvitationBatch:
    if not isinstance(emails, (list, tuple)) or not emails:
        raise InvalidInput("Please provide at least one email", code="missing_emails")

    valid: List[str] = []
    invalid: List[str] = []
    for raw in emails:
        cleaned = normalize_email(raw if isinstance(raw, str) else "")
        if is_valid_email(cleaned):
            if cleaned not in valid:
                valid.append(cleaned)
        else:
            invalid.append(str(raw))

    if not valid:
        raise InvalidInput("No valid emails provided", code="no_valid_emails", payload={"invalid": invalid})

    if not sender.calendar_code:
        raise InvalidInput("Please generate your calendar first", code="calendar_missing")

    existing = {
        normalize_email(row.email)
        for row in Invitation.query.filter(
            Invitation.sender_id == sender.id,
            db.func.lower(Invitation.email).in_(valid),
        ).all()
    }

    links: List[InviteLink] = []
    for email in valid:
        if email in existing or email == normalize_email(sender.email):
            continue
        invitation = Invitation(
            sender_id=sender.id,
            email=email,
            invite_token=uuid.uuid4().hex,
            status=INVITATION_PENDING,
        )
        db.session.add(invitation)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            continue
        link = build_invite_link(base_url, sender.calendar_code, invitation.invite_token)
        links.append(InviteLink(email=email, link=link))
        # Email delivery is not wired up; the owner shares these links manually.
        current_app.logger.info("Invite link for %s from %s: %s", email, sender.id, link)

    return InvitationBatch(
        invited=len(links),
        skipped=len(valid) - len(links),
        invalid=invalid,
        links=links,
    )


def list_invitations(sender: User, base_url: str) -> List[dict]:
    """Sender's invitations, newest first, annotated with hasVoted."""
    invitations = (
        Invitation.query.filter_by(sender_id=sender.id)
        .order_by(Invitation.created_at.desc(), Invitation.id.desc())
        .all()
    )

    voters = {row.accepted_by for row in invitations if row.accepted_by}
    voted_ids = set()
    if voters:
        voted_ids = {
            voter_id
            for (voter_id,) in db.session.query(Vote.voter_id)
            .filter(Vote.calendar_owner_id == sender.id, Vote.voter_id.in_(voters))
            .distinct()
            .all()
        }

    results = []
    for invitation in invitations:
        results.append(
            {
                "id": invitation.id,
                "email": invitation.email,
                "status": invitation.status,
                "invite_token": invitation.invite_token,
                "created_at": invitation.created_at.isoformat() if invitation.created_at else None,
                "accepted_by": invitation.accepted_by,
                "hasVoted": bool(invitation.accepted_by and invitation.accepted_by in voted_ids),
                "calendar_code": sender.calendar_code,
                "link": (
                    build_invite_link(base_url, sender.calendar_code, invitation.invite_token)
                    if sender.calendar_code
                    else None
                ),
            }
        )
    return results


def delete_invitation(sender_id: str, invitation_id: int) -> None:
    invitation = db.session.get(Invitation, invitation_id)
    if not invitation:
        raise NotFound("Invitation not found", code="invitation_not_found")
    if invitation.sender_id != sender_id:
        raise Forbidden("You can only delete your own invitations", code="not_invitation_owner")
    db.session.delete(invitation)
    db.session.commit()


def mark_voted(voter: User, owner_id: str, invite_token: Optional[str] = None) -> int:
    """Flag the invitation that brought this voter in; returns rows updated."""
    query = None
    if invite_token:
        query = Invitation.query.filter_by(invite_token=invite_token, sender_id=owner_id)
        if not query.count():
            query = None
    if query is None:
        email = normalize_email(voter.email)
        if not email:
            return 0
        query = Invitation.query.filter_by(email=email, sender_id=owner_id)

    updated = query.update(
        {"status": INVITATION_VOTED, "accepted_by": voter.id},
        synchronize_session=False,
    )
    db.session.commit()
    return updated


def mark_accepted(user: User) -> int:
    """Link pending invitations addressed to a newly registered account."""
    email = normalize_email(user.email)
    if not email:
        return 0
    updated = Invitation.query.filter_by(email=email, status=INVITATION_PENDING).update(
        {"status": INVITATION_ACCEPTED, "accepted_by": user.id},
        synchronize_session=False,
    )
    db.session.commit()
    return updated


def list_received_invitations(user: User) -> List[dict]:
    """Calendars this user was invited to vote on, newest first."""
    email = normalize_email(user.email)
    if not email:
        return []
    rows = (
        db.session.query(Invitation, User)
        .join(User, User.id == Invitation.sender_id)
        .filter(Invitation.email == email)
        .order_by(Invitation.created_at.desc(), Invitation.id.desc())
        .all()
    )
    return [
        {
            "id": invitation.id,
            "status": invitation.status,
            "created_at": invitation.created_at.isoformat() if invitation.created_at else None,
            "sender": {
                "id": sender.id,
                "name": sender.display_name,
                "email": sender.email,
                "calendar_code": sender.calendar_code,
            },
        }
        for invitation, sender in rows
    ]


def friend_stats(owner_id: str) -> dict:
    total = Invitation.query.filter_by(sender_id=owner_id).count()
    voted = Invitation.query.filter_by(sender_id=owner_id, status=INVITATION_VOTED).count()
    return {"total": total, "voted": voted}
