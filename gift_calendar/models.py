"""Database models for the gift calendar; edit config/categories.json for the prompts."""

from __future__ import annotations

from datetime import datetime, timezone

from extensions import db

PERSONAL_NOTE_CODE = "personal_note"

INVITATION_PENDING = "pending"
INVITATION_ACCEPTED = "accepted"
INVITATION_VOTED = "voted"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Category(db.Model):
    """One of the nine fixed prompts; day N of the calendar reveals category N."""

    __tablename__ = "categories"

    id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    name = db.Column(db.String(80), nullable=False)
    code = db.Column(db.String(40), unique=True, nullable=False)
    prompt = db.Column(db.String(255), nullable=False, default="")
    description = db.Column(db.Text, nullable=False, default="")
    emoji = db.Column(db.String(16), nullable=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    @property
    def is_personal_note(self) -> bool:
        return self.code == PERSONAL_NOTE_CODE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "prompt": self.prompt,
            "description": self.description,
            "emoji": self.emoji,
            "display_order": self.display_order,
        }


class Invitation(db.Model):
    """Tracks a request for one email address to vote on a sender's calendar."""

    __tablename__ = "invitations"

    id = db.Column(db.Integer, primary_key=True)
    sender_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    email = db.Column(db.String(320), index=True, nullable=False)
    invite_token = db.Column(db.String(64), unique=True, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=INVITATION_PENDING)
    accepted_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("sender_id", "email", name="uq_invitation_sender_email"),
    )


class CategoryAnswer(db.Model):
    """Canonical answer per (owner, category, normalized text) with its running count."""

    __tablename__ = "category_answers"

    id = db.Column(db.Integer, primary_key=True)
    calendar_owner_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False)
    answer = db.Column(db.String(500), nullable=False)
    vote_count = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("calendar_owner_id", "category_id", "answer", name="uq_category_answer_text"),
    )


class Vote(db.Model):
    """A single voter's answer for one category of one calendar."""

    __tablename__ = "votes"

    id = db.Column(db.Integer, primary_key=True)
    calendar_owner_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    voter_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False)
    answer_id = db.Column(
        db.Integer, db.ForeignKey("category_answers.id", ondelete="CASCADE"), index=True, nullable=False
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("calendar_owner_id", "voter_id", "category_id", name="uq_vote_owner_voter_category"),
    )


class Reveal(db.Model):
    """Marks that the owner opened a day's box (unique per user/category)."""

    __tablename__ = "reveals"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False)
    revealed_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("user_id", "category_id", name="uq_reveal_user_category"),
    )
