"""Reveal engine: open a day's box and rank the answers friends left for it."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from extensions import db
from gift_calendar.errors import Conflict, InvalidInput, NotFound
from gift_calendar.invitations import friend_stats
from gift_calendar.models import Category, CategoryAnswer, Reveal, Vote
from gift_calendar.results import RankedAnswer, RevealResult
from gift_calendar.schedule import TOTAL_DAYS, days_until_christmas, is_unlocked, is_voting_open, next_unlock_day
from gift_calendar.text import summarize_answers
from models import User

NOTES_TYPE = "notes"
ANSWERS_TYPE = "answers"


def coerce_day(raw_day) -> int:
    if isinstance(raw_day, bool) or (isinstance(raw_day, float) and not raw_day.is_integer()):
        raise InvalidInput("Day must be a number between 1 and 9", code="invalid_day")
    try:
        day = int(raw_day)
    except (TypeError, ValueError) as exc:
        raise InvalidInput("Day must be a number between 1 and 9", code="invalid_day") from exc
    if not 1 <= day <= TOTAL_DAYS:
        raise InvalidInput("Day must be between 1 and 9", code="invalid_day")
    return day


def record_reveal(owner_id: str, category_id: int) -> bool:
    """Insert the reveal row; returns False when it already existed."""
    if Reveal.query.filter_by(user_id=owner_id, category_id=category_id).first():
        return False
    db.session.add(Reveal(user_id=owner_id, category_id=category_id))
    try:
        db.session.commit()
        return True
    except IntegrityError:
        db.session.rollback()
        return False


def _voter_names(answer_ids: List[int]) -> Dict[int, List[str]]:
    voters: Dict[int, List[str]] = defaultdict(list)
    if not answer_ids:
        return voters
    rows = (
        db.session.query(Vote.answer_id, User)
        .join(User, User.id == Vote.voter_id)
        .filter(Vote.answer_id.in_(answer_ids))
        .order_by(Vote.created_at.asc(), Vote.id.asc())
        .all()
    )
    for answer_id, voter in rows:
        voters[answer_id].append(voter.display_name)
    return voters


def build_reveal_result(owner_id: str, category: Category) -> RevealResult:
    """Rank the owner's answers for a category without touching the reveal log."""
    rows = (
        CategoryAnswer.query.filter_by(calendar_owner_id=owner_id, category_id=category.id)
        .order_by(CategoryAnswer.vote_count.desc(), CategoryAnswer.id.asc())
        .all()
    )
    voters = _voter_names([row.id for row in rows])
    ranked = [
        RankedAnswer(
            id=row.id,
            answer=row.answer,
            vote_count=row.vote_count,
            voters=voters.get(row.id, []),
        )
        for row in rows
    ]
    total_votes = sum(answer.vote_count for answer in ranked)
    reveal_type = NOTES_TYPE if category.is_personal_note else ANSWERS_TYPE

    return RevealResult(
        day=category.id,
        category={
            "name": category.name,
            "description": category.description,
            "code": category.code,
            "prompt": category.prompt,
            "emoji": category.emoji,
        },
        type=reveal_type,
        answers=ranked,
        winner=ranked[0] if ranked and reveal_type == ANSWERS_TYPE else None,
        total_votes=total_votes,
        summary=summarize_answers([answer.answer for answer in ranked], total_votes),
    )


def reveal_day(
    owner_id: str,
    raw_day,
    now: Optional[datetime] = None,
    test_mode: bool = False,
) -> RevealResult:
    day = coerce_day(raw_day)
    if not is_unlocked(day, now, test_mode):
        raise Conflict("This day is still locked!", code="day_locked")

    # Day N reveals category N.
    category = db.session.get(Category, day)
    if not category:
        raise NotFound("Category not found", code="category_not_found")

    if record_reveal(owner_id, category.id):
        current_app.logger.info("Owner %s revealed day %s", owner_id, day)
    return build_reveal_result(owner_id, category)


def revealed_days(owner_id: str) -> List[int]:
    rows = Reveal.query.filter_by(user_id=owner_id).order_by(Reveal.category_id.asc()).all()
    return [row.category_id for row in rows]


def reset_reveals(owner_id: str) -> int:
    """Lock every day again for this owner (dev panel only)."""
    removed = Reveal.query.filter_by(user_id=owner_id).delete(synchronize_session=False)
    db.session.commit()
    return removed


def calendar_overview(owner_id: str, now: Optional[datetime] = None) -> dict:
    """Everything the owner's calendar page needs in one payload."""
    days = revealed_days(owner_id)
    categories: Dict[int, Category] = {}
    if days:
        categories = {
            category.id: category
            for category in Category.query.filter(Category.id.in_(days)).all()
        }

    return {
        "success": True,
        "reveals": days,
        "days": {
            str(day): build_reveal_result(owner_id, categories[day]).to_dict()
            for day in days
            if day in categories
        },
        "friendStats": friend_stats(owner_id),
        "next_unlock_day": next_unlock_day(now),
        "days_until_christmas": days_until_christmas(now),
        "voting_open": is_voting_open(now),
    }
