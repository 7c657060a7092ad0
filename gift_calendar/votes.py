"""Vote aggregation: dedupe answers into category_answers and record one vote per category."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from extensions import db
from gift_calendar.catalog import known_category_ids
from gift_calendar.errors import CalendarServiceError, Conflict, Forbidden, InvalidInput, NotFound
from gift_calendar.invitations import mark_voted
from gift_calendar.models import CategoryAnswer, Vote
from gift_calendar.results import CategoryError, SubmittedAnswer, VoteSubmission
from gift_calendar.schedule import is_voting_open
from gift_calendar.text import prepare_answer
from models import User

ALREADY_VOTED = "already_voted"


def _has_voted(owner_id: str, voter_id: str, category_id: int) -> bool:
    return (
        db.session.query(Vote.id)
        .filter_by(calendar_owner_id=owner_id, voter_id=voter_id, category_id=category_id)
        .first()
        is not None
    )


def _resolve_answer(owner_id: str, category_id: int, normalized: str) -> CategoryAnswer:
    existing = CategoryAnswer.query.filter_by(
        calendar_owner_id=owner_id,
        category_id=category_id,
        answer=normalized,
    ).first()
    if existing:
        CategoryAnswer.query.filter_by(id=existing.id).update(
            {
                "vote_count": CategoryAnswer.vote_count + 1,
                "updated_at": datetime.now(timezone.utc),
            },
            synchronize_session=False,
        )
        return existing

    created = CategoryAnswer(
        calendar_owner_id=owner_id,
        category_id=category_id,
        answer=normalized,
        vote_count=1,
    )
    db.session.add(created)
    db.session.flush()
    return created


def submit_answer(
    owner_id: str,
    voter_id: str,
    category_id: int,
    raw_text: Any,
    *,
    valid_categories: Optional[set] = None,
) -> SubmittedAnswer:
    """Aggregate one answer and commit it; the unique vote constraint has the final say."""
    normalized = prepare_answer(raw_text if isinstance(raw_text, str) else str(raw_text or ""))
    if not normalized:
        raise InvalidInput("Answer is empty once cleaned up", code="empty_answer")

    valid_categories = valid_categories if valid_categories is not None else known_category_ids()
    if category_id not in valid_categories:
        raise NotFound("Unknown category", code="unknown_category")

    if _has_voted(owner_id, voter_id, category_id):
        raise Conflict("You have already answered this category", code=ALREADY_VOTED)

    for attempt in range(2):
        try:
            answer = _resolve_answer(owner_id, category_id, normalized)
            db.session.add(
                Vote(
                    calendar_owner_id=owner_id,
                    voter_id=voter_id,
                    category_id=category_id,
                    answer_id=answer.id,
                )
            )
            db.session.commit()
            return SubmittedAnswer(
                category_id=category_id,
                answer_id=answer.id,
                normalized_text=normalized,
            )
        except IntegrityError:
            db.session.rollback()
            if _has_voted(owner_id, voter_id, category_id):
                raise Conflict("You have already answered this category", code=ALREADY_VOTED)
            # Another voter created the same canonical answer first; retry as an increment.
            current_app.logger.info(
                "Canonical answer race on owner=%s category=%s (attempt %s)",
                owner_id,
                category_id,
                attempt + 1,
            )
    raise Conflict("Answer could not be saved, please retry", code="answer_conflict")


def submit_votes(
    voter: User,
    owner_id: str,
    answers: Any,
    invite_token: Optional[str] = None,
    now: Optional[datetime] = None,
    test_mode: bool = False,
) -> VoteSubmission:
    """Process a batch of {category_id: raw answer}; siblings survive individual failures."""
    if voter.id == owner_id:
        raise Forbidden("You cannot vote on your own calendar", code="self_vote")

    owner = db.session.get(User, owner_id) if owner_id else None
    if not owner:
        raise NotFound("Calendar not found", code="calendar_not_found")

    if not isinstance(answers, Mapping) or not answers:
        raise InvalidInput("No answers provided", code="missing_answers")

    if not owner.voting_enabled:
        raise Conflict("Voting has been closed for this calendar", code="voting_closed")
    if owner.deadline_passed(now):
        raise Conflict("Voting deadline has passed", code="deadline_passed")
    if not test_mode and not is_voting_open(now):
        raise Conflict("Voting closed on December 15th", code="voting_window_closed")

    valid_categories = known_category_ids()
    result = VoteSubmission()
    for raw_category, raw_answer in answers.items():
        try:
            category_id = int(raw_category)
        except (TypeError, ValueError):
            result.errors.append(CategoryError(None, "unknown_category", f"Unknown category {raw_category!r}"))
            continue

        try:
            submitted = submit_answer(
                owner.id,
                voter.id,
                category_id,
                raw_answer,
                valid_categories=valid_categories,
            )
        except CalendarServiceError as exc:
            result.errors.append(CategoryError(category_id, exc.code, exc.message))
            continue
        result.submitted.append(submitted)

    if not result.submitted:
        payload = {"errors": [error.to_dict() for error in result.errors]}
        if result.errors and all(error.error == ALREADY_VOTED for error in result.errors):
            raise Conflict("You have already voted for this calendar!", code=ALREADY_VOTED, payload=payload)
        raise InvalidInput("No valid answers to submit", code="no_valid_answers", payload=payload)

    result.invitations_updated = mark_voted(voter, owner.id, invite_token)
    current_app.logger.info(
        "Voter %s submitted %s answer(s) to %s", voter.id, len(result.submitted), owner.id
    )
    return result


def recount_vote_counts(owner_id: Optional[str] = None) -> dict:
    """Rebuild category_answers.vote_count from the votes table; drop orphaned answers."""
    counts = dict(
        db.session.query(Vote.answer_id, db.func.count(Vote.id)).group_by(Vote.answer_id).all()
    )
    query = CategoryAnswer.query
    if owner_id:
        query = query.filter_by(calendar_owner_id=owner_id)

    fixed = 0
    removed = 0
    for answer in query.all():
        actual = counts.get(answer.id, 0)
        if actual == 0:
            db.session.delete(answer)
            removed += 1
        elif answer.vote_count != actual:
            answer.vote_count = actual
            fixed += 1
    db.session.commit()
    return {"fixed": fixed, "removed": removed}
