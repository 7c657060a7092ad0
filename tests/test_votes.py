import pytest
from sqlalchemy.exc import IntegrityError

from extensions import db
from gift_calendar import votes
from gift_calendar.errors import Conflict, Forbidden, InvalidInput, NotFound
from gift_calendar.invitations import create_invitations
from gift_calendar.models import INVITATION_VOTED, CategoryAnswer, Invitation, Vote
from gift_calendar.votes import recount_vote_counts, submit_answer, submit_votes
from tests.conftest import london

OPEN = london(2025, 12, 1, 12)


@pytest.fixture
def people(make_user):
    owner = make_user("owner@example.com", name="Olive", calendar_code="AB12CD34")
    v1 = make_user("vera@example.com", name="Vera")
    v2 = make_user("victor@example.com")
    return owner, v1, v2


def test_equal_normalized_answers_share_one_row(people):
    owner, v1, v2 = people

    first = submit_votes(v1, owner.id, {"1": "Golden Retriever!"}, now=OPEN)
    second = submit_votes(v2, owner.id, {1: "golden retriever "}, now=OPEN)

    assert first.submitted[0].answer_id == second.submitted[0].answer_id
    rows = CategoryAnswer.query.filter_by(calendar_owner_id=owner.id, category_id=1).all()
    assert len(rows) == 1
    assert rows[0].answer == "golden retriever"
    assert rows[0].vote_count == 2
    assert Vote.query.filter_by(answer_id=rows[0].id).count() == 2


def test_second_vote_for_same_category_is_rejected(people):
    owner, v1, _ = people
    submit_votes(v1, owner.id, {"1": "Cat"}, now=OPEN)

    with pytest.raises(Conflict) as excinfo:
        submit_votes(v1, owner.id, {"1": "Dog"}, now=OPEN)

    assert excinfo.value.code == "already_voted"
    assert Vote.query.filter_by(voter_id=v1.id, category_id=1).count() == 1
    assert CategoryAnswer.query.filter_by(answer="dog").first() is None
    assert CategoryAnswer.query.filter_by(answer="cat").one().vote_count == 1


def test_store_rejects_duplicate_vote_rows(people):
    owner, v1, _ = people
    result = submit_answer(owner.id, v1.id, 1, "Cat")

    db.session.add(
        Vote(calendar_owner_id=owner.id, voter_id=v1.id, category_id=1, answer_id=result.answer_id)
    )
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()


def test_racing_duplicate_vote_is_conflict(people, monkeypatch):
    owner, v1, _ = people
    submit_answer(owner.id, v1.id, 1, "Cat")

    real_has_voted = votes._has_voted
    calls = []

    def stale_has_voted(*args):
        # The first check runs before the competing vote is visible.
        calls.append(args)
        return False if len(calls) == 1 else real_has_voted(*args)

    monkeypatch.setattr(votes, "_has_voted", stale_has_voted)

    with pytest.raises(Conflict) as excinfo:
        submit_answer(owner.id, v1.id, 1, "cat")

    assert excinfo.value.code == "already_voted"
    assert Vote.query.count() == 1
    assert CategoryAnswer.query.filter_by(answer="cat").one().vote_count == 1


def test_canonical_answer_race_retries_as_increment(people, monkeypatch):
    owner, v1, v2 = people
    real_resolve = votes._resolve_answer
    calls = []

    def racing_resolve(owner_id, category_id, normalized):
        calls.append(normalized)
        if len(calls) == 1:
            # Another voter commits the same canonical answer first.
            competing = CategoryAnswer(
                calendar_owner_id=owner_id, category_id=category_id, answer=normalized, vote_count=1
            )
            db.session.add(competing)
            db.session.commit()
            db.session.add(
                CategoryAnswer(
                    calendar_owner_id=owner_id, category_id=category_id, answer=normalized, vote_count=1
                )
            )
            db.session.flush()
        return real_resolve(owner_id, category_id, normalized)

    monkeypatch.setattr(votes, "_resolve_answer", racing_resolve)

    result = submit_answer(owner.id, v1.id, 1, "Golden Retriever")

    assert len(calls) == 2
    rows = CategoryAnswer.query.filter_by(calendar_owner_id=owner.id, category_id=1).all()
    assert len(rows) == 1
    assert rows[0].vote_count == 2
    assert result.answer_id == rows[0].id
    assert Vote.query.filter_by(voter_id=v1.id).count() == 1


def test_voter_can_answer_other_categories_later(people):
    owner, v1, _ = people
    submit_votes(v1, owner.id, {"1": "Cat"}, now=OPEN)
    result = submit_votes(v1, owner.id, {"1": "Dog", "2": "Paris"}, now=OPEN)

    assert [item.category_id for item in result.submitted] == [2]
    assert [error.error for error in result.errors] == ["already_voted"]


def test_self_vote_is_forbidden_before_any_write(people):
    owner, _, _ = people
    with pytest.raises(Forbidden) as excinfo:
        submit_votes(owner, owner.id, {"1": "Cat"}, now=OPEN)

    assert excinfo.value.code == "self_vote"
    assert Vote.query.count() == 0
    assert CategoryAnswer.query.count() == 0


def test_partial_success_reports_skipped_categories(people):
    owner, v1, _ = people
    result = submit_votes(
        v1,
        owner.id,
        {"1": "Cat", "2": "!!!", "99": "Narnia", "abc": "x"},
        now=OPEN,
    )

    assert [item.category_id for item in result.submitted] == [1]
    assert {(error.category_id, error.error) for error in result.errors} == {
        (2, "empty_answer"),
        (99, "unknown_category"),
        (None, "unknown_category"),
    }
    assert result.to_dict()["submitted"] == 1


def test_batch_with_nothing_valid_fails(people):
    owner, v1, _ = people
    with pytest.raises(InvalidInput) as excinfo:
        submit_votes(v1, owner.id, {"1": "   ", "2": "?!"}, now=OPEN)

    assert excinfo.value.code == "no_valid_answers"
    assert len(excinfo.value.payload["errors"]) == 2


def test_missing_answers(people):
    owner, v1, _ = people
    with pytest.raises(InvalidInput):
        submit_votes(v1, owner.id, {}, now=OPEN)
    with pytest.raises(InvalidInput):
        submit_votes(v1, owner.id, ["Cat"], now=OPEN)


def test_unknown_owner(people):
    _, v1, _ = people
    with pytest.raises(NotFound):
        submit_votes(v1, "missing-owner", {"1": "Cat"}, now=OPEN)


def test_owner_can_close_voting(people):
    owner, v1, _ = people
    owner.voting_enabled = False
    db.session.commit()

    with pytest.raises(Conflict) as excinfo:
        submit_votes(v1, owner.id, {"1": "Cat"}, now=OPEN)
    assert excinfo.value.code == "voting_closed"


def test_owner_deadline(people):
    owner, v1, _ = people
    owner.voting_deadline = london(2025, 11, 30)
    db.session.commit()

    with pytest.raises(Conflict) as excinfo:
        submit_votes(v1, owner.id, {"1": "Cat"}, now=OPEN)
    assert excinfo.value.code == "deadline_passed"


def test_global_window_and_test_mode(people):
    owner, v1, _ = people
    after_deadline = london(2025, 12, 16, 9)

    with pytest.raises(Conflict) as excinfo:
        submit_votes(v1, owner.id, {"1": "Cat"}, now=after_deadline)
    assert excinfo.value.code == "voting_window_closed"

    result = submit_votes(v1, owner.id, {"1": "Cat"}, now=after_deadline, test_mode=True)
    assert len(result.submitted) == 1


def test_long_answers_are_truncated(people):
    owner, v1, _ = people
    result = submit_votes(v1, owner.id, {"9": "x" * 800}, now=OPEN)
    assert len(result.submitted[0].normalized_text) == 500


def test_vote_marks_invitation_by_email(people):
    owner, v1, _ = people
    create_invitations(owner, ["Vera@Example.com"], "https://gifts.example")

    result = submit_votes(v1, owner.id, {"1": "Cat"}, now=OPEN)

    invitation = Invitation.query.filter_by(sender_id=owner.id).one()
    assert result.invitations_updated == 1
    assert invitation.status == INVITATION_VOTED
    assert invitation.accepted_by == v1.id


def test_vote_marks_invitation_by_token(people):
    owner, _, v2 = people
    create_invitations(owner, ["someone-else@example.com"], "https://gifts.example")
    token = Invitation.query.filter_by(sender_id=owner.id).one().invite_token

    submit_votes(v2, owner.id, {"1": "Cat"}, invite_token=token, now=OPEN)

    invitation = Invitation.query.filter_by(invite_token=token).one()
    assert invitation.status == INVITATION_VOTED
    assert invitation.accepted_by == v2.id


def test_recount_repairs_counts(people):
    owner, v1, v2 = people
    submit_votes(v1, owner.id, {"1": "Cat"}, now=OPEN)
    submit_votes(v2, owner.id, {"1": "cat"}, now=OPEN)
    orphan = CategoryAnswer(calendar_owner_id=owner.id, category_id=2, answer="nowhere", vote_count=3)
    db.session.add(orphan)
    CategoryAnswer.query.filter_by(answer="cat").one().vote_count = 7
    db.session.commit()

    assert recount_vote_counts(owner.id) == {"fixed": 1, "removed": 1}
    assert CategoryAnswer.query.filter_by(answer="cat").one().vote_count == 2
    assert CategoryAnswer.query.filter_by(answer="nowhere").first() is None
