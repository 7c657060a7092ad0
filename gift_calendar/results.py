"""Explicit response shapes returned by the gift calendar services."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import List, Optional


@dataclass
class SubmittedAnswer:
    category_id: int
    answer_id: int
    normalized_text: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CategoryError:
    """A category skipped inside a batched vote submission."""

    category_id: Optional[int]
    error: str
    message: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class VoteSubmission:
    submitted: List[SubmittedAnswer] = field(default_factory=list)
    errors: List[CategoryError] = field(default_factory=list)
    invitations_updated: int = 0

    def to_dict(self) -> dict:
        return {
            "success": True,
            "submitted": len(self.submitted),
            "answers": [item.to_dict() for item in self.submitted],
            "errors": [item.to_dict() for item in self.errors],
            "message": f"Successfully submitted {len(self.submitted)} answers",
        }


@dataclass
class InviteLink:
    email: str
    link: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class InvitationBatch:
    invited: int
    skipped: int
    invalid: List[str] = field(default_factory=list)
    links: List[InviteLink] = field(default_factory=list)

    def to_dict(self) -> dict:
        if self.invited:
            message = f"Successfully created {self.invited} invitation(s)"
        else:
            message = "All emails have already been invited"
        return {
            "success": True,
            "message": message,
            "invited": self.invited,
            "skipped": self.skipped,
            "invalid": list(self.invalid),
            "inviteLinks": [link.to_dict() for link in self.links],
        }


@dataclass
class RankedAnswer:
    id: int
    answer: str
    vote_count: int
    voters: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "answer": self.answer,
            "voteCount": self.vote_count,
            "voters": list(self.voters),
        }


@dataclass
class RevealResult:
    day: int
    category: dict
    type: str
    answers: List[RankedAnswer] = field(default_factory=list)
    winner: Optional[RankedAnswer] = None
    total_votes: int = 0
    summary: Optional[str] = None

    @property
    def empty(self) -> bool:
        return not self.answers

    def to_dict(self) -> dict:
        payload = {
            "success": True,
            "day": self.day,
            "category": self.category,
            "type": self.type,
            "answers": [answer.to_dict() for answer in self.answers],
            "winner": self.winner.to_dict() if self.winner else None,
            "totalVotes": self.total_votes,
            "summary": self.summary,
            "empty": self.empty,
        }
        if self.empty:
            payload["message"] = "No votes received yet for this category!"
        return payload
