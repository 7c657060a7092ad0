"""Answer text helpers: canonical form for deduplication and a coarse summary line."""

from __future__ import annotations

import re
from collections import Counter
from typing import Iterable, Optional

MAX_ANSWER_LENGTH = 500
SUMMARY_WORDS_PER_ANSWER = 3

_NON_LETTERS = re.compile(r"[^a-z\s]")
_WHITESPACE = re.compile(r"\s+")
_WORDS = re.compile(r"[a-z]+")

STOP_WORDS = frozenset(
    {
        "about", "after", "again", "all", "also", "and", "any", "are", "because",
        "been", "before", "being", "but", "can", "could", "did", "does", "for",
        "from", "had", "has", "have", "her", "here", "him", "his", "how", "into",
        "its", "just", "like", "more", "most", "not", "now", "one", "only", "our",
        "out", "she", "should", "some", "such", "than", "that", "the", "their",
        "them", "then", "there", "these", "they", "this", "those", "too", "very",
        "was", "were", "what", "when", "where", "which", "who", "why", "will",
        "with", "would", "you", "your", "really", "always", "think",
    }
)


def normalize_answer(text: Optional[str]) -> str:
    """Lowercase, keep only a-z and whitespace, collapse runs of spaces, trim.

    "Golden Retriever!!!" -> "golden retriever"; "Café Mocha" -> "caf mocha".
    """
    if not text:
        return ""
    lowered = str(text).lower()
    letters_only = _NON_LETTERS.sub("", lowered)
    return _WHITESPACE.sub(" ", letters_only).strip()


def prepare_answer(text: Optional[str]) -> str:
    """Normalize and cap at MAX_ANSWER_LENGTH; an empty result means no answer."""
    return normalize_answer(text)[:MAX_ANSWER_LENGTH].strip()


def summarize_answers(answers: Iterable[str], total_votes: int) -> Optional[str]:
    """Pick the most repeated significant word, else fall back to a friend count."""
    answers = [answer for answer in answers if answer]
    if not answers:
        return None

    tally: Counter = Counter()
    for answer in answers:
        significant = [
            word
            for word in _WORDS.findall(answer.lower())
            if len(word) > 2 and word not in STOP_WORDS
        ]
        tally.update(significant[:SUMMARY_WORDS_PER_ANSWER])

    if tally:
        word, count = tally.most_common(1)[0]
        if count > 1:
            return f'"{word}" was mentioned {count} times'
    return f"{total_votes} friends shared their thoughts"
