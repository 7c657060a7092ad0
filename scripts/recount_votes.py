#!/usr/bin/env python
"""
Rebuild category_answers.vote_count from the votes table.

Usage:
    python scripts/recount_votes.py [OWNER_ID]

Environment variables:
    DATABASE_URL       (optional – defaults match app.py)
"""

from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app import create_app  # noqa: E402
from gift_calendar.votes import recount_vote_counts  # noqa: E402


def main(argv: list[str]) -> None:
    owner_id = argv[1] if len(argv) > 1 else None
    app = create_app()
    with app.app_context():
        scope = f"owner {owner_id}" if owner_id else "all calendars"
        print(f"🔍 Recounting votes for {scope}...")
        result = recount_vote_counts(owner_id)

    print("\n✅ Recount complete.")
    print(f"    Counts fixed:     {result['fixed']}")
    print(f"    Orphans removed:  {result['removed']}")
    if not (result["fixed"] or result["removed"]):
        print("    No updates were necessary.")


if __name__ == "__main__":
    try:
        main(sys.argv)
    except KeyboardInterrupt:
        sys.exit("\n⚠️ Recount cancelled by user.")
