"""Helpers for loading the category catalog (edit config/categories.json to tweak prompts)."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Dict, List, Optional

from flask import current_app, has_app_context
from sqlalchemy.exc import IntegrityError

from extensions import db
from gift_calendar.models import Category
from gift_calendar.schedule import TOTAL_DAYS

DEFAULT_CATALOG_BASENAME = "categories.json"
_CATALOG_CACHE: Dict[str, object] = {"data": None, "mtime": None, "path": None}


def load_category_catalog(force_refresh: bool = False) -> Dict[int, dict]:
    """Load and cache category metadata as a dict keyed by category id."""
    catalog_path = _resolve_catalog_path()

    mtime = catalog_path.stat().st_mtime
    cached = _CATALOG_CACHE.get("data")
    cached_mtime = _CATALOG_CACHE.get("mtime")
    cached_path = _CATALOG_CACHE.get("path")
    if not force_refresh and cached and cached_mtime == mtime and cached_path == catalog_path:
        return cached  # type: ignore[return-value]

    with catalog_path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)

    catalog: Dict[int, dict] = {}
    for entry in payload:
        try:
            category_id = int(entry["id"])
        except (KeyError, ValueError, TypeError):
            continue
        if not 1 <= category_id <= TOTAL_DAYS:
            continue
        catalog[category_id] = {
            "id": category_id,
            "name": entry.get("name", ""),
            "code": entry.get("code") or f"category_{category_id}",
            "prompt": entry.get("prompt", ""),
            "description": entry.get("description", ""),
            "emoji": entry.get("emoji"),
            "display_order": int(entry.get("display_order", category_id)),
        }

    _CATALOG_CACHE["data"] = catalog
    _CATALOG_CACHE["mtime"] = mtime
    _CATALOG_CACHE["path"] = catalog_path
    return catalog


def seed_categories(catalog: Optional[Dict[int, dict]] = None) -> int:
    """Insert catalog rows that are missing; existing rows are left untouched."""
    catalog = catalog if catalog is not None else load_category_catalog()
    existing = {row.id for row in Category.query.with_entities(Category.id).all()}

    added = 0
    for category_id, entry in sorted(catalog.items()):
        if category_id in existing:
            continue
        db.session.add(Category(**entry))
        added += 1

    if not added:
        return 0
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        _log_warning("Category seed raced another worker; skipping.")
        return 0
    return added


def list_categories() -> List[Category]:
    return Category.query.order_by(Category.display_order.asc(), Category.id.asc()).all()


def known_category_ids() -> set[int]:
    return {row.id for row in Category.query.with_entities(Category.id).all()}


def _resolve_catalog_path() -> Path:
    """Return the first catalog path that exists across multiple fallbacks."""
    candidates: List[Path] = []
    env_override = os.environ.get("GIFT_CALENDAR_CATEGORIES_PATH")
    if has_app_context():
        config_override = current_app.config.get("GIFT_CALENDAR_CATEGORIES_PATH")
        if config_override:
            candidates.append(Path(config_override).expanduser())
    if env_override:
        candidates.append(Path(env_override).expanduser())

    module_dir = Path(__file__).resolve().parent
    candidates.append(module_dir / "config" / DEFAULT_CATALOG_BASENAME)

    seen: List[Path] = []
    for path in candidates:
        if path in seen:
            continue
        seen.append(path)
        if path.exists():
            return path

    checked = ", ".join(str(path) for path in seen)
    raise FileNotFoundError(f"Category catalog missing. Checked: {checked}")


def _log_warning(message: str) -> None:
    if not has_app_context():
        return
    current_app.logger.warning(message)
