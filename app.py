import os
from datetime import timedelta
from pathlib import Path
from typing import Optional

from flask import Flask, jsonify
from supabase import Client, create_client

from extensions import db
from gift_calendar import OverviewCache, create_gift_calendar_blueprint, supabase_principal_provider
from gift_calendar.catalog import seed_categories

# ====== Feature toggle ======
def _env_flag(name: str, default: bool) -> bool:
    """Parse truthy feature-toggle values from the environment."""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


USE_SUPABASE = _env_flag("USE_SUPABASE", True)  # ✅ Supabase Auth for signed-in principals
ALLOW_TEST_MODE = _env_flag("GIFT_CALENDAR_ALLOW_TEST_MODE", False)  # 🚧 Honour ?testMode for the dev panel

# ====== Calendar settings ======
CALENDAR_TIMEZONE = os.environ.get("GIFT_CALENDAR_TIMEZONE", "Europe/London")
APP_BASE_URL = os.environ.get("APP_BASE_URL", "http://localhost:3000")

OVERVIEW_CACHE_MAX_AGE_SECONDS = 30
_cache_age_env = os.environ.get("OVERVIEW_CACHE_MAX_AGE_SECONDS")
if _cache_age_env:
    try:
        OVERVIEW_CACHE_MAX_AGE_SECONDS = max(0, int(_cache_age_env))
    except ValueError:
        print(f"⚠️ Invalid OVERVIEW_CACHE_MAX_AGE_SECONDS value: {_cache_age_env!r}. Using default {OVERVIEW_CACHE_MAX_AGE_SECONDS}.")

# ====== Database ======
DATA_DIR = Path(__file__).resolve().parent / "data"


def _database_url() -> str:
    raw_db_url = os.environ.get("DATABASE_URL")
    if raw_db_url:
        if raw_db_url.startswith("postgres://"):
            raw_db_url = raw_db_url.replace("postgres://", "postgresql://", 1)
        return raw_db_url
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{DATA_DIR / 'app.db'}"


SUPABASE_URL = os.environ.get("SUPABASE_URL")
SUPABASE_KEY = os.environ.get("SUPABASE_KEY")


def _build_supabase_client():
    if not (SUPABASE_URL and SUPABASE_KEY):
        return None
    try:
        supabase: Client = create_client(SUPABASE_URL, SUPABASE_KEY)
    except Exception as e:
        print("⚠️ Could not init Supabase client:", e)
        return None
    return supabase


def create_app(test_config: Optional[dict] = None, principal_provider=None, clock=None) -> Flask:
    """Build the Flask app; tests pass their own config, principal provider and clock."""
    app = Flask(__name__)
    app.permanent_session_lifetime = timedelta(days=365)

    if test_config:
        app.config.update(test_config)

    app.config.setdefault("SECRET_KEY", os.environ.get("SECRET_KEY") or os.urandom(24))
    app.config.setdefault("USE_SUPABASE", USE_SUPABASE)
    app.config.setdefault("GIFT_CALENDAR_ALLOW_TEST_MODE", ALLOW_TEST_MODE)
    app.config.setdefault("GIFT_CALENDAR_TIMEZONE", CALENDAR_TIMEZONE)
    app.config.setdefault("APP_BASE_URL", APP_BASE_URL)
    app.config.setdefault("OVERVIEW_CACHE_MAX_AGE_SECONDS", OVERVIEW_CACHE_MAX_AGE_SECONDS)
    if "SQLALCHEMY_DATABASE_URI" not in app.config:
        app.config["SQLALCHEMY_DATABASE_URI"] = _database_url()
    app.config.setdefault("SQLALCHEMY_TRACK_MODIFICATIONS", False)
    if "SUPABASE_CLIENT" not in app.config:
        app.config["SUPABASE_CLIENT"] = _build_supabase_client() if app.config["USE_SUPABASE"] else None

    db.init_app(app)

    overview_cache = OverviewCache(ttl_seconds=app.config["OVERVIEW_CACHE_MAX_AGE_SECONDS"])
    app.register_blueprint(
        create_gift_calendar_blueprint(
            principal_provider or supabase_principal_provider(),
            overview_cache=overview_cache,
            clock=clock,
        )
    )

    @app.get("/healthz")
    def healthz():
        return jsonify({"status": "ok"})

    @app.errorhandler(404)
    @app.errorhandler(405)
    @app.errorhandler(500)
    def show_json_error(err):
        status_code = getattr(err, "code", 500) or 500
        return jsonify({"success": False, "error": getattr(err, "name", "error")}), status_code

    with app.app_context():
        db.create_all()
        try:
            seed_categories()
        except FileNotFoundError as exc:
            app.logger.warning("Category seed skipped: %s", exc)

    if app.config["SUPABASE_CLIENT"] is None and principal_provider is None:
        app.logger.warning("Supabase client not configured; authenticated endpoints will return 401.")

    return app


if __name__ == "__main__":
    create_app().run(debug=_env_flag("FLASK_DEBUG", False))
