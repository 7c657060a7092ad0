"""JSON Blueprint for the gift calendar (owner dashboard, voting page, reveals)."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from gift_calendar import calendars, invitations, reveals, votes
from gift_calendar.auth import Principal, PrincipalProvider, ensure_user_record
from gift_calendar.cache import OverviewCache
from gift_calendar.errors import CalendarServiceError, DependencyFailure, Forbidden, InvalidInput, Unauthorized
from gift_calendar.schedule import schedule_status
from models import User

Clock = Callable[[], Optional[datetime]]


def create_gift_calendar_blueprint(
    current_user_provider: PrincipalProvider,
    *,
    overview_cache: Optional[OverviewCache] = None,
    clock: Optional[Clock] = None,
    url_prefix: str = "/api",
) -> Blueprint:
    """Factory so the main app can inject its principal lookup and clock."""

    bp = Blueprint("gift_calendar", __name__, url_prefix=url_prefix)
    cache = overview_cache or OverviewCache()

    def _now() -> Optional[datetime]:
        return clock() if clock else None

    def _require_user() -> User:
        principal: Optional[Principal] = current_user_provider()
        if not principal:
            raise Unauthorized("Please log in to continue.")
        return ensure_user_record(principal)

    def _json_body() -> dict:
        payload = request.get_json(silent=True)
        return payload if isinstance(payload, dict) else {}

    def _test_mode(raw_value) -> bool:
        if not current_app.config.get("GIFT_CALENDAR_ALLOW_TEST_MODE"):
            return False
        if isinstance(raw_value, str):
            return raw_value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(raw_value)

    def _base_url() -> str:
        return (
            request.headers.get("Origin")
            or current_app.config.get("APP_BASE_URL")
            or request.host_url
        ).rstrip("/")

    @bp.errorhandler(CalendarServiceError)
    def _handle_service_error(exc: CalendarServiceError):
        return jsonify(exc.payload), exc.status_code

    @bp.errorhandler(SQLAlchemyError)
    def _handle_store_error(exc: SQLAlchemyError):
        db.session.rollback()
        current_app.logger.exception("Gift calendar store error: %s", exc)
        failure = DependencyFailure("Database error — please try again later.", code="database_error")
        return jsonify(failure.payload), failure.status_code

    @bp.get("/me")
    def me():
        user = _require_user()
        return jsonify({"success": True, "user": user.to_owner_dict()})

    @bp.post("/calendar")
    def generate_calendar():
        user = _require_user()
        result = calendars.generate_calendar_code(user.id)
        message = "Calendar generated successfully!" if result["created"] else "Calendar already exists"
        return jsonify(
            {"success": True, "calendar_code": result["calendar_code"], "message": message}
        )

    @bp.patch("/calendar/settings")
    def update_settings():
        user = _require_user()
        payload = _json_body()
        kwargs = {}
        if "voting_enabled" in payload:
            kwargs["voting_enabled"] = payload.get("voting_enabled")
        if "voting_deadline" in payload:
            kwargs["voting_deadline"] = payload.get("voting_deadline")
        if not kwargs:
            raise InvalidInput("Nothing to update", code="missing_fields")
        owner = calendars.update_voting_settings(user.id, **kwargs)
        return jsonify({"success": True, "user": owner.to_owner_dict()})

    @bp.get("/calendars/<code>")
    def public_calendar(code: str):
        return jsonify({"success": True, **calendars.get_calendar(code, _now())})

    @bp.get("/schedule")
    def schedule():
        return jsonify({"success": True, **schedule_status(_now())})

    @bp.post("/invitations")
    def create_invitations():
        user = _require_user()
        payload = _json_body()
        batch = invitations.create_invitations(user, payload.get("emails"), _base_url())
        if batch.invited:
            cache.invalidate(user.id)
        return jsonify(batch.to_dict())

    @bp.get("/invitations")
    def list_invitations():
        user = _require_user()
        return jsonify(
            {"success": True, "invitations": invitations.list_invitations(user, _base_url())}
        )

    @bp.get("/invitations/received")
    def received_invitations():
        user = _require_user()
        return jsonify(
            {"success": True, "invitations": invitations.list_received_invitations(user)}
        )

    @bp.delete("/invitations/<int:invitation_id>")
    def delete_invitation(invitation_id: int):
        user = _require_user()
        invitations.delete_invitation(user.id, invitation_id)
        cache.invalidate(user.id)
        return jsonify({"success": True})

    @bp.post("/votes")
    def submit_votes():
        user = _require_user()
        payload = _json_body()

        owner_id = payload.get("calendarOwnerId")
        calendar_code = payload.get("calendarCode")
        if not owner_id and calendar_code:
            owner_id = calendars.get_calendar(calendar_code, _now())["owner"]["id"]
        if not owner_id:
            raise InvalidInput("calendarOwnerId or calendarCode is required", code="missing_calendar")

        submission = votes.submit_votes(
            user,
            str(owner_id),
            payload.get("answers"),
            invite_token=payload.get("inviteToken"),
            now=_now(),
            test_mode=_test_mode(payload.get("testMode")),
        )
        cache.invalidate(str(owner_id))
        return jsonify(submission.to_dict())

    @bp.post("/reveals")
    def reveal_day():
        user = _require_user()
        payload = _json_body()
        result = reveals.reveal_day(
            user.id,
            payload.get("day"),
            now=_now(),
            test_mode=_test_mode(payload.get("testMode")),
        )
        cache.invalidate(user.id)
        return jsonify(result.to_dict())

    @bp.get("/reveals")
    def list_reveals():
        user = _require_user()
        return jsonify({"success": True, "reveals": reveals.revealed_days(user.id)})

    @bp.delete("/reveals")
    def reset_reveals():
        user = _require_user()
        if not _test_mode(request.args.get("testMode")):
            raise Forbidden("Resetting reveals is only available in test mode.", code="test_mode_required")
        removed = reveals.reset_reveals(user.id)
        cache.invalidate(user.id)
        return jsonify({"success": True, "removed": removed})

    @bp.get("/overview")
    def overview():
        user = _require_user()
        cached = cache.get(user.id)
        if cached is not None:
            return jsonify(cached)
        payload = reveals.calendar_overview(user.id, _now())
        cache.set(user.id, payload)
        return jsonify(payload)

    return bp
