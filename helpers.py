"""
Shared helpers used across blueprints.

Builds the per-request SessionCoordinator from the authenticated identity
and the navigation state kept in the Flask session.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import current_app, g, jsonify, request, session
from flask_login import current_user

from coordinator import SessionCoordinator
from db_stores import DataStoreDB
from errors import ValidationError
from navigation import NavigationMachine
from preferences import get_preferences

NAV_SESSION_KEY = "nav"


def current_user_id() -> int | None:
    """Return the current authenticated user's ID, or None."""
    if current_user.is_authenticated:
        return current_user.id
    return None


def admin_required(f: Callable) -> Callable:
    """Decorator that requires the admin role on the user's profile."""
    @wraps(f)
    def decorated(*args: Any, **kwargs: Any) -> Any:
        if not current_user.is_authenticated:
            return jsonify({"error": "Authentication required."}), 401
        if not get_coordinator().profile.is_admin:
            return jsonify({"error": "Administrator role required."}), 403
        return f(*args, **kwargs)
    return decorated


def _new_coordinator(user_id: int, nav: NavigationMachine) -> SessionCoordinator:
    return SessionCoordinator(
        DataStoreDB(user_id),
        get_preferences(),
        nav,
        default_theme=current_app.config.get("DEFAULT_THEME", "dark"),
    )


def get_coordinator() -> SessionCoordinator:
    """Coordinator for the current request, restored from the session once."""
    if "coordinator" not in g:
        uid = current_user_id()
        nav = NavigationMachine.from_dict(session.get(NAV_SESSION_KEY))
        coord = _new_coordinator(uid, nav)
        coord.restore(uid)
        g.coordinator = coord
        g.log_user_id = uid
    return g.coordinator


def start_session(user_id: int) -> SessionCoordinator:
    """Resolve a fresh sign-in: Loading -> Dashboard with state loaded."""
    coord = _new_coordinator(user_id, NavigationMachine())
    coord.on_session_change(user_id)
    g.coordinator = coord
    save_navigation(coord)
    return coord


def end_session() -> dict:
    """Sign-out: clear canonical state and park navigation in LoggedOut."""
    coord = g.pop("coordinator", None)
    if coord is not None:
        coord.on_session_change(None)
        nav = coord.nav
    else:
        nav = NavigationMachine()
        nav.logout()
    session[NAV_SESSION_KEY] = nav.to_dict()
    return nav.to_dict()


def save_navigation(coord: SessionCoordinator) -> None:
    session[NAV_SESSION_KEY] = coord.nav.to_dict()


def request_data() -> dict:
    """JSON body, or form fields for multipart/urlencoded requests."""
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def int_field(data: dict, key: str, required: bool = True) -> int | None:
    value = data.get(key)
    if value in (None, ""):
        if required:
            raise ValidationError(f"'{key}' is required.")
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"'{key}' must be an integer.") from e
