"""Core routes — session state, dashboard, terms, theme, navigation, health checks."""

from __future__ import annotations

import logging
import time

from flask import Blueprint, jsonify, request
from flask_login import login_required
from flask_wtf.csrf import generate_csrf

from database import get_db
from helpers import get_coordinator, int_field, request_data

logger = logging.getLogger(__name__)

bp = Blueprint("core", __name__)


@bp.route("/api/state")
@login_required
def api_state():
    return jsonify(get_coordinator().snapshot())


@bp.route("/api/dashboard")
@login_required
def api_dashboard():
    coord = get_coordinator()
    return jsonify(coord.dashboard(request.args.get("q", "")))


@bp.route("/api/terms")
@login_required
def api_terms():
    coord = get_coordinator()
    return jsonify({
        "terms": [{"id": t.id, "name": t.name} for t in coord.terms()],
        "selected": coord.profile.term_id,
    })


@bp.route("/api/profile/term", methods=["POST"])
@login_required
def api_profile_term():
    coord = get_coordinator()
    term_id = int_field(request_data(), "term_id")
    result = coord.set_term(term_id)
    status = 200 if result.ok else 502
    return jsonify({**result.to_dict(), "profile": coord.profile.to_dict(),
                    "navigation": coord.nav.to_dict()}), status


@bp.route("/api/theme/toggle", methods=["POST"])
@login_required
def api_theme_toggle():
    return jsonify({"theme": get_coordinator().toggle_theme()})


# ── Navigation intents ────────────────────────────────────


@bp.route("/api/navigate/subject/<int:subject_id>", methods=["POST"])
@login_required
def navigate_subject(subject_id):
    coord = get_coordinator()
    coord.select_subject(subject_id)
    return jsonify(coord.snapshot())


@bp.route("/api/navigate/summary/<int:summary_id>", methods=["POST"])
@login_required
def navigate_summary(summary_id):
    coord = get_coordinator()
    coord.select_summary(summary_id)
    return jsonify(coord.snapshot())


@bp.route("/api/navigate/dashboard", methods=["POST"])
@login_required
def navigate_dashboard():
    coord = get_coordinator()
    coord.back_to_dashboard()
    return jsonify(coord.snapshot())


@bp.route("/api/navigate/back", methods=["POST"])
@login_required
def navigate_back():
    coord = get_coordinator()
    coord.back()
    return jsonify(coord.snapshot())


@bp.route("/api/csrf-token")
def csrf_token():
    return jsonify({"csrf_token": generate_csrf()})


# ── Health checks ─────────────────────────────────────────

_start_time = time.time()


@bp.route("/health")
def health():
    uptime = int(time.time() - _start_time)
    return jsonify({"status": "ok", "uptime_seconds": uptime})


@bp.route("/ready")
def ready():
    try:
        get_db().execute("SELECT 1").fetchone()
    except Exception as exc:
        logger.error("Readiness check failed: %s", exc, exc_info=True)
        return jsonify({"status": "not_ready"}), 503
    return jsonify({"status": "ready"}), 200
