"""Admin content routes — subject and summary CRUD, audit trail."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from audit import log_event, recent_events
from content_generation import ALTERNATIVE_COUNT
from errors import ValidationError
from helpers import admin_required, current_user_id, get_coordinator, int_field, request_data
from models import Question

bp = Blueprint("content", __name__)


def _questions(data: dict):
    raw = data.get("questions")
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise ValidationError("Questions must be a list.")
    questions = []
    for i, item in enumerate(raw, 1):
        if not isinstance(item, dict):
            raise ValidationError(f"Question {i} is malformed.")
        text = item.get("text")
        alternatives = item.get("alternatives")
        correct = item.get("correct_index")
        explanation = item.get("explanation") or ""
        if not isinstance(text, str) or not text.strip():
            raise ValidationError(f"Question {i} has no text.")
        if (not isinstance(alternatives, list) or len(alternatives) != ALTERNATIVE_COUNT
                or not all(isinstance(a, str) and a.strip() for a in alternatives)):
            raise ValidationError(f"Question {i} needs {ALTERNATIVE_COUNT} alternatives and one correct answer.")
        if isinstance(correct, bool) or not isinstance(correct, int) or not 0 <= correct < ALTERNATIVE_COUNT:
            raise ValidationError(f"Question {i} needs {ALTERNATIVE_COUNT} alternatives and one correct answer.")
        if not isinstance(explanation, str):
            raise ValidationError(f"Question {i} has a malformed explanation.")
        questions.append(Question(text.strip(), [a.strip() for a in alternatives], correct, explanation))
    return questions


def _keep(data: dict, key: str, current):
    """Field from the body, or ``current`` when it is absent or null."""
    value = data.get(key)
    return current if value is None else value


# ── Subjects ──────────────────────────────────────────────


@bp.route("/api/admin/subjects", methods=["POST"])
@admin_required
def create_subject():
    data = request_data()
    coord = get_coordinator()
    subject = coord.save_subject(
        data.get("name", ""),
        term_id=int_field(data, "term_id", required=False),
        color=data.get("color") or None,
    )
    log_event("subject_create", current_user_id(), f"id={subject.id} name={subject.name}")
    return jsonify({"subject": subject.to_dict()}), 201


@bp.route("/api/admin/subjects/<int:subject_id>", methods=["PUT"])
@admin_required
def update_subject(subject_id):
    data = request_data()
    coord = get_coordinator()
    subject = coord.save_subject(
        data.get("name", ""),
        subject_id=subject_id,
        term_id=int_field(data, "term_id", required=False),
        color=data.get("color") or None,
    )
    log_event("subject_update", current_user_id(), f"id={subject.id}")
    return jsonify({"subject": subject.to_dict()})


@bp.route("/api/admin/subjects/<int:subject_id>", methods=["DELETE"])
@admin_required
def delete_subject(subject_id):
    coord = get_coordinator()
    coord.delete_subject(subject_id)
    log_event("subject_delete", current_user_id(), f"id={subject_id}")
    return jsonify({"success": True, "navigation": coord.nav.to_dict()})


# ── Summaries ─────────────────────────────────────────────


@bp.route("/api/admin/summaries", methods=["POST"])
@admin_required
def create_summary():
    data = request_data()
    summary = get_coordinator().save_summary(
        int_field(data, "subject_id"),
        data.get("title", ""),
        content=data.get("content", ""),
        audio=data.get("audio", ""),
        video=data.get("video", ""),
        questions=_questions(data),
    )
    log_event("summary_create", current_user_id(), f"id={summary.id} subject={summary.subject_id}")
    return jsonify({"summary": summary.to_dict()}), 201


@bp.route("/api/admin/summaries/<int:summary_id>", methods=["PUT"])
@admin_required
def update_summary(summary_id):
    data = request_data()
    coord = get_coordinator()
    current = coord.get_summary(summary_id)
    summary = coord.save_summary(
        int_field(data, "subject_id", required=False) or current.subject_id,
        _keep(data, "title", current.title),
        content=_keep(data, "content", current.content),
        audio=_keep(data, "audio", current.audio),
        video=_keep(data, "video", current.video),
        questions=_questions(data),
        summary_id=summary_id,
    )
    log_event("summary_update", current_user_id(), f"id={summary.id}")
    return jsonify({"summary": summary.to_dict()})


@bp.route("/api/admin/summaries/<int:summary_id>", methods=["DELETE"])
@admin_required
def delete_summary(summary_id):
    coord = get_coordinator()
    coord.delete_summary(summary_id)
    log_event("summary_delete", current_user_id(), f"id={summary_id}")
    return jsonify({"success": True, "navigation": coord.nav.to_dict()})


# ── Audit ─────────────────────────────────────────────────


@bp.route("/api/admin/audit")
@admin_required
def audit_trail():
    limit = min(request.args.get("limit", 50, type=int), 200)
    return jsonify({"events": recent_events(limit=limit)})
