"""Admin AI routes — enhance pasted text, update a summary from lecture media, generate quizzes."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from audit import log_event
from content_generation import build_new_information
from extensions import GeneratorManager, limiter
from helpers import admin_required, current_user_id, get_coordinator, int_field, request_data

logger = logging.getLogger(__name__)

bp = Blueprint("ai", __name__)


def _flag(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in ("1", "true", "yes", "on")


@bp.route("/api/admin/ai/enhance", methods=["POST"])
@admin_required
@limiter.limit("20 per hour")
def api_enhance():
    data = request_data()
    coord = get_coordinator()
    save = _flag(data.get("save"))
    subject_id = int_field(data, "subject_id", required=save)
    if subject_id is not None:
        coord.get_subject(subject_id)

    content = GeneratorManager.get_generator().enhance(data.get("text", ""))
    body: dict = {"content": content}
    if save:
        summary = coord.save_generated_summary(subject_id, content)
        log_event("summary_create", current_user_id(), f"id={summary.id} source=ai_enhance")
        body["summary"] = summary.to_dict()
        return jsonify(body), 201
    return jsonify(body)


@bp.route("/api/admin/summaries/<int:summary_id>/ai/update", methods=["POST"])
@admin_required
@limiter.limit("20 per hour")
def api_update_from_media(summary_id):
    coord = get_coordinator()
    summary = coord.get_summary(summary_id)
    generator = GeneratorManager.get_generator()

    transcript = ""
    audio = request.files.get("audio")
    if audio is not None and audio.filename:
        transcript = generator.transcribe_audio(audio.read(), audio.mimetype)
    new_information = build_new_information(transcript, request_data().get("text", ""))

    content = generator.update_from_media(summary.content, new_information)
    updated = coord.apply_summary_content(summary_id, content)
    if updated is None:
        return jsonify({"applied": False, "content": content})
    log_event("summary_ai_update", current_user_id(), f"id={summary_id} audio={bool(transcript)}")
    return jsonify({"applied": True, "summary": updated.to_dict()})


@bp.route("/api/admin/summaries/<int:summary_id>/ai/quiz", methods=["POST"])
@admin_required
@limiter.limit("20 per hour")
def api_generate_quiz(summary_id):
    coord = get_coordinator()
    summary = coord.get_summary(summary_id)

    questions = GeneratorManager.get_generator().generate_quiz(summary.title, summary.content)
    updated = coord.apply_quiz(summary_id, questions)
    if updated is None:
        return jsonify({"applied": False, "questions": [q.to_dict() for q in questions]})
    log_event("summary_ai_quiz", current_user_id(), f"id={summary_id} questions={len(questions)}")
    return jsonify({"applied": True, "summary": updated.to_dict()})
