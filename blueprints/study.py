"""Study routes — subject and summary views, completion toggle, quiz answers."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify
from flask_login import login_required

from content_generation import check_answer
from errors import GenerationError, NotFoundError
from extensions import GeneratorManager
from helpers import get_coordinator, int_field, request_data
from media import available_tabs, google_drive_embed_url, spotify_embed_url, table_of_contents

logger = logging.getLogger(__name__)

bp = Blueprint("study", __name__)


@bp.route("/api/subjects/<int:subject_id>")
@login_required
def api_subject(subject_id):
    coord = get_coordinator()
    subject = coord.get_subject(subject_id)
    completed = set(coord.profile.completed_summaries)
    progress = coord.progress(subject_id)
    return jsonify({
        "subject": subject.to_dict(),
        "progress": progress.to_dict(),
        "progress_label": str(progress),
        "summaries": [
            {**s.to_dict(include_content=False), "completed": s.id in completed}
            for s in coord.summaries_for(subject_id)
        ],
    })


@bp.route("/api/summaries/<int:summary_id>")
@login_required
def api_summary(summary_id):
    coord = get_coordinator()
    summary = coord.get_summary(summary_id)
    subject = coord.get_subject(summary.subject_id)
    return jsonify({
        "summary": summary.to_dict(),
        "subject": subject.to_dict(),
        "completed": coord.profile.is_completed(summary.id),
        "tabs": available_tabs(summary, coord.profile.role),
        "table_of_contents": table_of_contents(summary.content),
        "video_embed_url": google_drive_embed_url(summary.video),
        "podcast_embed_url": spotify_embed_url(summary.audio),
    })


@bp.route("/api/summaries/<int:summary_id>/complete", methods=["POST"])
@login_required
def api_toggle_complete(summary_id):
    coord = get_coordinator()
    result = coord.toggle_complete(summary_id)
    profile = coord.profile
    body = {
        **result.to_dict(),
        "completed": profile.is_completed(summary_id),
        "streak": profile.streak,
        "last_completion_date": (
            profile.last_completion_date.isoformat() if profile.last_completion_date else None
        ),
    }
    return jsonify(body), 200 if result.ok else 502


@bp.route("/api/summaries/<int:summary_id>/quiz/<int:number>/answer", methods=["POST"])
@login_required
def api_answer(summary_id, number):
    coord = get_coordinator()
    summary = coord.get_summary(summary_id)
    if not 1 <= number <= len(summary.questions):
        raise NotFoundError("Question not found.")
    question = summary.questions[number - 1]

    outcome = check_answer(question, int_field(request_data(), "choice"))
    body = outcome.to_dict()
    if outcome.correct:
        if question.explanation:
            body["explanation"] = question.explanation
        else:
            try:
                body["explanation"] = GeneratorManager.get_generator().explain_answer(
                    summary.content, question.text, outcome.correct_alternative,
                )
            except GenerationError as e:
                logger.info("No explanation for summary %s question %s: %s", summary_id, number, e)
                body["explanation_error"] = e.message
    return jsonify(body)
