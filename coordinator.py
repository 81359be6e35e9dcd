"""
Session coordinator — owns the canonical application state for one user.

All mutation goes through the named transitions on SessionCoordinator:
session changes, navigation, profile writes (optimistic, with rollback),
admin CRUD (applied after the store confirms) and AI results (applied only
if their target still exists). Derived values are recomputed on read.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Optional

from db_stores import DataStore
from derived_state import (
    SUBJECT_COLORS,
    SearchResults,
    pick_subject_color,
    push_last_viewed,
    search,
    subject_progress,
    toggle_completion,
    visible_last_viewed,
)
from errors import NotFoundError, StoreError, ValidationError
from models import LastViewedEntry, Question, Subject, Summary, Term, UserProfile
from navigation import Loading, LoggedOut, NavigationMachine, SummaryView
from preferences import (
    THEMES,
    PreferenceBackend,
    load_last_viewed,
    load_theme,
    save_last_viewed,
    save_theme,
)

logger = logging.getLogger(__name__)

AI_SUMMARY_TITLE = "New Summary (AI generated)"


class RequestStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass
class RequestResult:
    """Outcome of an optimistic write: pending, confirmed(value) or failed(prior)."""

    status: RequestStatus
    value: Any = None
    prior: Any = None
    error: Optional[str] = None

    @classmethod
    def pending(cls, prior: Any) -> RequestResult:
        return cls(RequestStatus.PENDING, prior=prior)

    def confirm(self, value: Any) -> RequestResult:
        return RequestResult(RequestStatus.CONFIRMED, value=value, prior=self.prior)

    def fail(self, error: str) -> RequestResult:
        return RequestResult(RequestStatus.FAILED, value=self.prior, prior=self.prior, error=error)

    @property
    def ok(self) -> bool:
        return self.status is RequestStatus.CONFIRMED

    def to_dict(self) -> dict:
        data: dict = {"status": self.status.value}
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class AppState:
    user_id: Optional[int] = None
    profile: Optional[UserProfile] = None
    subjects: list[Subject] = field(default_factory=list)
    summaries: list[Summary] = field(default_factory=list)
    last_viewed: list[LastViewedEntry] = field(default_factory=list)
    theme: str = "dark"
    search_query: str = ""

    def clear(self) -> None:
        self.user_id = None
        self.profile = None
        self.subjects = []
        self.summaries = []
        self.last_viewed = []
        self.search_query = ""


class SessionCoordinator:
    """Canonical state plus the navigation machine for one session."""

    def __init__(self, store: Optional[DataStore], prefs: PreferenceBackend,
                 nav: Optional[NavigationMachine] = None, default_theme: str = "dark") -> None:
        self.store = store
        self.prefs = prefs
        self.nav = nav if nav is not None else NavigationMachine()
        self.default_theme = default_theme if default_theme in THEMES else "dark"
        self.state = AppState(theme=self.default_theme)

    # ── Lookups ─────────────────────────────────────────────────────

    def _subject(self, subject_id: int) -> Optional[Subject]:
        return next((s for s in self.state.subjects if s.id == subject_id), None)

    def _summary(self, summary_id: int) -> Optional[Summary]:
        return next((s for s in self.state.summaries if s.id == summary_id), None)

    def get_subject(self, subject_id: int) -> Subject:
        subject = self._subject(subject_id)
        if subject is None:
            raise NotFoundError("Subject not found.")
        return subject

    def get_summary(self, summary_id: int) -> Summary:
        """A summary is only reachable while its subject is loaded."""
        summary = self._summary(summary_id)
        if summary is None or self._subject(summary.subject_id) is None:
            raise NotFoundError("Summary not found.")
        return summary

    def summaries_for(self, subject_id: int) -> list[Summary]:
        return [s for s in self.state.summaries if s.subject_id == subject_id]

    @property
    def profile(self) -> UserProfile:
        if self.state.profile is None:
            raise NotFoundError("No active session.")
        return self.state.profile

    # ── Session ─────────────────────────────────────────────────────

    def _load(self, user_id: int) -> None:
        self.state.user_id = user_id
        profile = self.store.get_profile(user_id)
        if profile is None:
            profile = self.store.create_profile(user_id)
        self.state.profile = profile
        self._load_term()
        self.state.last_viewed = load_last_viewed(self.prefs, user_id)
        self.state.theme = load_theme(self.prefs, user_id, self.default_theme)

    def _load_term(self) -> None:
        term_id = self.state.profile.term_id if self.state.profile else None
        if term_id is None:
            self.state.subjects, self.state.summaries = [], []
            return
        self.state.subjects, self.state.summaries = self.store.load_term(term_id)

    def heal(self) -> None:
        steps = self.nav.heal(
            [s.id for s in self.state.subjects],
            [s.id for s in self.state.summaries if self._subject(s.subject_id) is not None],
        )
        if steps:
            logger.debug("Navigation healed to %s", self.nav.state.name)

    def on_session_change(self, user_id: Optional[int]) -> None:
        """A user signed in (id) or out (None)."""
        if user_id is None:
            self.logout()
            return
        self.nav.begin_session()
        self._load(user_id)
        self.nav.session_resolved(True)
        self.heal()

    def restore(self, user_id: int) -> None:
        """Rebuild canonical state for an already-resolved session."""
        self._load(user_id)
        if isinstance(self.nav.state, Loading):
            self.nav.session_resolved(True)
        elif isinstance(self.nav.state, LoggedOut):
            self.nav.begin_session()
            self.nav.session_resolved(True)
        self.heal()

    def refresh(self) -> None:
        if self.state.user_id is None:
            return
        profile = self.store.get_profile(self.state.user_id)
        if profile is not None:
            self.state.profile = profile
        self._load_term()
        self.heal()

    def logout(self) -> None:
        self.nav.logout()
        self.state.clear()
        self.state.theme = self.default_theme

    # ── Navigation ──────────────────────────────────────────────────

    def select_subject(self, subject_id: int) -> None:
        self.nav.select_subject(self.get_subject(subject_id))

    def select_summary(self, summary_id: int) -> None:
        summary = self.get_summary(summary_id)
        self.nav.select_summary(summary)
        subject = self.get_subject(summary.subject_id)
        self.state.last_viewed = push_last_viewed(self.state.last_viewed, summary, subject.name)
        save_last_viewed(self.prefs, self.state.user_id, self.state.last_viewed)

    def back_to_dashboard(self) -> None:
        self.nav.back_to_dashboard()

    def back(self) -> None:
        """One level up: summary -> subject (when known) -> dashboard."""
        if isinstance(self.nav.state, SummaryView) and self.nav.last_subject_id is not None:
            self.nav.back_to_subject()
        else:
            self.nav.back_to_dashboard()

    # ── Reads ───────────────────────────────────────────────────────

    def search(self, query: str) -> SearchResults:
        self.state.search_query = query or ""
        return search(self.state.search_query, self.state.subjects, self.state.summaries)

    def progress(self, subject_id: int):
        return subject_progress(subject_id, self.state.summaries, self.profile.completed_summaries)

    def visible_last_viewed(self) -> list[LastViewedEntry]:
        return visible_last_viewed(self.state.last_viewed, self.state.subjects)

    def terms(self) -> list[Term]:
        return self.store.list_terms()

    def term_name(self) -> Optional[str]:
        term_id = self.profile.term_id
        if term_id is None:
            return None
        return next((t.name for t in self.terms() if t.id == term_id), None)

    def breadcrumbs(self) -> list[dict]:
        crumbs = [{"label": "Dashboard", "state": "dashboard"}]
        subject_id = self.nav.subject_id
        subject = self._subject(subject_id) if subject_id is not None else None
        if subject is not None:
            crumbs.append({"label": subject.name, "state": "subject", "id": subject.id})
        if self.nav.summary_id is not None:
            summary = self._summary(self.nav.summary_id)
            if summary is not None:
                crumbs.append({"label": summary.title, "state": "summary", "id": summary.id})
        return crumbs

    def dashboard(self, query: str = "") -> dict:
        profile = self.profile
        results = self.search(query)
        subjects = []
        for subject in self.state.subjects:
            progress = self.progress(subject.id)
            subjects.append({**subject.to_dict(), "progress": progress.to_dict(), "progress_label": str(progress)})
        return {
            "term": self.term_name(),
            "needs_term": profile.term_id is None,
            "streak": profile.streak,
            "subjects": subjects,
            "search": {"query": results.query, "searching": results.is_searching, **results.to_dict()},
            "all_summaries": [s.to_dict(include_content=False) for s in results.all_summaries],
            "last_viewed": [e.to_dict() for e in self.visible_last_viewed()],
        }

    def snapshot(self) -> dict:
        return {
            "navigation": self.nav.to_dict(),
            "profile": self.state.profile.to_dict() if self.state.profile else None,
            "theme": self.state.theme,
            "breadcrumbs": self.breadcrumbs() if self.state.profile else [],
        }

    # ── Profile writes (optimistic) ─────────────────────────────────

    def _write_profile(self, updated: UserProfile, fields: dict) -> RequestResult:
        prior = self.profile
        result = RequestResult.pending(prior)
        self.state.profile = updated
        try:
            confirmed = self.store.update_profile(prior.id, fields)
        except StoreError as e:
            logger.warning("Profile update for user %s rolled back: %s", prior.id, e)
            self.state.profile = prior
            return result.fail(e.message)
        self.state.profile = confirmed
        return result.confirm(confirmed)

    def toggle_complete(self, summary_id: int, today: Optional[date] = None) -> RequestResult:
        self.get_summary(summary_id)
        updated = toggle_completion(self.profile, summary_id, today)
        return self._write_profile(updated, {
            "completed_summaries": updated.completed_summaries,
            "streak": updated.streak,
            "last_completion_date": updated.last_completion_date,
        })

    def set_term(self, term_id: int) -> RequestResult:
        if term_id not in {t.id for t in self.terms()}:
            raise ValidationError("Choose one of the available terms.")
        result = self._write_profile(self.profile.copy(term_id=term_id), {"term_id": term_id})
        if result.ok:
            self._load_term()
            self.heal()
        return result

    def toggle_theme(self) -> str:
        self.state.theme = "light" if self.state.theme == "dark" else "dark"
        if self.state.user_id is not None:
            save_theme(self.prefs, self.state.user_id, self.state.theme)
        return self.state.theme

    # ── Admin CRUD (applied after confirmation) ─────────────────────

    def _replace_subject(self, saved: Subject) -> None:
        others = [s for s in self.state.subjects if s.id != saved.id]
        if saved.term_id == self.profile.term_id:
            existing = self._subject(saved.id)
            if existing is None:
                others.append(saved)
            else:
                others.insert(self.state.subjects.index(existing), saved)
        else:
            self.state.summaries = [s for s in self.state.summaries if s.subject_id != saved.id]
        self.state.subjects = others

    def save_subject(self, name: str, subject_id: Optional[int] = None,
                     term_id: Optional[int] = None, color: Optional[str] = None) -> Subject:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Subject name is required.")
        if color is not None and color not in SUBJECT_COLORS:
            raise ValidationError(f"Unknown subject colour: {color}")
        if subject_id is not None:
            current = self.get_subject(subject_id)
            term_id = term_id or current.term_id
            color = color or current.color
        term_id = term_id or self.profile.term_id
        if term_id is None:
            raise ValidationError("Choose a term for the subject.")
        color = color or pick_subject_color(self.state.subjects)

        saved = self.store.upsert_subject(Subject(id=subject_id, name=name, color=color, term_id=term_id))
        self._replace_subject(saved)
        self.heal()
        return saved

    def delete_subject(self, subject_id: int) -> None:
        self.store.delete_subject(subject_id)
        self.state.subjects = [s for s in self.state.subjects if s.id != subject_id]
        self.state.summaries = [s for s in self.state.summaries if s.subject_id != subject_id]
        self.heal()

    def _replace_summary(self, saved: Summary) -> None:
        if self._subject(saved.subject_id) is None:
            self.state.summaries = [s for s in self.state.summaries if s.id != saved.id]
            return
        existing = self._summary(saved.id)
        if existing is None:
            self.state.summaries.append(saved)
        else:
            self.state.summaries[self.state.summaries.index(existing)] = saved

    def save_summary(self, subject_id: Optional[int], title: str, content: str = "",
                     audio: str = "", video: str = "",
                     questions: Optional[list[Question]] = None,
                     summary_id: Optional[int] = None) -> Summary:
        title = (title or "").strip()
        if not title:
            raise ValidationError("Summary title is required.")
        if subject_id is None:
            raise ValidationError("Choose a subject for the summary.")
        self.get_subject(subject_id)
        if questions is None:
            questions = self.get_summary(summary_id).questions if summary_id is not None else []

        saved = self.store.upsert_summary(Summary(
            id=summary_id, subject_id=subject_id, title=title, content=content or "",
            audio=(audio or "").strip(), video=(video or "").strip(), questions=list(questions),
        ))
        self._replace_summary(saved)
        self.heal()
        return saved

    def delete_summary(self, summary_id: int) -> None:
        self.store.delete_summary(summary_id)
        self.state.summaries = [s for s in self.state.summaries if s.id != summary_id]
        self.heal()

    # ── AI results (late arrivals are discarded) ────────────────────

    def _still_present(self, summary_id: int) -> Optional[Summary]:
        self.refresh()
        summary = self._summary(summary_id)
        if summary is None or self._subject(summary.subject_id) is None:
            logger.debug("Discarding AI result for summary %s: it no longer exists", summary_id)
            return None
        return summary

    def apply_summary_content(self, summary_id: int, content: str) -> Optional[Summary]:
        target = self._still_present(summary_id)
        if target is None:
            return None
        saved = self.store.upsert_summary(Summary(
            id=target.id, subject_id=target.subject_id, title=target.title, content=content,
            audio=target.audio, video=target.video, questions=list(target.questions),
        ))
        self._replace_summary(saved)
        return saved

    def apply_quiz(self, summary_id: int, questions: list[Question]) -> Optional[Summary]:
        target = self._still_present(summary_id)
        if target is None:
            return None
        saved = self.store.upsert_summary(Summary(
            id=target.id, subject_id=target.subject_id, title=target.title, content=target.content,
            audio=target.audio, video=target.video, questions=list(questions),
        ))
        self._replace_summary(saved)
        return saved

    def save_generated_summary(self, subject_id: int, content: str) -> Summary:
        return self.save_summary(subject_id, AI_SUMMARY_TITLE, content=content)
