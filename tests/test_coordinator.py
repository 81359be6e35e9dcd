"""Tests for coordinator.py — session lifecycle, optimistic writes, CRUD, late AI results."""

from __future__ import annotations

from datetime import date, timedelta
from itertools import count

import pytest

from coordinator import AI_SUMMARY_TITLE, RequestStatus, SessionCoordinator
from errors import NotFoundError, StoreError, ValidationError
from models import Question, Subject, Summary, Term, UserProfile
from navigation import Dashboard, InvalidTransition, LoggedOut, SubjectView, SummaryView


class MemoryPreferences:
    def __init__(self):
        self.data = {}

    def get(self, key, default=None):
        return self.data.get(key, default)

    def set(self, key, value):
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)


class MemoryStore:
    """In-memory DataStore; ``fail`` names operations that raise StoreError."""

    def __init__(self):
        self.profiles: dict[int, UserProfile] = {}
        self.subjects: dict[int, Subject] = {}
        self.summaries: dict[int, Summary] = {}
        self.ids = count(1000)
        self.fail: set[str] = set()
        self.calls: list[str] = []

    def _op(self, name):
        self.calls.append(name)
        if name in self.fail:
            raise StoreError(f"{name} failed")

    def get_profile(self, user_id):
        self._op("get_profile")
        profile = self.profiles.get(user_id)
        return profile.copy() if profile else None

    def create_profile(self, user_id, defaults=None):
        self._op("create_profile")
        self.profiles[user_id] = UserProfile(id=user_id, **(defaults or {}))
        return self.profiles[user_id].copy()

    def update_profile(self, user_id, fields):
        self._op("update_profile")
        self.profiles[user_id] = self.profiles[user_id].copy(**fields)
        return self.profiles[user_id].copy()

    def list_terms(self):
        return [Term(id=n, name=f"Term {n}") for n in range(1, 13)]

    def list_subjects(self, term_id):
        return [s for s in self.subjects.values() if s.term_id == term_id]

    def list_summaries(self, subject_ids):
        return [s for s in self.summaries.values() if s.subject_id in subject_ids]

    def load_term(self, term_id):
        self._op("load_term")
        subjects = self.list_subjects(term_id)
        return subjects, self.list_summaries([s.id for s in subjects])

    def upsert_subject(self, subject):
        self._op("upsert_subject")
        saved = Subject(name=subject.name, color=subject.color, term_id=subject.term_id,
                        id=subject.id if subject.id is not None else next(self.ids))
        self.subjects[saved.id] = saved
        return saved

    def delete_subject(self, subject_id):
        self._op("delete_subject")
        self.subjects.pop(subject_id, None)
        for sid in [s.id for s in self.summaries.values() if s.subject_id == subject_id]:
            del self.summaries[sid]

    def upsert_summary(self, summary):
        self._op("upsert_summary")
        saved = Summary(
            subject_id=summary.subject_id, title=summary.title, content=summary.content,
            audio=summary.audio, video=summary.video, questions=list(summary.questions),
            id=summary.id if summary.id is not None else next(self.ids),
        )
        self.summaries[saved.id] = saved
        return saved

    def delete_summary(self, summary_id):
        self._op("delete_summary")
        self.summaries.pop(summary_id, None)


def _quiz():
    return [Question(f"Q{i}", ["a", "b", "c", "d"], i % 4) for i in range(5)]


@pytest.fixture
def store():
    s = MemoryStore()
    s.profiles[1] = UserProfile(id=1, role="admin", term_id=3)
    s.subjects[10] = Subject(id=10, name="Cardiology", color="#007BFF", term_id=3)
    s.subjects[11] = Subject(id=11, name="Pharmacology", color="#28A745", term_id=3)
    s.subjects[12] = Subject(id=12, name="Anatomy", color="#DC3545", term_id=1)
    s.summaries[100] = Summary(id=100, subject_id=10, title="Heart Sounds", content="<p>S1</p>")
    s.summaries[101] = Summary(id=101, subject_id=10, title="Heart Failure")
    s.summaries[102] = Summary(id=102, subject_id=11, title="Beta Blockers")
    return s


@pytest.fixture
def prefs():
    return MemoryPreferences()


@pytest.fixture
def coord(store, prefs):
    c = SessionCoordinator(store, prefs)
    c.on_session_change(1)
    return c


# ── Session lifecycle ───────────────────────────────────────


class TestSession:
    def test_sign_in_loads_term(self, coord):
        assert coord.nav.state == Dashboard()
        assert [s.id for s in coord.state.subjects] == [10, 11]
        assert {s.id for s in coord.state.summaries} == {100, 101, 102}

    def test_first_access_creates_profile(self, store, prefs):
        c = SessionCoordinator(store, prefs)
        c.on_session_change(5)
        assert "create_profile" in store.calls
        assert c.profile.role == "student"
        assert c.profile.term_id is None
        assert c.profile.streak == 0
        assert c.state.subjects == []

    def test_sign_out_clears_state(self, coord):
        coord.on_session_change(None)
        assert coord.nav.state == LoggedOut()
        assert coord.state.profile is None
        assert coord.state.subjects == [] and coord.state.summaries == []

    def test_restore_heals_stale_navigation(self, store, prefs, coord):
        coord.select_subject(10)
        store.subjects.pop(10)
        restored = SessionCoordinator(store, prefs, coord.nav)
        restored.restore(1)
        assert restored.nav.state == Dashboard()

    def test_theme_persisted_per_user(self, coord, prefs, store):
        assert coord.state.theme == "dark"
        assert coord.toggle_theme() == "light"
        again = SessionCoordinator(store, prefs)
        again.on_session_change(1)
        assert again.state.theme == "light"


# ── Navigation & last viewed ────────────────────────────────


class TestNavigation:
    def test_select_summary_pushes_last_viewed(self, coord, prefs):
        for sid in (100, 101, 102, 100):
            coord.back_to_dashboard()
            coord.select_summary(sid)
        assert [e.summary_id for e in coord.state.last_viewed] == [100, 102, 101]
        assert [e["summary_id"] for e in prefs.data["last_viewed:1"]] == [100, 102, 101]

    def test_unknown_subject(self, coord):
        with pytest.raises(NotFoundError):
            coord.select_subject(12)  # other term

    def test_back_goes_up_one_level(self, coord):
        coord.select_subject(10)
        coord.select_summary(100)
        coord.back()
        assert coord.nav.state == SubjectView(10)
        coord.back()
        assert coord.nav.state == Dashboard()

    def test_invalid_transition_propagates(self, coord):
        coord.select_subject(10)
        with pytest.raises(InvalidTransition):
            coord.select_subject(11)

    def test_breadcrumbs(self, coord):
        coord.select_subject(10)
        coord.select_summary(100)
        labels = [c["label"] for c in coord.breadcrumbs()]
        assert labels == ["Dashboard", "Cardiology", "Heart Sounds"]

    def test_dashboard_hides_last_viewed_of_deleted_subject(self, coord):
        coord.select_summary(102)
        coord.back_to_dashboard()
        coord.delete_subject(11)
        assert coord.dashboard()["last_viewed"] == []
        assert len(coord.state.last_viewed) == 1


# ── Optimistic profile writes ───────────────────────────────


class TestOptimisticWrites:
    def test_toggle_complete_confirmed(self, coord, store):
        result = coord.toggle_complete(100, today=date(2026, 3, 10))
        assert result.status is RequestStatus.CONFIRMED
        assert result.prior.completed_summaries == []
        assert coord.profile.completed_summaries == [100]
        assert store.profiles[1].streak == 1

    def test_toggle_complete_rolls_back_exactly(self, coord, store):
        coord.toggle_complete(100, today=date(2026, 3, 9))
        before = coord.profile
        store.fail.add("update_profile")
        result = coord.toggle_complete(101, today=date(2026, 3, 10))
        assert result.status is RequestStatus.FAILED
        assert result.error == "update_profile failed"
        assert coord.profile == before
        assert coord.profile.streak == 1

    def test_set_term_reloads_and_heals(self, coord):
        coord.select_subject(10)
        result = coord.set_term(1)
        assert result.ok
        assert [s.id for s in coord.state.subjects] == [12]
        assert coord.nav.state == Dashboard()

    def test_set_term_rollback(self, coord, store):
        store.fail.add("update_profile")
        result = coord.set_term(1)
        assert not result.ok
        assert coord.profile.term_id == 3
        assert [s.id for s in coord.state.subjects] == [10, 11]

    def test_set_unknown_term(self, coord):
        with pytest.raises(ValidationError):
            coord.set_term(99)

    def test_complete_unknown_summary(self, coord):
        with pytest.raises(NotFoundError):
            coord.toggle_complete(999)


# ── Admin CRUD ──────────────────────────────────────────────


class TestCrud:
    def test_create_subject_picks_color(self, coord):
        subject = coord.save_subject("Neurology")
        assert subject.term_id == 3
        assert subject.color == "#DC3545"
        assert coord.state.subjects[-1].name == "Neurology"

    def test_empty_name_rejected_before_request(self, coord, store):
        store.calls.clear()
        with pytest.raises(ValidationError):
            coord.save_subject("   ")
        assert store.calls == []

    def test_unknown_color_rejected_before_request(self, coord, store):
        store.calls.clear()
        with pytest.raises(ValidationError, match="colour"):
            coord.save_subject("Neurology", color="banana")
        assert store.calls == []

    def test_subject_for_other_term_not_listed(self, coord):
        coord.save_subject("Histology", term_id=1)
        assert "Histology" not in [s.name for s in coord.state.subjects]

    def test_failed_create_leaves_state(self, coord, store):
        store.fail.add("upsert_subject")
        with pytest.raises(StoreError):
            coord.save_subject("Neurology")
        assert [s.id for s in coord.state.subjects] == [10, 11]

    def test_delete_selected_subject_heals(self, coord):
        coord.select_subject(10)
        coord.delete_subject(10)
        assert coord.nav.state == Dashboard()
        assert all(s.subject_id != 10 for s in coord.state.summaries)

    def test_delete_open_summary_returns_to_subject(self, coord):
        coord.select_subject(10)
        coord.select_summary(100)
        coord.delete_summary(100)
        assert coord.nav.state == SubjectView(10)

    def test_save_summary_requires_title(self, coord):
        with pytest.raises(ValidationError):
            coord.save_summary(10, "")

    def test_edit_summary_keeps_questions(self, coord, store):
        store.summaries[100].questions = _quiz()
        coord.refresh()
        saved = coord.save_summary(10, "Heart Sounds II", content="<p>x</p>", summary_id=100)
        assert saved.title == "Heart Sounds II"
        assert len(saved.questions) == 5


# ── AI results ──────────────────────────────────────────────


class TestAiResults:
    def test_apply_content(self, coord, store):
        saved = coord.apply_summary_content(100, "<h2>New</h2>")
        assert saved.content == "<h2>New</h2>"
        assert store.summaries[100].content == "<h2>New</h2>"

    def test_late_content_for_deleted_summary_discarded(self, coord, store):
        store.summaries.pop(100)  # deleted elsewhere while the AI was working
        store.calls.clear()
        assert coord.apply_summary_content(100, "<p>late</p>") is None
        assert "upsert_summary" not in store.calls

    def test_apply_quiz(self, coord):
        saved = coord.apply_quiz(101, _quiz())
        assert len(saved.questions) == 5

    def test_late_quiz_after_subject_deleted(self, coord, store):
        store.delete_subject(10)
        assert coord.apply_quiz(101, _quiz()) is None

    def test_save_generated_summary_title(self, coord):
        saved = coord.save_generated_summary(11, "<p>Generated</p>")
        assert saved.title == AI_SUMMARY_TITLE
        assert saved.subject_id == 11


# ── End to end ──────────────────────────────────────────────


def test_cardiology_walkthrough(store, prefs):
    store.subjects.clear()
    store.summaries.clear()
    c = SessionCoordinator(store, prefs)
    c.on_session_change(1)

    subject = c.save_subject("Cardiology")
    summary = c.save_summary(subject.id, "Heart Sounds", content="<p>S1 and S2</p>")
    c.select_subject(subject.id)
    c.select_summary(summary.id)
    today = date.today()
    result = c.toggle_complete(summary.id, today=today)

    assert result.ok
    assert str(c.progress(subject.id)) == "1 of 1 (100%)"
    assert c.profile.streak == 1
    assert c.profile.last_completion_date == today
    assert c.nav.state == SummaryView(summary.id)

    # completing again the next day after un-completing increments
    c.toggle_complete(summary.id, today=today)
    c.toggle_complete(summary.id, today=today + timedelta(days=1))
    assert c.profile.streak == 2
