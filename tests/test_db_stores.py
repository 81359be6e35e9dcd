"""Tests for db_stores.py — identity scoping, admin checks, CRUD, error translation."""

from __future__ import annotations

import sqlite3
from datetime import date
from unittest.mock import patch

import pytest

from db_stores import DataStoreDB
from errors import StoreError
from models import Question, Subject, Summary


@pytest.fixture
def student_store(db):
    return DataStoreDB(1)


@pytest.fixture
def admin_store(db):
    return DataStoreDB(2)


class TestProfiles:
    def test_get_own_profile(self, student_store):
        profile = student_store.get_profile(1)
        assert profile.role == "student"
        assert profile.term_id == 3
        assert profile.completed_summaries == []
        assert profile.last_completion_date is None

    def test_other_users_profile_denied(self, student_store):
        with pytest.raises(StoreError, match="Permission denied"):
            student_store.get_profile(2)

    def test_create_profile_defaults(self, db):
        db.execute("INSERT INTO users (id, name, email) VALUES (3, 'New', 'new@example.com')")
        db.commit()
        profile = DataStoreDB(3).create_profile(3)
        assert profile.role == "student"
        assert profile.term_id is None
        assert profile.streak == 0

    def test_update_completion_fields(self, student_store):
        today = date(2026, 3, 10)
        profile = student_store.update_profile(1, {
            "completed_summaries": [5, 3, 5],
            "streak": 2,
            "last_completion_date": today,
        })
        assert profile.completed_summaries == [5, 3]
        assert profile.streak == 2
        assert profile.last_completion_date == today

    def test_student_cannot_change_role(self, student_store):
        with pytest.raises(StoreError, match="administrator"):
            student_store.update_profile(1, {"role": "admin"})
        assert student_store.get_profile(1).role == "student"

    def test_unknown_field_rejected(self, student_store):
        with pytest.raises(StoreError, match="Unknown profile fields"):
            student_store.update_profile(1, {"email": "x"})

    def test_stale_completed_ids_tolerated(self, student_store):
        profile = student_store.update_profile(1, {"completed_summaries": [424242]})
        assert profile.completed_summaries == [424242]


class TestTerms:
    def test_twelve_terms(self, student_store):
        terms = student_store.list_terms()
        assert len(terms) == 12
        assert terms[0].name == "1st Term"
        assert terms[2].name == "3rd Term"
        assert terms[10].name == "11th Term"
        assert terms[11].name == "12th Term"


class TestSubjectsAndSummaries:
    def test_student_cannot_write(self, student_store):
        with pytest.raises(StoreError, match="Permission denied"):
            student_store.upsert_subject(Subject(name="Neurology", term_id=3))

    def test_create_and_list(self, admin_store):
        subject = admin_store.upsert_subject(Subject(name="Neurology", color="#007BFF", term_id=3))
        assert subject.id is not None
        assert [s.name for s in admin_store.list_subjects(3)] == ["Neurology"]
        assert admin_store.list_subjects(1) == []

    def test_update_missing_subject(self, admin_store):
        with pytest.raises(StoreError, match="Subject not found"):
            admin_store.upsert_subject(Subject(id=999, name="Ghost", term_id=3))

    def test_summary_round_trip_with_questions(self, admin_store):
        subject = admin_store.upsert_subject(Subject(name="Cardiology", term_id=3))
        quiz = [Question("Q?", ["a", "b", "c", "d"], 2, "because")]
        saved = admin_store.upsert_summary(Summary(subject_id=subject.id, title="Heart Sounds",
                                                   content="<p>x</p>", questions=quiz))
        loaded = admin_store.get_summary(saved.id)
        assert loaded.questions[0].correct_index == 2
        assert loaded.questions[0].explanation == "because"

    def test_load_term_joins_summaries(self, admin_store, seeded_content):
        subjects, summaries = admin_store.load_term(3)
        assert [s.name for s in subjects] == ["Cardiology", "Pharmacology"]
        assert sorted(s.id for s in summaries) == [100, 101, 102]

    def test_delete_subject_cascades(self, admin_store, seeded_content):
        admin_store.delete_subject(seeded_content["cardiology"])
        assert admin_store.get_summary(seeded_content["heart_sounds"]) is None
        assert admin_store.get_summary(seeded_content["beta_blockers"]) is not None

    def test_summary_needs_existing_subject(self, admin_store):
        with pytest.raises(StoreError, match="Database error"):
            admin_store.upsert_summary(Summary(subject_id=999, title="Orphan"))

    def test_driver_error_translated(self, admin_store):
        with patch("db_stores.get_db") as mock_db:
            mock_db.return_value.execute.side_effect = sqlite3.OperationalError("disk I/O error")
            with pytest.raises(StoreError, match="disk I/O error"):
                admin_store.list_subjects(3)
