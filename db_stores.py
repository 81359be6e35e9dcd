"""
DB-backed data store for Medflix.

DataStore is the adapter contract the coordinator talks to; DataStoreDB is
the SQLite implementation. Every operation is scoped to the identity the
store was built for, and any failure surfaces as StoreError.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Callable
from datetime import date, datetime
from functools import wraps
from typing import Any, Optional, Protocol

from database import get_db
from errors import StoreError
from models import Question, Subject, Summary, Term, UserProfile

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("role", "term_id", "streak", "last_completion_date", "completed_summaries")


class DataStore(Protocol):
    def get_profile(self, user_id: int) -> Optional[UserProfile]: ...
    def create_profile(self, user_id: int, defaults: Optional[dict] = None) -> UserProfile: ...
    def update_profile(self, user_id: int, fields: dict) -> UserProfile: ...
    def list_terms(self) -> list[Term]: ...
    def list_subjects(self, term_id: int) -> list[Subject]: ...
    def list_summaries(self, subject_ids: list[int]) -> list[Summary]: ...
    def load_term(self, term_id: int) -> tuple[list[Subject], list[Summary]]: ...
    def upsert_subject(self, subject: Subject) -> Subject: ...
    def delete_subject(self, subject_id: int) -> None: ...
    def upsert_summary(self, summary: Summary) -> Summary: ...
    def delete_summary(self, summary_id: int) -> None: ...


def _store_op(f: Callable) -> Callable:
    """Translate driver errors into StoreError with a readable message."""
    @wraps(f)
    def decorated(self, *args: Any, **kwargs: Any) -> Any:
        try:
            return f(self, *args, **kwargs)
        except sqlite3.Error as e:
            logger.warning("Store operation %s failed: %s", f.__name__, e)
            get_db().rollback()
            raise StoreError(f"Database error: {e}") from e
    return decorated


class DataStoreDB:
    """SQLite-backed DataStore for one authenticated user."""

    def __init__(self, user_id: int):
        self.user_id = user_id

    # --- Helpers ---

    def _require_self(self, user_id: int) -> None:
        if user_id != self.user_id:
            raise StoreError("Permission denied: profiles can only be accessed by their owner.")

    def _require_admin(self) -> None:
        row = get_db().execute("SELECT role FROM profiles WHERE id=?", (self.user_id,)).fetchone()
        if not row or row["role"] != "admin":
            raise StoreError("Permission denied: administrator role required.")

    @staticmethod
    def _row_to_subject(r) -> Subject:
        return Subject(id=r["id"], name=r["name"], color=r["color"], term_id=r["term_id"])

    @staticmethod
    def _row_to_summary(r) -> Summary:
        try:
            questions = [Question.from_dict(q) for q in json.loads(r["questions"] or "[]")]
        except (ValueError, KeyError, TypeError):
            logger.warning("Summary %s has unreadable questions; ignoring them", r["id"])
            questions = []
        return Summary(
            id=r["id"],
            subject_id=r["subject_id"],
            title=r["title"],
            content=r["content"],
            audio=r["audio"],
            video=r["video"],
            questions=questions,
        )

    # --- Profiles ---

    @_store_op
    def get_profile(self, user_id: int) -> Optional[UserProfile]:
        self._require_self(user_id)
        db = get_db()
        row = db.execute("SELECT * FROM profiles WHERE id=?", (user_id,)).fetchone()
        if not row:
            return None
        completed = [
            r["summary_id"] for r in db.execute(
                "SELECT summary_id FROM completed_summaries WHERE user_id=? ORDER BY position, summary_id",
                (user_id,),
            ).fetchall()
        ]
        last = row["last_completion_date"]
        return UserProfile(
            id=row["id"],
            role=row["role"],
            term_id=row["term_id"],
            completed_summaries=completed,
            streak=row["streak"],
            last_completion_date=date.fromisoformat(last) if last else None,
        )

    @_store_op
    def create_profile(self, user_id: int, defaults: Optional[dict] = None) -> UserProfile:
        self._require_self(user_id)
        defaults = defaults or {}
        db = get_db()
        db.execute(
            "INSERT OR IGNORE INTO profiles (id, role, term_id, streak, created_at) VALUES (?, ?, ?, ?, ?)",
            (
                user_id,
                defaults.get("role", "student"),
                defaults.get("term_id"),
                defaults.get("streak", 0),
                datetime.now().isoformat(),
            ),
        )
        db.commit()
        logger.info("Created profile for user %s", user_id)
        return self.get_profile(user_id)

    @_store_op
    def update_profile(self, user_id: int, fields: dict) -> UserProfile:
        self._require_self(user_id)
        unknown = set(fields) - set(PROFILE_FIELDS)
        if unknown:
            raise StoreError(f"Unknown profile fields: {', '.join(sorted(unknown))}")
        if "role" in fields:
            self._require_admin()

        db = get_db()
        if not db.execute("SELECT 1 FROM profiles WHERE id=?", (user_id,)).fetchone():
            raise StoreError("Profile not found.")

        sets, params = [], []
        for key in ("role", "term_id", "streak"):
            if key in fields:
                sets.append(f"{key}=?")
                params.append(fields[key])
        if "last_completion_date" in fields:
            last = fields["last_completion_date"]
            sets.append("last_completion_date=?")
            params.append(last.isoformat() if isinstance(last, date) else last)
        if sets:
            db.execute(f"UPDATE profiles SET {', '.join(sets)} WHERE id=?", (*params, user_id))

        if "completed_summaries" in fields:
            db.execute("DELETE FROM completed_summaries WHERE user_id=?", (user_id,))
            seen: set[int] = set()
            for pos, sid in enumerate(fields["completed_summaries"]):
                if sid in seen:
                    continue
                seen.add(sid)
                db.execute(
                    "INSERT INTO completed_summaries (user_id, summary_id, position) VALUES (?, ?, ?)",
                    (user_id, sid, pos),
                )
        db.commit()
        return self.get_profile(user_id)

    # --- Terms ---

    @_store_op
    def list_terms(self) -> list[Term]:
        rows = get_db().execute("SELECT id, name FROM terms ORDER BY id").fetchall()
        return [Term(id=r["id"], name=r["name"]) for r in rows]

    # --- Subjects ---

    @_store_op
    def list_subjects(self, term_id: int) -> list[Subject]:
        rows = get_db().execute(
            "SELECT * FROM subjects WHERE term_id=? ORDER BY id", (term_id,),
        ).fetchall()
        return [self._row_to_subject(r) for r in rows]

    @_store_op
    def get_subject(self, subject_id: int) -> Optional[Subject]:
        row = get_db().execute("SELECT * FROM subjects WHERE id=?", (subject_id,)).fetchone()
        return self._row_to_subject(row) if row else None

    @_store_op
    def upsert_subject(self, subject: Subject) -> Subject:
        self._require_admin()
        db = get_db()
        if subject.id is None:
            cur = db.execute(
                "INSERT INTO subjects (name, color, term_id, created_by, created_at) VALUES (?, ?, ?, ?, ?)",
                (subject.name, subject.color, subject.term_id, self.user_id, datetime.now().isoformat()),
            )
            subject_id = cur.lastrowid
        else:
            cur = db.execute(
                "UPDATE subjects SET name=?, color=?, term_id=? WHERE id=?",
                (subject.name, subject.color, subject.term_id, subject.id),
            )
            if cur.rowcount == 0:
                raise StoreError("Subject not found.")
            subject_id = subject.id
        db.commit()
        return self.get_subject(subject_id)

    @_store_op
    def delete_subject(self, subject_id: int) -> None:
        self._require_admin()
        db = get_db()
        db.execute("DELETE FROM summaries WHERE subject_id=?", (subject_id,))
        db.execute("DELETE FROM subjects WHERE id=?", (subject_id,))
        db.commit()

    # --- Summaries ---

    @_store_op
    def list_summaries(self, subject_ids: list[int]) -> list[Summary]:
        if not subject_ids:
            return []
        placeholders = ",".join("?" * len(subject_ids))
        rows = get_db().execute(
            f"SELECT * FROM summaries WHERE subject_id IN ({placeholders}) ORDER BY id",
            tuple(subject_ids),
        ).fetchall()
        return [self._row_to_summary(r) for r in rows]

    def load_term(self, term_id: int) -> tuple[list[Subject], list[Summary]]:
        """Subjects of a term joined with their summaries."""
        subjects = self.list_subjects(term_id)
        return subjects, self.list_summaries([s.id for s in subjects])

    @_store_op
    def get_summary(self, summary_id: int) -> Optional[Summary]:
        row = get_db().execute("SELECT * FROM summaries WHERE id=?", (summary_id,)).fetchone()
        return self._row_to_summary(row) if row else None

    @_store_op
    def upsert_summary(self, summary: Summary) -> Summary:
        self._require_admin()
        db = get_db()
        now = datetime.now().isoformat()
        values = (
            summary.subject_id, summary.title, summary.content,
            summary.audio or "", summary.video or "", summary.questions_json(),
        )
        if summary.id is None:
            cur = db.execute(
                "INSERT INTO summaries (subject_id, title, content, audio, video, questions, created_by, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (*values, self.user_id, now),
            )
            summary_id = cur.lastrowid
        else:
            cur = db.execute(
                "UPDATE summaries SET subject_id=?, title=?, content=?, audio=?, video=?, questions=?, "
                "updated_at=? WHERE id=?",
                (*values, now, summary.id),
            )
            if cur.rowcount == 0:
                raise StoreError("Summary not found.")
            summary_id = summary.id
        db.commit()
        return self.get_summary(summary_id)

    @_store_op
    def delete_summary(self, summary_id: int) -> None:
        self._require_admin()
        db = get_db()
        db.execute("DELETE FROM summaries WHERE id=?", (summary_id,))
        db.commit()
