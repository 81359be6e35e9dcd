"""
Records for profiles, terms, subjects, summaries and quiz questions.

Plain dataclasses; the store classes in db_stores.py build them from rows and
the blueprints serialise them with to_dict().
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Optional

ROLES = ("student", "admin")


@dataclass
class Question:
    text: str
    alternatives: list[str]
    correct_index: int
    explanation: str = ""

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "alternatives": list(self.alternatives),
            "correct_index": self.correct_index,
            "explanation": self.explanation,
        }

    @staticmethod
    def from_dict(data: dict) -> Question:
        return Question(
            text=data["text"],
            alternatives=list(data["alternatives"]),
            correct_index=int(data["correct_index"]),
            explanation=data.get("explanation", "") or "",
        )


@dataclass(frozen=True)
class Term:
    id: int
    name: str


@dataclass
class UserProfile:
    id: int
    role: str = "student"
    term_id: Optional[int] = None
    completed_summaries: list[int] = field(default_factory=list)
    streak: int = 0
    last_completion_date: Optional[date] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def copy(self, **changes: Any) -> UserProfile:
        """Return an independent copy (the completed list is not shared)."""
        changes.setdefault("completed_summaries", list(self.completed_summaries))
        return replace(self, **changes)

    def is_completed(self, summary_id: int) -> bool:
        return summary_id in self.completed_summaries

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role,
            "term_id": self.term_id,
            "completed_summaries": list(self.completed_summaries),
            "streak": self.streak,
            "last_completion_date": (
                self.last_completion_date.isoformat() if self.last_completion_date else None
            ),
        }


@dataclass
class Subject:
    name: str
    color: str = ""
    term_id: Optional[int] = None
    id: Optional[int] = None

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "color": self.color, "term_id": self.term_id}


@dataclass
class Summary:
    subject_id: int
    title: str
    content: str = ""
    audio: str = ""
    video: str = ""
    questions: list[Question] = field(default_factory=list)
    id: Optional[int] = None

    def to_dict(self, include_content: bool = True) -> dict:
        data = {
            "id": self.id,
            "subject_id": self.subject_id,
            "title": self.title,
            "audio": self.audio,
            "video": self.video,
            "question_count": len(self.questions),
        }
        if include_content:
            data["content"] = self.content
            data["questions"] = [q.to_dict() for q in self.questions]
        return data

    def questions_json(self) -> str:
        return json.dumps([q.to_dict() for q in self.questions])


@dataclass
class LastViewedEntry:
    """Denormalised snapshot of a recently opened summary."""

    summary_id: int
    title: str
    subject_id: int
    subject_name: str

    def to_dict(self) -> dict:
        return {
            "summary_id": self.summary_id,
            "title": self.title,
            "subject_id": self.subject_id,
            "subject_name": self.subject_name,
        }

    @staticmethod
    def from_dict(data: dict) -> LastViewedEntry:
        return LastViewedEntry(
            summary_id=data["summary_id"],
            title=data.get("title", ""),
            subject_id=data["subject_id"],
            subject_name=data.get("subject_name", ""),
        )
