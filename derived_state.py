"""
Derived state — search, per-subject progress, streaks, completion and the
last-viewed list.

Everything here is a pure function of its arguments. Nothing touches the
store; the coordinator decides what to persist.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Optional

from models import LastViewedEntry, Subject, Summary, UserProfile

LAST_VIEWED_LIMIT = 3

SUBJECT_COLORS = [
    "#007BFF", "#28A745", "#DC3545", "#FFC107", "#17A2B8",
    "#6610f2", "#fd7e14", "#20c997", "#e83e8c",
]


# ── Search ───────────────────────────────────────────────────────────


@dataclass
class SearchResults:
    query: str = ""
    subjects: list[dict] = field(default_factory=list)  # subject dict + summary_count
    summaries: list[dict] = field(default_factory=list)  # summary dict + subject_name
    all_summaries: list[Summary] = field(default_factory=list)

    @property
    def is_searching(self) -> bool:
        return bool(self.query.strip())

    def to_dict(self) -> dict:
        return {"subjects": self.subjects, "summaries": self.summaries}


def search(query: str, subjects: list[Subject], summaries: list[Summary]) -> SearchResults:
    """Case-insensitive substring search over subject names and summary titles.

    The two collections are matched independently and keep their natural
    order. An empty query filters nothing and only exposes all_summaries.
    """
    needle = (query or "").strip().lower()
    if not needle:
        return SearchResults(all_summaries=list(summaries))

    names = {s.id: s.name for s in subjects}
    counts: dict[int, int] = {}
    for summ in summaries:
        counts[summ.subject_id] = counts.get(summ.subject_id, 0) + 1

    matched_subjects = [
        {**s.to_dict(), "summary_count": counts.get(s.id, 0)}
        for s in subjects
        if needle in s.name.lower()
    ]
    matched_summaries = [
        {**summ.to_dict(include_content=False), "subject_name": names.get(summ.subject_id, "")}
        for summ in summaries
        if needle in summ.title.lower()
    ]
    return SearchResults(
        query=query,
        subjects=matched_subjects,
        summaries=matched_summaries,
        all_summaries=list(summaries),
    )


# ── Progress ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Progress:
    completed: int
    total: int

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return 100.0 * self.completed / self.total

    def to_dict(self) -> dict:
        return {"completed": self.completed, "total": self.total, "percent": round(self.percent, 1)}

    def __str__(self) -> str:
        return f"{self.completed} of {self.total} ({self.percent:.0f}%)"


def subject_progress(subject_id: int, summaries: Iterable[Summary],
                     completed: Iterable[int]) -> Progress:
    done = set(completed)
    own = [s for s in summaries if s.subject_id == subject_id]
    return Progress(completed=sum(1 for s in own if s.id in done), total=len(own))


# ── Streak & completion ──────────────────────────────────────────────


def next_streak(streak: int, last_completion_date: Optional[date],
                today: date) -> tuple[int, Optional[date]]:
    """Streak after a completion made on ``today``.

    Same day: unchanged (date untouched). Day after: +1. Anything else,
    including a first completion: reset to 1.
    """
    if last_completion_date == today:
        return streak, last_completion_date
    if last_completion_date == today - timedelta(days=1):
        return streak + 1, today
    return 1, today


def toggle_completion(profile: UserProfile, summary_id: int,
                      today: Optional[date] = None) -> UserProfile:
    """Return a new profile with ``summary_id`` flipped in the completed set.

    Only the add transition touches streak and last completion date.
    """
    if profile.is_completed(summary_id):
        return profile.copy(
            completed_summaries=[sid for sid in profile.completed_summaries if sid != summary_id],
        )

    streak, last = next_streak(profile.streak, profile.last_completion_date, today or date.today())
    return profile.copy(
        completed_summaries=profile.completed_summaries + [summary_id],
        streak=streak,
        last_completion_date=last,
    )


# ── Last viewed ──────────────────────────────────────────────────────


def push_last_viewed(entries: list[LastViewedEntry], summary: Summary,
                     subject_name: str) -> list[LastViewedEntry]:
    fresh = LastViewedEntry(
        summary_id=summary.id,
        title=summary.title,
        subject_id=summary.subject_id,
        subject_name=subject_name,
    )
    others = [e for e in entries if e.summary_id != summary.id]
    return ([fresh] + others)[:LAST_VIEWED_LIMIT]


def visible_last_viewed(entries: list[LastViewedEntry],
                        subjects: list[Subject]) -> list[LastViewedEntry]:
    """Entries whose subject still exists, with the current subject name.

    The persisted list is left alone so an entry reappears if its subject
    comes back.
    """
    names = {s.id: s.name for s in subjects}
    return [
        LastViewedEntry(e.summary_id, e.title, e.subject_id, names[e.subject_id])
        for e in entries
        if e.subject_id in names
    ]


# ── Subject colours ──────────────────────────────────────────────────


def pick_subject_color(existing: Iterable[Subject]) -> str:
    used = {s.color for s in existing}
    for color in SUBJECT_COLORS:
        if color not in used:
            return color
    return random.choice(SUBJECT_COLORS)
