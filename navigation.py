"""
Navigation state machine — which screen is active and what is selected.

States form a closed set of frozen dataclasses, each carrying only the id it
needs. All transitions are synchronous. The machine round-trips through the
Flask session via to_dict()/from_dict().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from errors import NavigationInconsistency

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoggedOut:
    name = "logged_out"


@dataclass(frozen=True)
class Loading:
    name = "loading"


@dataclass(frozen=True)
class Dashboard:
    name = "dashboard"


@dataclass(frozen=True)
class SubjectView:
    subject_id: int
    name = "subject"


@dataclass(frozen=True)
class SummaryView:
    summary_id: int
    name = "summary"


NavState = Union[LoggedOut, Loading, Dashboard, SubjectView, SummaryView]


class InvalidTransition(Exception):
    """A transition was requested from a state that does not allow it."""

    status_code = 409

    def __init__(self, transition: str, state: NavState) -> None:
        super().__init__(f"Cannot {transition} from {state.name}")
        self.transition = transition
        self.state = state

    def to_dict(self) -> dict:
        return {"error": str(self)}


class NavigationMachine:
    """Screen state for one session."""

    def __init__(self, state: Optional[NavState] = None,
                 last_subject_id: Optional[int] = None) -> None:
        self.state: NavState = state if state is not None else Loading()
        self.last_subject_id = last_subject_id

    # --- Selections ---

    @property
    def subject_id(self) -> Optional[int]:
        if isinstance(self.state, SubjectView):
            return self.state.subject_id
        if isinstance(self.state, SummaryView):
            return self.last_subject_id
        return None

    @property
    def summary_id(self) -> Optional[int]:
        if isinstance(self.state, SummaryView):
            return self.state.summary_id
        return None

    # --- Session ---

    def begin_session(self) -> NavState:
        self.state = Loading()
        self.last_subject_id = None
        return self.state

    def session_resolved(self, authenticated: bool) -> NavState:
        if not isinstance(self.state, Loading):
            raise InvalidTransition("resolve session", self.state)
        self.state = Dashboard() if authenticated else LoggedOut()
        return self.state

    def logout(self) -> NavState:
        self.state = LoggedOut()
        self.last_subject_id = None
        return self.state

    # --- Screens ---

    def select_subject(self, subject) -> NavState:
        if not isinstance(self.state, Dashboard):
            raise InvalidTransition("select a subject", self.state)
        self.state = SubjectView(subject.id)
        self.last_subject_id = subject.id
        return self.state

    def select_summary(self, summary) -> NavState:
        if not isinstance(self.state, (Dashboard, SubjectView)):
            raise InvalidTransition("select a summary", self.state)
        self.state = SummaryView(summary.id)
        self.last_subject_id = summary.subject_id
        return self.state

    def back_to_dashboard(self) -> NavState:
        self.state = Dashboard()
        self.last_subject_id = None
        return self.state

    def back_to_subject(self) -> NavState:
        if not isinstance(self.state, SummaryView) or self.last_subject_id is None:
            raise InvalidTransition("go back to the subject", self.state)
        self.state = SubjectView(self.last_subject_id)
        return self.state

    # --- Guard ---

    def check(self, subject_ids: Iterable[int], summary_ids: Iterable[int]) -> None:
        """Raise NavigationInconsistency if a selection no longer resolves."""
        subjects = set(subject_ids)
        if isinstance(self.state, SummaryView) and self.state.summary_id not in set(summary_ids):
            raise NavigationInconsistency("summary", self.state.summary_id)
        if self.subject_id is not None and self.subject_id not in subjects:
            raise NavigationInconsistency("subject", self.subject_id)

    def heal(self, subject_ids: Iterable[int], summary_ids: Iterable[int]) -> list[NavState]:
        """Move up one level at a time until every selection resolves.

        SummaryView -> SubjectView -> Dashboard. At most two steps, and
        Dashboard always resolves, so this cannot loop. Returns the states
        passed through (empty when nothing was dangling).
        """
        subjects = set(subject_ids)
        summaries = set(summary_ids)
        steps: list[NavState] = []
        for _ in range(2):
            try:
                self.check(subjects, summaries)
                break
            except NavigationInconsistency as exc:
                logger.debug("Navigation heal: %s", exc)
                if exc.kind == "summary" and self.last_subject_id is not None:
                    self.state = SubjectView(self.last_subject_id)
                else:
                    self.back_to_dashboard()
                steps.append(self.state)
        return steps

    # --- Serialisation ---

    def to_dict(self) -> dict:
        data: dict = {"state": self.state.name, "last_subject_id": self.last_subject_id}
        if isinstance(self.state, SubjectView):
            data["subject_id"] = self.state.subject_id
        elif isinstance(self.state, SummaryView):
            data["summary_id"] = self.state.summary_id
        return data

    @staticmethod
    def from_dict(data: Optional[dict]) -> NavigationMachine:
        if not data:
            return NavigationMachine()
        name = data.get("state")
        last = data.get("last_subject_id")
        if name == "subject" and data.get("subject_id") is not None:
            state: NavState = SubjectView(int(data["subject_id"]))
        elif name == "summary" and data.get("summary_id") is not None:
            state = SummaryView(int(data["summary_id"]))
        elif name == "dashboard":
            state = Dashboard()
        elif name == "logged_out":
            state = LoggedOut()
        else:
            state = Loading()
        return NavigationMachine(state, last_subject_id=last)
