import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Literal

from database.db import get_enrolled_sessions
from swiftpass.config import OVERLAP_TIE_BREAK, TIE_BREAK_POLICIES
from swiftpass.errors import MalformedTime
from swiftpass.timewindow import day_of_week, in_window, minutes_of_day, parse_hhmm, parse_weekday

logger = logging.getLogger(__name__)

ResolutionFailure = Literal[
    "NOT_ENROLLED_ANYWHERE",
    "NO_SESSION_TODAY",
    "NO_ACTIVE_SESSION_NOW",
]


@dataclass(frozen=True)
class Resolution:
    session: dict[str, Any] | None = None
    failure: ResolutionFailure | None = None
    used_hint: bool = False

    @property
    def ok(self) -> bool:
        return self.session is not None


def _session_window(session: dict[str, Any]) -> tuple[int, int] | None:
    try:
        return parse_hhmm(session["start_time"]), parse_hhmm(session["end_time"])
    except (MalformedTime, KeyError):
        logger.warning("Skipping session %s with malformed window", session.get("id"))
        return None


def _is_today(session: dict[str, Any], now: datetime) -> bool:
    try:
        return parse_weekday(str(session.get("day_of_week") or "")) == day_of_week(now)
    except ValueError:
        logger.warning("Skipping session %s with unknown day %r", session.get("id"), session.get("day_of_week"))
        return False


def _is_active(session: dict[str, Any], now: datetime) -> bool:
    window = _session_window(session)
    if window is None:
        return False
    return in_window(minutes_of_day(now), window[0], window[1])


class EnrollmentResolver:
    """
    Finds the one lab session a subject may attend right now.

    A session hint (e.g. the lab the scanner is posted at) is only a shortcut:
    it is honoured when the subject is enrolled in it and it is live now,
    otherwise the full resolution runs.
    """

    def __init__(
        self,
        fetch_sessions: Callable[..., list[dict[str, Any]]] = get_enrolled_sessions,
        tie_break: str = OVERLAP_TIE_BREAK,
    ):
        if tie_break not in TIE_BREAK_POLICIES:
            raise ValueError(f"Unknown tie-break policy: {tie_break!r}")
        self.fetch_sessions = fetch_sessions
        self.tie_break = tie_break

    def resolve(
        self,
        subject_id: str,
        now: datetime,
        session_hint: int | None = None,
        *,
        conn=None,
    ) -> Resolution:
        if conn is not None:
            sessions = self.fetch_sessions(subject_id, conn=conn)
        else:
            sessions = self.fetch_sessions(subject_id)

        if session_hint is not None:
            hinted = next((s for s in sessions if int(s["id"]) == int(session_hint)), None)
            if hinted and _is_today(hinted, now) and _is_active(hinted, now):
                return Resolution(session=hinted, used_hint=True)
            logger.info("Ignoring session hint %s for subject %s", session_hint, subject_id)

        if not sessions:
            return Resolution(failure="NOT_ENROLLED_ANYWHERE")

        today = [s for s in sessions if _is_today(s, now)]
        if not today:
            return Resolution(failure="NO_SESSION_TODAY")

        active = [s for s in today if _is_active(s, now)]
        if not active:
            return Resolution(failure="NO_ACTIVE_SESSION_NOW")

        if len(active) > 1:
            logger.info(
                "Subject %s has %d overlapping sessions; tie-break=%s",
                subject_id,
                len(active),
                self.tie_break,
            )
        return Resolution(session=self._pick(active))

    def _pick(self, candidates: list[dict[str, Any]]) -> dict[str, Any]:
        if self.tie_break == "earliest_start":
            return min(candidates, key=lambda s: (parse_hhmm(s["start_time"]), int(s["id"])))
        return min(candidates, key=lambda s: int(s["id"]))
