from datetime import datetime, timezone

from swiftpass.services.resolver import EnrollmentResolver

UTC = timezone.utc


def _session(session_id, day="Monday", start="09:00", end="11:00", name=None):
    return {
        "id": session_id,
        "name": name or f"Lab {session_id}",
        "course_id": None,
        "day_of_week": day,
        "start_time": start,
        "end_time": end,
        "section": None,
        "location": None,
    }


def _resolver(sessions, tie_break="lowest_id"):
    return EnrollmentResolver(fetch_sessions=lambda subject_id, **_: list(sessions), tie_break=tie_break)


def _monday(hour, minute):
    return datetime(2026, 10, 19, hour, minute, tzinfo=UTC)


def test_no_enrollments():
    result = _resolver([]).resolve("s1", _monday(10, 0))
    assert not result.ok
    assert result.failure == "NOT_ENROLLED_ANYWHERE"


def test_enrolled_but_not_today():
    result = _resolver([_session(1, day="Tuesday")]).resolve("s1", _monday(10, 0))
    assert result.failure == "NO_SESSION_TODAY"


def test_window_bounds_are_inclusive():
    resolver = _resolver([_session(1)])
    assert resolver.resolve("s1", _monday(9, 0)).ok
    assert resolver.resolve("s1", _monday(11, 0)).ok
    assert resolver.resolve("s1", _monday(8, 59)).failure == "NO_ACTIVE_SESSION_NOW"
    assert resolver.resolve("s1", _monday(11, 1)).failure == "NO_ACTIVE_SESSION_NOW"


def test_overlap_picks_lowest_id_by_default():
    sessions = [_session(7, start="08:00", end="12:00"), _session(3, start="09:30", end="10:30")]
    result = _resolver(sessions).resolve("s1", _monday(10, 0))
    assert result.session["id"] == 3


def test_overlap_can_pick_earliest_start():
    sessions = [_session(3, start="09:30", end="10:30"), _session(7, start="08:00", end="12:00")]
    result = _resolver(sessions, tie_break="earliest_start").resolve("s1", _monday(10, 0))
    assert result.session["id"] == 7


def test_session_hint_wins_when_live():
    sessions = [_session(3, start="09:30", end="10:30"), _session(7, start="08:00", end="12:00")]
    result = _resolver(sessions).resolve("s1", _monday(10, 0), session_hint=7)
    assert result.session["id"] == 7
    assert result.used_hint


def test_session_hint_is_ignored_when_not_enrolled():
    result = _resolver([_session(3)]).resolve("s1", _monday(10, 0), session_hint=99)
    assert result.session["id"] == 3
    assert not result.used_hint


def test_session_hint_is_ignored_outside_window():
    sessions = [_session(3), _session(4, start="13:00", end="15:00")]
    result = _resolver(sessions).resolve("s1", _monday(10, 0), session_hint=4)
    assert result.session["id"] == 3


def test_malformed_session_window_is_skipped():
    sessions = [_session(1, start="9am", end="11am"), _session(2)]
    result = _resolver(sessions).resolve("s1", _monday(10, 0))
    assert result.session["id"] == 2


def test_only_malformed_sessions_today_means_none_active():
    result = _resolver([_session(1, start="bad", end="worse")]).resolve("s1", _monday(10, 0))
    assert result.failure == "NO_ACTIVE_SESSION_NOW"


def test_connection_is_forwarded_to_fetch():
    seen = {}

    def fetch(subject_id, *, conn=None):
        seen["conn"] = conn
        return [_session(1)]

    marker = object()
    EnrollmentResolver(fetch_sessions=fetch).resolve("s1", _monday(10, 0), conn=marker)
    assert seen["conn"] is marker
