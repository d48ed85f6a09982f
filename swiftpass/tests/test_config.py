import pytest

import swiftpass.config as config
import swiftpass.main as main
from swiftpass.services.resolver import EnrollmentResolver


def test_default_settings_are_valid():
    assert config.validate_settings() == []


@pytest.mark.parametrize("raw", ["earliest-start", " Earliest_Start ", "lowest_id", None, ""])
def test_known_tie_break_names_parse(raw):
    assert config._parse_tie_break(raw) in config.TIE_BREAK_POLICIES


def test_unknown_tie_break_is_kept_and_reported(monkeypatch):
    parsed = config._parse_tie_break("earliest")
    assert parsed == "earliest"

    monkeypatch.setattr(config, "OVERLAP_TIE_BREAK", parsed)
    problems = config.validate_settings()
    assert len(problems) == 1
    assert "SWIFTPASS_OVERLAP_TIE_BREAK" in problems[0]


def test_resolver_rejects_unknown_tie_break():
    with pytest.raises(ValueError):
        EnrollmentResolver(fetch_sessions=lambda subject_id, **_: [], tie_break="bogus")


def test_missing_controller_is_a_problem_only_when_required(monkeypatch):
    monkeypatch.setattr(config, "CONTROLLER_HOST", "")
    assert config.validate_settings() == []

    monkeypatch.setattr(config, "REQUIRE_CONTROLLER", True)
    assert any("SWIFTPASS_CONTROLLER_HOST" in p for p in config.validate_settings())


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("CREDENTIAL_PERIOD_MS", 0),
        ("CONTROLLER_DENY_TOKEN", "ACCESS123"),
        ("OVERLAP_TIE_BREAK", "bogus"),
        ("SCAN_COOLDOWN_SECONDS", -1.0),
    ],
)
def test_startup_refuses_invalid_settings(temp_db, monkeypatch, name, value):
    monkeypatch.setattr(config, "CONTROLLER_GRANT_TOKEN", "ACCESS123")
    monkeypatch.setattr(config, name, value)

    with pytest.raises(RuntimeError, match="Invalid SwiftPass configuration"):
        main._startup()


def test_startup_creates_schema_when_settings_are_valid(temp_db):
    temp_db.unlink()
    main._startup()
    assert temp_db.exists()
