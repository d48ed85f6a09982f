import os
import secrets
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]

DB_PATH = Path(os.getenv("SWIFTPASS_DB_PATH", BASE_DIR / "database" / "swiftpass.db"))
DEVICE_SECRET = os.getenv("SWIFTPASS_DEVICE_SECRET", "swiftpass-device-secret-change-me").strip()
ADMIN_USERNAME = os.getenv("SWIFTPASS_ADMIN_USERNAME", "admin").strip() or "admin"
ADMIN_PASSWORD = os.getenv("SWIFTPASS_ADMIN_PASSWORD", "admin123").strip() or "admin123"
SIGNING_KEY = (
    os.getenv("SWIFTPASS_SIGNING_KEY", "").strip()
    or DEVICE_SECRET
    or secrets.token_urlsafe(32)
)
AUTH_TOKEN_TTL_SECONDS = int(os.getenv("SWIFTPASS_AUTH_TOKEN_TTL_SECONDS", "43200"))
LOG_LEVEL = os.getenv("SWIFTPASS_LOG_LEVEL", "INFO").strip().upper() or "INFO"


def _parse_bool(value: str | None, fallback: bool) -> bool:
    if value is None:
        return fallback
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return fallback


def _parse_csv(value: str | None, fallback: list[str]) -> list[str]:
    if not value:
        return fallback
    parsed = [item.strip() for item in value.split(",") if item.strip()]
    return parsed or fallback


TIE_BREAK_POLICIES = ("lowest_id", "earliest_start")


def _parse_tie_break(value: str | None) -> str:
    # Unknown names are kept as given; validate_settings() reports them.
    normalized = (value or "").strip().lower().replace("-", "_")
    return normalized or "lowest_id"


CORS_ALLOW_ORIGINS = _parse_csv(
    os.getenv("SWIFTPASS_CORS_ALLOW_ORIGINS"),
    ["http://localhost:8081", "http://127.0.0.1:8081"],
)
CORS_ALLOW_METHODS = _parse_csv(
    os.getenv("SWIFTPASS_CORS_ALLOW_METHODS"),
    ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
)
CORS_ALLOW_HEADERS = _parse_csv(
    os.getenv("SWIFTPASS_CORS_ALLOW_HEADERS"),
    ["Authorization", "Content-Type", "Accept"],
)
CORS_ALLOW_CREDENTIALS = _parse_bool(os.getenv("SWIFTPASS_CORS_ALLOW_CREDENTIALS"), True)
ENABLE_DEBUG_ENDPOINTS = _parse_bool(os.getenv("SWIFTPASS_ENABLE_DEBUG_ENDPOINTS"), False)

# Credential rotation
CREDENTIAL_PERIOD_MS = int(os.getenv("SWIFTPASS_CREDENTIAL_PERIOD_MS", "60000"))

# Scan station debounce
SCAN_COOLDOWN_SECONDS = float(os.getenv("SWIFTPASS_SCAN_COOLDOWN_SECONDS", "2.0"))

# Overlapping enrollments: lowest_id | earliest_start
OVERLAP_TIE_BREAK = _parse_tie_break(os.getenv("SWIFTPASS_OVERLAP_TIE_BREAK"))

# Door controller (ESP32). No default address: an unset host means no signal.
CONTROLLER_HOST = os.getenv("SWIFTPASS_CONTROLLER_HOST", "").strip()
CONTROLLER_GRANT_TOKEN = os.getenv("SWIFTPASS_CONTROLLER_GRANT_TOKEN", "ACCESS123").strip() or "ACCESS123"
CONTROLLER_DENY_TOKEN = os.getenv("SWIFTPASS_CONTROLLER_DENY_TOKEN", "INVALID").strip() or "INVALID"
CONTROLLER_TIMEOUT_SECONDS = float(os.getenv("SWIFTPASS_CONTROLLER_TIMEOUT_SECONDS", "5"))
REQUIRE_CONTROLLER = _parse_bool(os.getenv("SWIFTPASS_REQUIRE_CONTROLLER"), False)


def validate_settings() -> list[str]:
    """Return human readable startup errors; empty when the settings are usable."""
    errors: list[str] = []
    if CREDENTIAL_PERIOD_MS <= 0:
        errors.append("SWIFTPASS_CREDENTIAL_PERIOD_MS must be positive.")
    if REQUIRE_CONTROLLER and not CONTROLLER_HOST:
        errors.append("SWIFTPASS_CONTROLLER_HOST is required when SWIFTPASS_REQUIRE_CONTROLLER is on.")
    if CONTROLLER_GRANT_TOKEN == CONTROLLER_DENY_TOKEN:
        errors.append("Controller grant and deny tokens must differ.")
    if CONTROLLER_TIMEOUT_SECONDS <= 0:
        errors.append("SWIFTPASS_CONTROLLER_TIMEOUT_SECONDS must be positive.")
    if OVERLAP_TIE_BREAK not in TIE_BREAK_POLICIES:
        errors.append(
            f"SWIFTPASS_OVERLAP_TIE_BREAK must be one of {', '.join(TIE_BREAK_POLICIES)}; got {OVERLAP_TIE_BREAK!r}."
        )
    if SCAN_COOLDOWN_SECONDS < 0:
        errors.append("SWIFTPASS_SCAN_COOLDOWN_SECONDS must not be negative.")
    return errors
