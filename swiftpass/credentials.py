"""
Scannable credential payloads.

A credential is a flat JSON object shown as a QR code on the subject's phone:

    {"course": "BSIT", "expiry": "...", "issuedAt": "...", "name": "Ana Cruz",
     "nonce": "...", "section": "A", "studentId": "2023-0001", "userId": "S1"}

It is scoped rather than signed: the subject id and validity window are all the
scanner trusts, and the subject's role is always re-read from the database.
"""

import json
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from swiftpass.errors import CredentialDecodeError, MissingSubjectIdentity, UnrecognizedFormat
from swiftpass.timewindow import ensure_aware

NONCE_BYTES = 16


@dataclass(frozen=True)
class Credential:
    subject_id: str
    issued_at: datetime
    expires_at: datetime
    nonce: str
    name: str | None = None
    student_number: str | None = None
    course: str | None = None
    section: str | None = None

    def is_valid(self, now: datetime) -> bool:
        return ensure_aware(now) < self.expires_at

    def seconds_remaining(self, now: datetime) -> float:
        return max(0.0, (self.expires_at - ensure_aware(now)).total_seconds())


@dataclass(frozen=True)
class DecodeResult:
    credential: Credential | None = None
    error: CredentialDecodeError | None = None

    @property
    def ok(self) -> bool:
        return self.credential is not None


def new_nonce() -> str:
    return secrets.token_urlsafe(NONCE_BYTES)


def encode_credential(
    subject: Mapping[str, Any],
    issued_at: datetime,
    expires_at: datetime,
    nonce: str | None = None,
) -> str:
    subject_id = str(subject.get("id") or "").strip()
    if not subject_id:
        raise MissingSubjectIdentity("Cannot issue a credential without a subject id.")

    payload = {
        "userId": subject_id,
        "studentId": subject.get("student_number"),
        "name": subject.get("full_name"),
        "course": subject.get("course"),
        "section": subject.get("section"),
        "issuedAt": ensure_aware(issued_at).isoformat(),
        "expiry": ensure_aware(expires_at).isoformat(),
        "nonce": nonce or new_nonce(),
    }
    return json.dumps(payload, separators=(",", ":"), sort_keys=True)


def _optional_text(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_instant(payload: dict[str, Any], key: str) -> datetime:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise UnrecognizedFormat(f"Credential field {key!r} is missing.")
    try:
        # Normalised here so out-of-range instants fail inside the codec.
        return ensure_aware(datetime.fromisoformat(value.strip())).astimezone(timezone.utc)
    except (ValueError, OverflowError, OSError):
        raise UnrecognizedFormat(f"Credential field {key!r} is not an ISO-8601 instant.")


def _decode(text: str) -> Credential:
    if not isinstance(text, str) or not text.strip():
        raise UnrecognizedFormat("Scanned text is empty.")

    try:
        payload = json.loads(text)
    except ValueError:
        raise UnrecognizedFormat("The QR code format is not recognized.")

    if not isinstance(payload, dict):
        raise UnrecognizedFormat("The QR code format is not recognized.")

    # Older cards only carried "studentId".
    subject_id = _optional_text(payload, "userId") or _optional_text(payload, "studentId")
    if not subject_id:
        raise MissingSubjectIdentity("Student ID not found in QR code.")

    nonce = _optional_text(payload, "nonce")
    if not nonce:
        raise UnrecognizedFormat("Credential field 'nonce' is missing.")

    return Credential(
        subject_id=subject_id,
        issued_at=_parse_instant(payload, "issuedAt"),
        expires_at=_parse_instant(payload, "expiry"),
        nonce=nonce,
        name=_optional_text(payload, "name"),
        student_number=_optional_text(payload, "studentId"),
        course=_optional_text(payload, "course"),
        section=_optional_text(payload, "section"),
    )


def decode_credential(text: str) -> DecodeResult:
    try:
        return DecodeResult(credential=_decode(text))
    except CredentialDecodeError as exc:
        return DecodeResult(error=exc)
