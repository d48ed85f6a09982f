import logging
import sqlite3
from datetime import datetime
from typing import Any, Literal, TypedDict

from database.db import (
    connect_db,
    find_open_attendance,
    get_subject_by_id,
    insert_attendance_record,
    insert_scan_event,
)
from swiftpass.context import AuthContext
from swiftpass.credentials import decode_credential
from swiftpass.services.resolver import EnrollmentResolver
from swiftpass.timewindow import ensure_aware

logger = logging.getLogger(__name__)

ReasonCode = Literal[
    "MALFORMED_CREDENTIAL",
    "CREDENTIAL_EXPIRED",
    "SUBJECT_UNKNOWN",
    "LOOKUP_FAILED",
    "ELEVATED_OVERRIDE",
    "NOT_ENROLLED_ANYWHERE",
    "NO_SESSION_TODAY",
    "NO_ACTIVE_SESSION_NOW",
    "ALREADY_RECORDED_TODAY",
    "GRANTED",
]

REASON_CODES: set[str] = {
    "MALFORMED_CREDENTIAL",
    "CREDENTIAL_EXPIRED",
    "SUBJECT_UNKNOWN",
    "LOOKUP_FAILED",
    "ELEVATED_OVERRIDE",
    "NOT_ENROLLED_ANYWHERE",
    "NO_SESSION_TODAY",
    "NO_ACTIVE_SESSION_NOW",
    "ALREADY_RECORDED_TODAY",
    "GRANTED",
}

GRANTING_CODES: set[str] = {"ELEVATED_OVERRIDE", "ALREADY_RECORDED_TODAY", "GRANTED"}

_DENIAL_MESSAGES: dict[str, str] = {
    "SUBJECT_UNKNOWN": "Student not found in database.",
    "LOOKUP_FAILED": "Failed to check lab enrollments. Access denied.",
    "NOT_ENROLLED_ANYWHERE": "Not enrolled in any labs.",
    "NO_SESSION_TODAY": "No lab scheduled for today.",
    "NO_ACTIVE_SESSION_NOW": "No active lab at this time.",
}


class Verdict(TypedDict):
    granted: bool
    reason_code: ReasonCode
    message: str
    subject_id: str | None
    display_name: str | None
    session_id: int | None
    session_name: str | None
    attendance_id: int | None
    recorded: bool
    scan_event_id: int | None
    scanned_at: str


def is_granted(reason_code: str) -> bool:
    return reason_code in GRANTING_CODES


def _clock_time(instant: datetime, now: datetime) -> str:
    try:
        local = instant.astimezone(now.tzinfo)
    except (OverflowError, ValueError):
        # Near datetime.min/max; show it in its own zone.
        local = instant
    return local.strftime("%H:%M:%S")


def _build_verdict(
    *,
    reason_code: ReasonCode,
    message: str,
    scanned_at: str,
    subject_id: str | None = None,
    display_name: str | None = None,
    session: dict[str, Any] | None = None,
    attendance_id: int | None = None,
    recorded: bool = False,
) -> Verdict:
    return {
        "granted": is_granted(reason_code),
        "reason_code": reason_code,
        "message": message,
        "subject_id": subject_id,
        "display_name": display_name,
        "session_id": int(session["id"]) if session else None,
        "session_name": session["name"] if session else None,
        "attendance_id": attendance_id,
        "recorded": recorded,
        "scan_event_id": None,
        "scanned_at": scanned_at,
    }


class AccessDecisionEngine:
    """
    Turns one scanned credential into a Grant/Deny verdict.

    Checks run in a fixed order and the first failing one decides:
    credential shape, expiry, subject lookup, elevated override, enrollment
    resolution, then duplicate suppression. Only a fresh grant writes an
    attendance record; every attempt is appended to the scan audit log.
    """

    def __init__(self, resolver: EnrollmentResolver | None = None, *, source: str = "QrScanner"):
        self.resolver = resolver or EnrollmentResolver()
        self.source = source

    def decide(
        self,
        raw_text: str,
        now: datetime,
        context: AuthContext | None = None,
        *,
        session_hint: int | None = None,
    ) -> Verdict:
        now = ensure_aware(now)
        conn = None
        try:
            conn = connect_db()
            verdict = self._decide(raw_text, now, session_hint=session_hint, conn=conn)
            verdict["scan_event_id"] = self._audit(verdict, now, context, conn=conn)
            conn.commit()
        except sqlite3.Error:
            # Unknown store state defaults to deny.
            logger.error("Attendance store unavailable while deciding scan", exc_info=True)
            if conn is not None:
                conn.rollback()
            verdict = _build_verdict(
                reason_code="LOOKUP_FAILED",
                message=_DENIAL_MESSAGES["LOOKUP_FAILED"],
                scanned_at=now.isoformat(),
            )
        finally:
            if conn is not None:
                conn.close()

        log = logger.info if verdict["granted"] else logger.warning
        log(
            "Scan verdict %s for subject=%s session=%s",
            verdict["reason_code"],
            verdict["subject_id"],
            verdict["session_id"],
        )
        return verdict

    def _decide(
        self,
        raw_text: str,
        now: datetime,
        *,
        session_hint: int | None,
        conn: sqlite3.Connection,
    ) -> Verdict:
        scanned_at = now.isoformat()

        decoded = decode_credential(raw_text)
        if not decoded.ok:
            return _build_verdict(
                reason_code="MALFORMED_CREDENTIAL",
                message=str(decoded.error),
                scanned_at=scanned_at,
            )

        credential = decoded.credential
        if not credential.is_valid(now):
            expired_at = _clock_time(credential.expires_at, now)
            return _build_verdict(
                reason_code="CREDENTIAL_EXPIRED",
                message=f"QR code expired at {expired_at}. Ask the student to refresh it.",
                scanned_at=scanned_at,
                subject_id=credential.subject_id,
                display_name=credential.name,
            )

        try:
            subject = get_subject_by_id(credential.subject_id, conn=conn)
        except sqlite3.Error:
            logger.error("Subject lookup failed for %s", credential.subject_id, exc_info=True)
            return _build_verdict(
                reason_code="LOOKUP_FAILED",
                message=_DENIAL_MESSAGES["LOOKUP_FAILED"],
                scanned_at=scanned_at,
                subject_id=credential.subject_id,
                display_name=credential.name,
            )

        if not subject:
            return _build_verdict(
                reason_code="SUBJECT_UNKNOWN",
                message=_DENIAL_MESSAGES["SUBJECT_UNKNOWN"],
                scanned_at=scanned_at,
                subject_id=credential.subject_id,
                display_name=credential.name,
            )

        # Role comes from the live record, never from the scanned payload.
        display_name = subject["full_name"]
        if subject["role"] == "elevated":
            return _build_verdict(
                reason_code="ELEVATED_OVERRIDE",
                message=f"Access granted. Welcome Admin {display_name}.",
                scanned_at=scanned_at,
                subject_id=subject["id"],
                display_name=display_name,
            )

        try:
            resolution = self.resolver.resolve(subject["id"], now, session_hint, conn=conn)
        except sqlite3.Error:
            logger.error("Enrollment lookup failed for %s", subject["id"], exc_info=True)
            resolution = None

        if resolution is None or not resolution.ok:
            reason: ReasonCode = resolution.failure if resolution is not None else "LOOKUP_FAILED"
            return _build_verdict(
                reason_code=reason,
                message=_DENIAL_MESSAGES[reason],
                scanned_at=scanned_at,
                subject_id=subject["id"],
                display_name=display_name,
            )

        session = resolution.session
        event_date = now.date().isoformat()
        try:
            existing = find_open_attendance(subject["id"], session["id"], event_date, conn=conn)
            if existing:
                return self._already_recorded(subject, session, existing["id"], scanned_at)
            record_id = insert_attendance_record(
                subject["id"],
                session["id"],
                event_date,
                scanned_at,
                conn=conn,
            )
        except sqlite3.IntegrityError:
            existing = find_open_attendance(subject["id"], session["id"], event_date, conn=conn)
            return self._already_recorded(
                subject,
                session,
                existing["id"] if existing else None,
                scanned_at,
            )

        return _build_verdict(
            reason_code="GRANTED",
            message=f"Access granted. Welcome {display_name}.",
            scanned_at=scanned_at,
            subject_id=subject["id"],
            display_name=display_name,
            session=session,
            attendance_id=record_id,
            recorded=True,
        )

    def _already_recorded(
        self,
        subject: dict[str, Any],
        session: dict[str, Any],
        attendance_id: int | None,
        scanned_at: str,
    ) -> Verdict:
        return _build_verdict(
            reason_code="ALREADY_RECORDED_TODAY",
            message=(
                f"Welcome back {subject['full_name']}. "
                f"Attendance for {session['name']} is already recorded today."
            ),
            scanned_at=scanned_at,
            subject_id=subject["id"],
            display_name=subject["full_name"],
            session=session,
            attendance_id=attendance_id,
        )

    def _audit(
        self,
        verdict: Verdict,
        now: datetime,
        context: AuthContext | None,
        *,
        conn: sqlite3.Connection,
    ) -> int | None:
        source = self.source
        if context is not None and context.subject_id:
            source = f"{self.source}:{context.subject_id}"
        try:
            return insert_scan_event(
                reason_code=verdict["reason_code"],
                granted=verdict["granted"],
                scanned_at=verdict["scanned_at"],
                event_date=now.date().isoformat(),
                message=verdict["message"],
                subject_id=verdict["subject_id"],
                session_id=verdict["session_id"],
                attendance_id=verdict["attendance_id"],
                source=source,
                conn=conn,
            )
        except sqlite3.Error:
            # Audit is best-effort; the verdict and attendance write stand.
            logger.error("Could not append scan event for %s", verdict["reason_code"], exc_info=True)
            return None
