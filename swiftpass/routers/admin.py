import sqlite3
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from database.db import (
    add_course,
    add_session,
    add_subject,
    clear_attendance,
    create_admin_user,
    delete_session,
    delete_subject,
    enroll_subject,
    get_admin_users,
    get_all_courses,
    get_all_sessions,
    get_all_subjects,
    get_enrolled_sessions,
    get_scan_events,
    get_scan_events_total,
    get_session_by_id,
    get_subject_by_id,
    set_subject_role,
    unenroll_subject,
)
from swiftpass.errors import SessionRuleError
from swiftpass.security import require_admin
from swiftpass.services.decision import REASON_CODES
from swiftpass.services.runtime import get_rotators

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


class SubjectCreate(BaseModel):
    id: str
    full_name: str
    student_number: str | None = None
    email: str | None = None
    course: str | None = None
    section: str | None = None
    role: Literal["standard", "elevated"] = "standard"


class SubjectRoleUpdate(BaseModel):
    role: Literal["standard", "elevated"]


class CourseCreate(BaseModel):
    name: str
    code: str
    description: str | None = None


class SessionCreate(BaseModel):
    name: str
    day_of_week: str
    start_time: str
    end_time: str
    course_id: int | None = None
    section: str | None = None
    location: str | None = None


class AdminCreate(BaseModel):
    username: str
    password: str


class EnrollmentCreate(BaseModel):
    subject_id: str
    session_id: int


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


# -----------------------------
# Subjects
# -----------------------------
@router.get("/subjects")
def subjects():
    return get_all_subjects()


@router.post("/subjects")
def create_subject(payload: SubjectCreate):
    subject_id = payload.id.strip()
    full_name = payload.full_name.strip()
    if not subject_id or not full_name:
        raise HTTPException(status_code=400, detail="Id and full name are required.")

    try:
        add_subject(
            subject_id,
            full_name,
            student_number=_clean(payload.student_number),
            email=_clean(payload.email),
            course=_clean(payload.course),
            section=_clean(payload.section),
            role=payload.role,
        )
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=409, detail="Student id or student number already exists.")
    return get_subject_by_id(subject_id)


@router.get("/subjects/{subject_id}")
def subject_detail(subject_id: str):
    subject = get_subject_by_id(subject_id)
    if not subject:
        raise HTTPException(status_code=404, detail="Student not found.")
    subject["sessions"] = get_enrolled_sessions(subject_id)
    return subject


@router.put("/subjects/{subject_id}/role")
def update_subject_role(subject_id: str, payload: SubjectRoleUpdate):
    if not set_subject_role(subject_id, payload.role):
        raise HTTPException(status_code=404, detail="Student not found.")
    return {"ok": True, "id": subject_id, "role": payload.role}


@router.delete("/subjects/{subject_id}")
def remove_subject(subject_id: str):
    if not delete_subject(subject_id):
        raise HTTPException(status_code=404, detail="Student not found.")
    # A removed student must not keep a live credential.
    get_rotators().unbind(subject_id)
    return {"ok": True}


# -----------------------------
# Courses
# -----------------------------
@router.get("/courses")
def courses():
    return get_all_courses()


@router.post("/courses")
def create_course(payload: CourseCreate):
    name = payload.name.strip()
    code = payload.code.strip()
    if not name or not code:
        raise HTTPException(status_code=400, detail="Course name and code are required.")
    try:
        course_id = add_course(name, code, _clean(payload.description))
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=409, detail="Course code already exists.")
    return {"id": course_id, "name": name, "code": code, "description": _clean(payload.description)}


# -----------------------------
# Lab sessions
# -----------------------------
@router.get("/sessions")
def sessions(day_of_week: str | None = None):
    try:
        return get_all_sessions(day_of_week)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.post("/sessions")
def create_session(payload: SessionCreate):
    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Session name is required.")
    try:
        session_id = add_session(
            name,
            payload.day_of_week,
            payload.start_time,
            payload.end_time,
            course_id=payload.course_id,
            section=_clean(payload.section),
            location=_clean(payload.location),
        )
    except SessionRuleError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=400, detail="Unknown course.")
    return get_session_by_id(session_id)


@router.delete("/sessions/{session_id}")
def remove_session(session_id: int):
    if not delete_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found.")
    return {"ok": True}


# -----------------------------
# Enrollments
# -----------------------------
@router.post("/enrollments")
def create_enrollment(payload: EnrollmentCreate):
    try:
        enroll_subject(payload.subject_id.strip(), payload.session_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except SessionRuleError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=409, detail="Student is already enrolled in this session.")
    return {"ok": True, "subject_id": payload.subject_id.strip(), "session_id": payload.session_id}


@router.delete("/enrollments/{subject_id}/{session_id}")
def remove_enrollment(subject_id: str, session_id: int):
    if not unenroll_subject(subject_id, session_id):
        raise HTTPException(status_code=404, detail="Enrollment not found.")
    return {"ok": True}


# -----------------------------
# Operator accounts
# -----------------------------
@router.get("/admins")
def admin_users():
    return get_admin_users()


@router.post("/admins", status_code=201)
def create_admin(payload: AdminCreate):
    try:
        return create_admin_user(payload.username, payload.password)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=409, detail="Username already exists.")


# -----------------------------
# Audit and maintenance
# -----------------------------
@router.get("/scan-events")
def list_scan_events(
    subject_id: str | None = None,
    date: str | None = None,
    reason_code: str | None = None,
    granted: bool | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    clean_reason = reason_code.strip() if reason_code else None
    if clean_reason and clean_reason not in REASON_CODES:
        raise HTTPException(status_code=400, detail="Invalid reason_code filter.")

    rows = get_scan_events(
        subject_id=subject_id,
        date=date,
        reason_code=clean_reason,
        granted=granted,
        limit=limit,
        offset=offset,
    )
    total = get_scan_events_total(
        subject_id=subject_id,
        date=date,
        reason_code=clean_reason,
        granted=granted,
    )
    return {
        "rows": rows,
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.post("/reset/attendance")
def reset_attendance():
    clear_attendance()
    return {"ok": True, "message": "Attendance records and scan events cleared"}
