from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from database.db import (
    close_attendance_record,
    delete_attendance_record,
    get_attendance_records,
    get_daily_summary,
)
from swiftpass.security import require_admin
from swiftpass.timewindow import ensure_aware, local_now

router = APIRouter(dependencies=[Depends(require_admin)])


class AttendanceClose(BaseModel):
    time_out: datetime | None = None


@router.get("/attendance")
def attendance(
    date: str | None = None,
    session_id: int | None = None,
    subject_id: str | None = None,
):
    return get_attendance_records(date, session_id=session_id, subject_id=subject_id)


@router.get("/attendance/summary")
def summary(date: str | None = None):
    return get_daily_summary(date or local_now().date().isoformat())


# Scan-out is not automatic; an admin closes the record by hand.
@router.post("/attendance/{record_id}/close")
def close_attendance(record_id: int, payload: AttendanceClose | None = None):
    moment = ensure_aware(payload.time_out) if payload and payload.time_out else local_now()
    ok = close_attendance_record(record_id, moment.isoformat())
    if not ok:
        raise HTTPException(status_code=404, detail="Open attendance record not found.")
    return {"ok": True, "id": record_id, "time_out": moment.isoformat()}


@router.delete("/attendance/{record_id}")
def delete_attendance(record_id: int):
    ok = delete_attendance_record(record_id)
    if not ok:
        raise HTTPException(status_code=404, detail="Attendance record not found.")
    return {"ok": True}
