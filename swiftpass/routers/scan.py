from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from swiftpass.context import AuthContext
from swiftpass.security import require_admin
from swiftpass.services.runtime import get_station

router = APIRouter()


class ScanSubmit(BaseModel):
    qr_data: str
    session_id: int | None = None


@router.post("/scan")
def submit_scan(payload: ScanSubmit, context: AuthContext = Depends(require_admin)):
    """
    Decide on one scanned credential and signal the door controller.

    Scans that reach a busy or cooling-down station come back with
    ``accepted: false`` and no verdict.
    """
    return get_station().submit(payload.qr_data, context, session_hint=payload.session_id)


@router.post("/scan/retry-signal")
def retry_signal(_context: AuthContext = Depends(require_admin)):
    station = get_station()
    dispatch = station.retry_signal()
    if dispatch is None:
        raise HTTPException(status_code=409, detail="No scan to resend yet.")
    return {
        "reason_code": station.last_verdict["reason_code"] if station.last_verdict else None,
        "dispatch": dispatch,
    }


@router.get("/controller/status")
def controller_status(_context: AuthContext = Depends(require_admin)):
    station = get_station()
    return {
        "station": station.describe(),
        "controller": station.dispatcher.status(),
    }
