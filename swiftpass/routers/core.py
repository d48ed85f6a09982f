from fastapi import APIRouter, Depends, HTTPException

from swiftpass.config import (
    CONTROLLER_HOST,
    CREDENTIAL_PERIOD_MS,
    DB_PATH,
    ENABLE_DEBUG_ENDPOINTS,
    OVERLAP_TIE_BREAK,
    SCAN_COOLDOWN_SECONDS,
)
from swiftpass.security import require_session

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/debug/dbpath")
def dbpath(_session: dict = Depends(require_session)):
    if not ENABLE_DEBUG_ENDPOINTS:
        raise HTTPException(status_code=404, detail="Not found.")
    return {"db_path": str(DB_PATH)}


@router.get("/config/access")
def access_config():
    return {
        "credential_period_ms": CREDENTIAL_PERIOD_MS,
        "scan_cooldown_seconds": SCAN_COOLDOWN_SECONDS,
        "overlap_tie_break": OVERLAP_TIE_BREAK,
        "controller_configured": bool(CONTROLLER_HOST),
    }
