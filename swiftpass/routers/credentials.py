import io

import qrcode
from fastapi import APIRouter, Depends, HTTPException, Response

from database.db import get_subject_by_id
from swiftpass.context import AuthContext
from swiftpass.security import require_subject
from swiftpass.services.rotator import CredentialRotator
from swiftpass.services.runtime import get_rotators

router = APIRouter(prefix="/credentials")


def _active_rotator(context: AuthContext) -> CredentialRotator:
    rotator = get_rotators().get(context.subject_id)
    if rotator is None or rotator.state != "active":
        raise HTTPException(status_code=409, detail="No credential bound. Call /credentials/bind first.")
    return rotator


def _credential_payload(rotator: CredentialRotator) -> dict:
    issued = rotator.current()
    if issued is None:
        raise HTTPException(status_code=409, detail="Credential is being issued. Retry shortly.")
    remaining = rotator.time_remaining()
    return {
        "subject_id": issued.credential.subject_id,
        "qr_data": issued.text,
        "issued_at": issued.credential.issued_at.isoformat(),
        "expires_at": issued.credential.expires_at.isoformat(),
        "time_remaining_ms": int(remaining.total_seconds() * 1000),
        "period_ms": int(rotator.period.total_seconds() * 1000),
    }


def _render_png(text: str) -> bytes:
    qr = qrcode.QRCode(version=1, box_size=10, border=4)
    qr.add_data(text)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer)
    return buffer.getvalue()


@router.post("/bind")
def bind_credential(context: AuthContext = Depends(require_subject)):
    subject = get_subject_by_id(context.subject_id)
    if not subject:
        raise HTTPException(status_code=404, detail="Student not found.")
    rotator = get_rotators().bind(subject)
    return _credential_payload(rotator)


@router.get("/current")
def current_credential(context: AuthContext = Depends(require_subject)):
    return _credential_payload(_active_rotator(context))


@router.get("/current.png")
def current_credential_png(context: AuthContext = Depends(require_subject)):
    rotator = _active_rotator(context)
    issued = rotator.current()
    if issued is None:
        raise HTTPException(status_code=409, detail="Credential is being issued. Retry shortly.")
    return Response(content=_render_png(issued.text), media_type="image/png")


@router.post("/refresh")
def refresh_credential(context: AuthContext = Depends(require_subject)):
    rotator = _active_rotator(context)
    refreshed = rotator.refresh()
    payload = _credential_payload(rotator)
    payload["refreshed"] = refreshed
    return payload


@router.post("/unbind")
def unbind_credential(context: AuthContext = Depends(require_subject)):
    released = get_rotators().unbind(context.subject_id)
    return {"ok": True, "released": released}
