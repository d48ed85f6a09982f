import sqlite3
import time

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from database.db import create_tables, get_subject_by_id, verify_admin_credentials
from swiftpass.context import AuthContext
from swiftpass.security import issue_session_token, require_context, verify_device_secret

router = APIRouter()


class AdminLogin(BaseModel):
    username: str
    password: str


class SubjectLogin(BaseModel):
    subject_id: str
    device_secret: str


def _token_response(token: str, claims: dict) -> dict:
    now = int(time.time())
    return {
        "access_token": token,
        "token_type": "bearer",
        "subject": claims["sub"],
        "role": claims["role"],
        "expires_at": claims["exp"],
        "expires_in": max(0, int(claims["exp"]) - now),
    }


@router.post("/auth/login")
def admin_login(payload: AdminLogin):
    username = payload.username.strip()
    password = payload.password.strip()

    if not username:
        raise HTTPException(status_code=400, detail="Username is required.")
    if not password:
        raise HTTPException(status_code=400, detail="Password is required.")

    try:
        admin = verify_admin_credentials(username, password)
    except sqlite3.OperationalError:
        # Self-heal when DB schema is missing (e.g., startup/lifespan skipped).
        try:
            create_tables()
            admin = verify_admin_credentials(username, password)
        except sqlite3.OperationalError:
            raise HTTPException(
                status_code=503,
                detail="Authentication service unavailable. Please retry.",
            )

    if not admin:
        raise HTTPException(status_code=401, detail="Invalid admin credentials.")

    token, claims = issue_session_token(admin["username"], role="admin")
    return _token_response(token, claims)


# The identity provider signs students in on the phone app; the app trades the
# provisioned device secret for a subject session here.
@router.post("/auth/subject")
def subject_login(payload: SubjectLogin):
    if not verify_device_secret(payload.device_secret):
        raise HTTPException(status_code=401, detail="Invalid device secret.")

    subject_id = payload.subject_id.strip()
    if not subject_id:
        raise HTTPException(status_code=400, detail="Subject id is required.")
    if not get_subject_by_id(subject_id):
        raise HTTPException(status_code=404, detail="Student not found.")

    token, claims = issue_session_token(subject_id, role="subject")
    return _token_response(token, claims)


@router.get("/auth/me")
def auth_me(context: AuthContext = Depends(require_context)):
    return {
        "subject": context.subject_id,
        "role": context.role,
        "expires_at": context.expires_at,
    }
