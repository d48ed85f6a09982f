"""
Bearer session tokens.

A token is ``<payload>.<signature>``: the payload is base64url JSON, the
signature an HMAC-SHA256 of the encoded payload under ``SIGNING_KEY``.
Claims:

    sub   admin username, or the subject id of a signed-in student
    role  "admin" (scanner and management screens) or "subject" (phone app)
    iat   issue time, unix seconds
    exp   expiry, unix seconds

A token whose role is missing or unknown is rejected like a bad signature, so
every accepted session maps onto exactly one ``AuthContext`` role.
"""

import base64
import hashlib
import hmac
import json
import time
from typing import Any, Literal

from fastapi import Depends, Header, HTTPException

from swiftpass.config import AUTH_TOKEN_TTL_SECONDS, DEVICE_SECRET, SIGNING_KEY
from swiftpass.context import AuthContext

SessionRole = Literal["admin", "subject"]
SESSION_ROLES: set[str] = {"admin", "subject"}


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(value: str) -> bytes:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


def _signature(encoded_claims: str) -> str:
    mac = hmac.new(SIGNING_KEY.encode("utf-8"), encoded_claims.encode("utf-8"), hashlib.sha256)
    return _b64url_encode(mac.digest())


def verify_device_secret(device_secret: str) -> bool:
    expected = DEVICE_SECRET.strip()
    if not expected:
        return False
    return hmac.compare_digest((device_secret or "").strip(), expected)


def issue_session_token(subject: str, *, role: SessionRole = "admin") -> tuple[str, dict[str, Any]]:
    if role not in SESSION_ROLES:
        raise ValueError(f"Unknown session role: {role!r}")
    sub = subject.strip()
    if not sub:
        raise ValueError("Session subject is required.")

    issued_at = int(time.time())
    claims = {
        "sub": sub,
        "role": role,
        "iat": issued_at,
        "exp": issued_at + AUTH_TOKEN_TTL_SECONDS,
    }
    encoded = _b64url_encode(json.dumps(claims, separators=(",", ":"), sort_keys=True).encode("utf-8"))
    return f"{encoded}.{_signature(encoded)}", claims


def _read_claims(encoded: str) -> dict[str, Any] | None:
    try:
        claims = json.loads(_b64url_decode(encoded).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    return claims if isinstance(claims, dict) else None


def _claims_are_current(claims: dict[str, Any]) -> bool:
    sub = claims.get("sub")
    exp = claims.get("exp")
    return (
        isinstance(sub, str)
        and bool(sub.strip())
        and claims.get("role") in SESSION_ROLES
        and isinstance(exp, int)
        and exp >= int(time.time())
    )


def decode_session_token(token: str) -> dict[str, Any] | None:
    """Return the claims of a well-signed, unexpired token with a known role."""
    encoded, dot, signature = (token or "").partition(".")
    if not dot or not hmac.compare_digest(signature.encode("utf-8"), _signature(encoded).encode("ascii")):
        return None
    claims = _read_claims(encoded)
    if claims is None or not _claims_are_current(claims):
        return None
    return claims


def require_session(authorization: str | None = Header(default=None)) -> dict[str, Any]:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing bearer token.")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="Invalid authorization scheme.")

    claims = decode_session_token(token.strip())
    if not claims:
        raise HTTPException(status_code=401, detail="Invalid or expired session token.")
    return claims


def require_context(claims: dict[str, Any] = Depends(require_session)) -> AuthContext:
    return AuthContext.from_claims(claims)


def require_admin(context: AuthContext = Depends(require_context)) -> AuthContext:
    if not context.is_admin:
        raise HTTPException(status_code=403, detail="Administrator session required.")
    return context


def require_subject(context: AuthContext = Depends(require_context)) -> AuthContext:
    if context.role != "subject":
        raise HTTPException(status_code=403, detail="Student session required.")
    return context
