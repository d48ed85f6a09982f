import json
import time

import pytest

from swiftpass import security
from swiftpass.context import AuthContext


def _signed(claims):
    encoded = security._b64url_encode(json.dumps(claims).encode("utf-8"))
    return f"{encoded}.{security._signature(encoded)}"


def _claims(**overrides):
    now = int(time.time())
    return {"sub": "uid-ana", "role": "subject", "iat": now, "exp": now + 60, **overrides}


def test_issued_token_carries_role_and_decodes():
    token, claims = security.issue_session_token("uid-ana", role="subject")

    assert set(claims) == {"sub", "role", "iat", "exp"}
    assert security.decode_session_token(token) == claims
    assert AuthContext.from_claims(claims).role == "subject"


def test_unknown_role_cannot_be_issued():
    with pytest.raises(ValueError, match="Unknown session role"):
        security.issue_session_token("uid-ana", role="root")


def test_blank_subject_cannot_be_issued():
    with pytest.raises(ValueError):
        security.issue_session_token("   ")


def test_role_swapped_after_signing_is_rejected():
    token, _ = security.issue_session_token("uid-ana", role="subject")
    encoded, _, signature = token.partition(".")
    claims = json.loads(security._b64url_decode(encoded))
    claims["role"] = "admin"
    forged = security._b64url_encode(json.dumps(claims).encode("utf-8"))

    assert security.decode_session_token(f"{forged}.{signature}") is None


@pytest.mark.parametrize("role", [None, "", "root", "ADMIN"])
def test_signed_token_with_unknown_role_is_rejected(role):
    claims = _claims(role=role)
    assert security.decode_session_token(_signed(claims)) is None


def test_signed_token_without_role_is_rejected():
    claims = _claims()
    del claims["role"]
    assert security.decode_session_token(_signed(claims)) is None


def test_expired_token_is_rejected():
    claims = _claims(exp=int(time.time()) - 1)
    assert security.decode_session_token(_signed(claims)) is None


@pytest.mark.parametrize("token", ["", "no-dot", "a.b.c", "!!!.???", "é.é"])
def test_malformed_tokens_are_rejected(token):
    assert security.decode_session_token(token) is None
