from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class AuthContext:
    """Already-authenticated caller, bound at sign-in and dropped at sign-out."""

    subject_id: str
    role: str
    expires_at: int | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "AuthContext":
        return cls(
            subject_id=str(claims.get("sub") or ""),
            role=str(claims["role"]),
            expires_at=claims.get("exp"),
        )
