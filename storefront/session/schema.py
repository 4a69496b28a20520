"""Pydantic models for the authenticated session."""
import time
from typing import Any, Optional

from pydantic import BaseModel, Field


class AuthUser(BaseModel):
    """User claims carried by a session."""
    id: str
    email: Optional[str] = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)


class AuthSession(BaseModel):
    """Access/refresh token pair plus the user it belongs to."""
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_at: Optional[int] = None  # unix seconds
    user: AuthUser

    @classmethod
    def from_token_response(cls, data: dict[str, Any]) -> "AuthSession":
        expires_at = data.get("expires_at")
        if expires_at is None and data.get("expires_in") is not None:
            expires_at = int(time.time()) + int(data["expires_in"])
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            token_type=data.get("token_type") or "bearer",
            expires_at=expires_at,
            user=AuthUser(**data["user"]),
        )

    def is_expired(self, leeway: int = 30) -> bool:
        if self.expires_at is None:
            return False
        return time.time() + leeway >= self.expires_at
