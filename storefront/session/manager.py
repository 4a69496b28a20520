"""Session manager: load, save, and redact the persisted auth session."""
import logging
import os
from pathlib import Path

from ..config import DEFAULT_SESSION_PATH
from ..output_sanitizer import redact_email
from .crypto import SessionCrypto
from .schema import AuthSession

logger = logging.getLogger(__name__)


class SessionManager:
    """Keeps the auth session encrypted at rest. Tokens never leave this object in output."""

    def __init__(self, session_path: Path | None = None, crypto: SessionCrypto | None = None):
        self._path = session_path or DEFAULT_SESSION_PATH
        self._crypto = crypto or SessionCrypto(key_path=self._path.with_suffix(".key"))
        self._cached: AuthSession | None = None

    def exists(self) -> bool:
        return self._path.exists()

    def save(self, session: AuthSession) -> None:
        """Encrypt and save session to disk."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_bytes(self._crypto.encrypt(session.model_dump()))
        os.chmod(self._path, 0o600)
        self._cached = session
        logger.info("Session saved to %s", self._path)

    def load(self) -> AuthSession:
        """Load and decrypt session from disk."""
        if self._cached:
            return self._cached
        if not self._path.exists():
            raise FileNotFoundError("No saved session. Sign in first.")
        data = self._crypto.decrypt(self._path.read_bytes())
        self._cached = AuthSession(**data)
        return self._cached

    def clear(self) -> None:
        self._cached = None
        if self._path.exists():
            self._path.unlink()
            logger.info("Session removed from %s", self._path)

    def get_redacted_summary(self) -> dict:
        """Summary safe for tool output: no tokens, partial email."""
        session = self.load()
        email = session.user.email
        return {
            "user_id": session.user.id,
            "email": redact_email(email) if email else None,
            "expires_at": session.expires_at,
        }

    def clear_cache(self) -> None:
        """Drop the in-memory copy (for testing)."""
        self._cached = None
