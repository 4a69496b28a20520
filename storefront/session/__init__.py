"""Encrypted persistence of the signed-in auth session."""
from .crypto import SessionCrypto
from .manager import SessionManager
from .schema import AuthSession, AuthUser

__all__ = ["SessionCrypto", "SessionManager", "AuthSession", "AuthUser"]
