"""Backend gateway: abstract interface to the hosted data/auth/storage platform."""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..session.schema import AuthSession

logger = logging.getLogger(__name__)

AuthCallback = Callable[[str, Optional[AuthSession]], None]


class BackendError(Exception):
    """A failed backend request (network, query, RPC, auth or function error)."""

    def __init__(self, message: str, status: int | None = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.details = details


@dataclass
class Query:
    """
    A table read: column projection (with relation embedding), filters,
    ordering and limit.

    Built fluently, e.g. ``Query("orders", "id, status").eq("user_id", uid).order("created_at", ascending=False)``.
    """
    table: str
    columns: str = "*"
    filters: list[tuple[str, str, Any]] = field(default_factory=list)
    ordering: list[tuple[str, bool]] = field(default_factory=list)
    row_limit: Optional[int] = None

    def eq(self, column: str, value: Any) -> "Query":
        self.filters.append((column, "eq", value))
        return self

    def neq(self, column: str, value: Any) -> "Query":
        self.filters.append((column, "neq", value))
        return self

    def gte(self, column: str, value: Any) -> "Query":
        self.filters.append((column, "gte", value))
        return self

    def lte(self, column: str, value: Any) -> "Query":
        self.filters.append((column, "lte", value))
        return self

    def in_(self, column: str, values: list[Any]) -> "Query":
        self.filters.append((column, "in", list(values)))
        return self

    def order(self, column: str, ascending: bool = True) -> "Query":
        self.ordering.append((column, ascending))
        return self

    def limit(self, count: int) -> "Query":
        self.row_limit = count
        return self


@dataclass
class ChangeEvent:
    """A row-level change pushed by the realtime feed."""
    table: str
    event: str  # INSERT, UPDATE or DELETE
    new: dict[str, Any] = field(default_factory=dict)
    old: dict[str, Any] = field(default_factory=dict)


ChangeCallback = Callable[[ChangeEvent], None]


class Subscription:
    """Handle for a listener registration. `unsubscribe()` is idempotent."""

    def __init__(self, on_unsubscribe: Callable[[], None]):
        self._on_unsubscribe = on_unsubscribe
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._on_unsubscribe()


class Backend(ABC):
    """Abstract hosted backend. Every request method raises BackendError on failure."""

    def __init__(self) -> None:
        self._auth_listeners: list[AuthCallback] = []

    # --- data -------------------------------------------------------------

    @abstractmethod
    async def select(self, query: Query) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    async def select_one(self, query: Query) -> Optional[dict[str, Any]]:
        """Zero or one row; None when absent, BackendError when several match."""
        ...

    @abstractmethod
    async def insert(self, table: str, values: dict[str, Any], returning: str = "*") -> dict[str, Any]:
        ...

    @abstractmethod
    async def update(self, table: str, values: dict[str, Any], match: dict[str, Any]) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    async def upsert(self, table: str, values: dict[str, Any]) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    async def rpc(self, name: str, params: dict[str, Any]) -> Any:
        ...

    # --- functions & storage ----------------------------------------------

    @abstractmethod
    async def invoke_function(self, name: str, body: dict[str, Any]) -> dict[str, Any]:
        ...

    @abstractmethod
    async def upload_to_signed_url(self, url: str, content: bytes, content_type: str) -> None:
        ...

    # --- realtime ---------------------------------------------------------

    @abstractmethod
    def subscribe(self, table: str, callback: ChangeCallback) -> Subscription:
        """Deliver row-level change events for `table` until unsubscribed."""
        ...

    # --- auth -------------------------------------------------------------

    @abstractmethod
    async def get_session(self) -> Optional[AuthSession]:
        ...

    @abstractmethod
    async def sign_in_with_otp(self, email: str, redirect_to: str | None = None) -> None:
        ...

    @abstractmethod
    async def verify_otp(self, email: str, token: str) -> AuthSession:
        ...

    @abstractmethod
    async def sign_out(self) -> None:
        ...

    def on_auth_state_change(self, callback: AuthCallback) -> Subscription:
        """Register for auth events (SIGNED_IN, SIGNED_OUT, TOKEN_REFRESHED)."""
        self._auth_listeners.append(callback)

        def _remove() -> None:
            if callback in self._auth_listeners:
                self._auth_listeners.remove(callback)

        return Subscription(_remove)

    def _emit_auth_change(self, event: str, session: Optional[AuthSession]) -> None:
        logger.info("Auth state changed: %s", event)
        for callback in list(self._auth_listeners):
            try:
                callback(event, session)
            except Exception:
                logger.exception("Auth listener failed for %s", event)

    async def aclose(self) -> None:
        """Release network resources."""
