"""Shared plumbing for admin panels: backend access plus error/message slots."""
import logging

from ..backend import Backend, BackendError
from ..config import NOT_CONFIGURED

logger = logging.getLogger(__name__)


class AdminPanel:
    """
    Base for admin panels.

    Failures never raise: they set `error` (and clear `message`), and the
    operation returns None or False. Successful mutations set `message`.
    """

    def __init__(self, backend: Backend | None):
        self._backend = backend
        self.error: str | None = None
        self.message: str | None = None

    def _require_backend(self) -> Backend | None:
        if self._backend is None:
            self.error = NOT_CONFIGURED
        return self._backend

    def _fail(self, message: str) -> None:
        self.error = message
        self.message = None

    def _failed_request(self, action: str, e: BackendError) -> None:
        logger.warning("%s failed: %s", action, e.message)
        self._fail(e.message)

    def _succeed(self, message: str | None = None) -> None:
        self.error = None
        if message is not None:
            self.message = message
