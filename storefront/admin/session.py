"""Admin role lookup for the signed-in user."""
import logging
from typing import Literal, Optional

from ..backend import Backend, BackendError, Query
from .base import AdminPanel

logger = logging.getLogger(__name__)

ROLE_TABLE = "app_user_roles"

Role = Literal["admin", "customer"]


class AdminSession(AdminPanel):
    """Resolves whether a user holds the admin role."""

    def __init__(self, backend: Backend | None):
        super().__init__(backend)
        self.user_id: str | None = None
        self.role: Optional[Role] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    async def refresh(self, user_id: str | None) -> Optional[Role]:
        self.user_id = user_id
        self.role = None
        backend = self._require_backend()
        if backend is None or not user_id:
            return None

        try:
            row = await backend.select_one(Query(ROLE_TABLE, "role").eq("user_id", user_id))
        except BackendError as e:
            self._failed_request("Role lookup", e)
            return None

        self.error = None
        role = (row or {}).get("role")
        if role == "admin":
            self.role = "admin"
        elif role:
            self.role = "customer"
        logger.info("User %s role: %s", user_id, self.role)
        return self.role
