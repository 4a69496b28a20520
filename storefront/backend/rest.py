"""REST implementation of the backend gateway over httpx (PostgREST, auth, functions)."""
import dataclasses
import json
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

import httpx
from cryptography.fernet import InvalidToken

from ..config import BackendConfig
from ..session import AuthSession, SessionManager
from .base import Backend, BackendError, ChangeCallback, Query, Subscription
from .realtime import PollingChangeFeed

logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _encode_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def build_query_params(query: Query) -> list[tuple[str, str]]:
    """Translate a Query into PostgREST query-string parameters."""
    params = [("select", "".join(query.columns.split()))]
    for column, op, value in query.filters:
        if op == "eq" and value is None:
            params.append((column, "is.null"))
        elif op == "in":
            params.append((column, "in.(" + ",".join(_encode_value(v) for v in value) + ")"))
        else:
            params.append((column, f"{op}.{_encode_value(value)}"))
    if query.ordering:
        params.append((
            "order",
            ",".join(f"{column}.{'asc' if ascending else 'desc'}" for column, ascending in query.ordering),
        ))
    if query.row_limit is not None:
        params.append(("limit", str(query.row_limit)))
    return params


def _session_from(data: Any) -> AuthSession:
    try:
        return AuthSession.from_token_response(data)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise BackendError("Auth response did not contain a valid session") from e


def _error_message(response: httpx.Response) -> tuple[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}", None
    if isinstance(data, dict):
        message = (
            data.get("message")
            or data.get("msg")
            or data.get("error_description")
            or data.get("error")
            or f"HTTP {response.status_code}"
        )
        return str(message), data.get("details") or data.get("hint")
    return f"HTTP {response.status_code}", data


class RestBackend(Backend):
    """Talks to the hosted platform's REST, auth and functions endpoints."""

    def __init__(
        self,
        config: BackendConfig,
        sessions: SessionManager | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__()
        self._config = config
        self._sessions = sessions or SessionManager(session_path=config.session_path)
        self._session: AuthSession | None = None
        self.client = httpx.AsyncClient(
            base_url=config.url,
            timeout=config.timeout,
            transport=transport,
            headers={"apikey": config.anon_key},
        )

    # --- plumbing ---------------------------------------------------------

    def _stored_session(self) -> Optional[AuthSession]:
        if self._session is None and self._sessions.exists():
            try:
                self._session = self._sessions.load()
            except (InvalidToken, ValueError) as e:
                logger.warning("Discarding unreadable saved session: %s", e)
                self._sessions.clear()
        return self._session

    def _auth_headers(self) -> dict[str, str]:
        session = self._stored_session()
        token = session.access_token if session else self._config.anon_key
        return {"Authorization": f"Bearer {token}"}

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = {**self._auth_headers(), **kwargs.pop("headers", {})}
        if "json_body" in kwargs:
            kwargs["content"] = json.dumps(kwargs.pop("json_body"), default=_json_default)
            headers["Content-Type"] = "application/json"
        try:
            response = await self.client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise BackendError(str(e) or type(e).__name__) from e

        if response.status_code >= 400:
            message, details = _error_message(response)
            logger.warning("%s %s -> %s: %s", method, url, response.status_code, message)
            raise BackendError(message, status=response.status_code, details=details)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise BackendError("Backend returned invalid JSON", status=response.status_code) from e

    # --- data -------------------------------------------------------------

    async def select(self, query: Query) -> list[dict[str, Any]]:
        response = await self._request("GET", f"/rest/v1/{query.table}", params=build_query_params(query))
        return self._json(response) or []

    async def select_one(self, query: Query) -> Optional[dict[str, Any]]:
        rows = await self.select(dataclasses.replace(query, row_limit=2))
        if len(rows) > 1:
            raise BackendError(f"Expected at most one row from {query.table}, got several")
        return rows[0] if rows else None

    async def insert(self, table: str, values: dict[str, Any], returning: str = "*") -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"/rest/v1/{table}",
            params={"select": "".join(returning.split())},
            headers={"Prefer": "return=representation"},
            json_body=values,
        )
        rows = self._json(response) or []
        if not rows:
            raise BackendError(f"Insert into {table} returned no rows")
        return rows[0]

    async def update(self, table: str, values: dict[str, Any], match: dict[str, Any]) -> list[dict[str, Any]]:
        query = Query(table)
        for column, value in match.items():
            query.eq(column, value)
        response = await self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=build_query_params(query),
            headers={"Prefer": "return=representation"},
            json_body=values,
        )
        return self._json(response) or []

    async def upsert(self, table: str, values: dict[str, Any]) -> list[dict[str, Any]]:
        response = await self._request(
            "POST",
            f"/rest/v1/{table}",
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
            json_body=values,
        )
        return self._json(response) or []

    async def rpc(self, name: str, params: dict[str, Any]) -> Any:
        response = await self._request("POST", f"/rest/v1/rpc/{name}", json_body=params)
        return self._json(response)

    # --- functions & storage ----------------------------------------------

    async def invoke_function(self, name: str, body: dict[str, Any]) -> dict[str, Any]:
        response = await self._request("POST", f"/functions/v1/{name}", json_body=body)
        return self._json(response) or {}

    async def upload_to_signed_url(self, url: str, content: bytes, content_type: str) -> None:
        try:
            response = await self.client.put(url, content=content, headers={"Content-Type": content_type})
        except httpx.HTTPError as e:
            raise BackendError(f"File upload failed: {e}") from e
        if response.status_code >= 400:
            raise BackendError(
                "File upload failed. Check storage configuration.",
                status=response.status_code,
            )

    # --- realtime ---------------------------------------------------------

    def subscribe(self, table: str, callback: ChangeCallback) -> Subscription:
        feed = PollingChangeFeed(self, table, callback, interval=self._config.poll_interval)
        return feed.start()

    # --- auth -------------------------------------------------------------

    async def get_session(self) -> Optional[AuthSession]:
        session = self._stored_session()
        if session is None or not session.is_expired():
            return session
        if not session.refresh_token:
            self._forget_session()
            return None
        return await self._refresh(session)

    async def _refresh(self, session: AuthSession) -> AuthSession:
        try:
            response = await self._request(
                "POST",
                "/auth/v1/token",
                params={"grant_type": "refresh_token"},
                json_body={"refresh_token": session.refresh_token},
            )
            refreshed = _session_from(self._json(response) or {})
        except BackendError:
            self._forget_session()
            self._emit_auth_change("SIGNED_OUT", None)
            raise
        self._remember_session(refreshed)
        self._emit_auth_change("TOKEN_REFRESHED", refreshed)
        return refreshed

    async def sign_in_with_otp(self, email: str, redirect_to: str | None = None) -> None:
        redirect_to = redirect_to or self._config.redirect_url
        params = {"redirect_to": redirect_to} if redirect_to else None
        await self._request(
            "POST",
            "/auth/v1/otp",
            params=params,
            json_body={"email": email, "create_user": True},
        )
        logger.info("Sign-in code requested")

    async def verify_otp(self, email: str, token: str) -> AuthSession:
        response = await self._request(
            "POST",
            "/auth/v1/verify",
            json_body={"type": "email", "email": email, "token": token},
        )
        data = self._json(response) or {}
        if "access_token" not in data:
            raise BackendError("Verification did not return a session")
        session = _session_from(data)
        self._remember_session(session)
        self._emit_auth_change("SIGNED_IN", session)
        return session

    async def sign_out(self) -> None:
        if self._stored_session() is not None:
            await self._request("POST", "/auth/v1/logout")
        self._forget_session()
        self._emit_auth_change("SIGNED_OUT", None)

    def _remember_session(self, session: AuthSession) -> None:
        self._session = session
        self._sessions.save(session)

    def _forget_session(self) -> None:
        self._session = None
        self._sessions.clear()

    async def aclose(self) -> None:
        await self.client.aclose()
