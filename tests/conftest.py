"""Shared test fixtures."""
import asyncio
from datetime import date, datetime
from typing import Any

import pytest

from storefront.backend import Backend, BackendError, ChangeEvent, Subscription
from storefront.models import Product
from storefront.session import AuthSession, AuthUser


def _comparable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _row_matches(row: dict, filters: list) -> bool:
    for column, op, value in filters:
        current = row.get(column)
        if op == "eq" and current != value:
            return False
        if op == "neq" and current == value:
            return False
        if op == "in" and current not in value:
            return False
        if op == "gte" and (current is None or _comparable(current) < _comparable(value)):
            return False
        if op == "lte" and (current is None or _comparable(current) > _comparable(value)):
            return False
    return True


def build_session(user_id: str = "user_1", email: str = "jane.doe@example.com", full_name: str = "Jane Doe") -> AuthSession:
    return AuthSession(
        access_token=f"access-{user_id}",
        refresh_token=f"refresh-{user_id}",
        user=AuthUser(id=user_id, email=email, user_metadata={"full_name": full_name}),
    )


class FakeBackend(Backend):
    """
    In-memory backend. Tables are lists of row dicts; every call is recorded
    in `calls`. Set `errors[op]` to make an operation raise, and `gate` to an
    unset asyncio.Event to hold reads in flight.
    """

    def __init__(self, tables: dict[str, list[dict]] | None = None, session: AuthSession | None = None):
        super().__init__()
        self.tables = {name: [dict(row) for row in rows] for name, rows in (tables or {}).items()}
        self.session = session
        self.calls: list[tuple] = []
        self.errors: dict[str, BackendError] = {}
        self.insert_results: dict[str, dict] = {}
        self.rpc_results: dict[str, Any] = {}
        self.function_results: dict[str, dict] = {}
        self.uploads: list[tuple[str, bytes, str]] = []
        self.listeners: dict[str, list] = {}
        self.gate: asyncio.Event | None = None
        self.closed = False

    def _record(self, op: str, *args: Any) -> None:
        self.calls.append((op, *args))
        error = self.errors.get(op)
        if error is not None:
            raise error

    def calls_for(self, op: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == op]

    def _rows(self, query) -> list[dict]:
        rows = [dict(row) for row in self.tables.get(query.table, []) if _row_matches(row, query.filters)]
        for column, ascending in reversed(query.ordering):
            rows.sort(key=lambda r: (r.get(column) is None, _comparable(r.get(column))), reverse=not ascending)
        if query.row_limit is not None:
            rows = rows[:query.row_limit]
        return rows

    async def select(self, query):
        self._record("select", query)
        rows = self._rows(query)
        if self.gate is not None:
            await self.gate.wait()
        return rows

    async def select_one(self, query):
        self._record("select_one", query)
        rows = self._rows(query)
        if len(rows) > 1:
            raise BackendError(f"Expected at most one row from {query.table}, got several")
        return rows[0] if rows else None

    async def insert(self, table, values, returning="*"):
        self._record("insert", table, values)
        if self.gate is not None:
            await self.gate.wait()
        if table in self.insert_results:
            row = dict(self.insert_results[table])
        else:
            row = {"id": f"{table}_{len(self.tables.get(table, [])) + 1}", **values}
        self.tables.setdefault(table, []).append(row)
        return dict(row)

    async def update(self, table, values, match):
        self._record("update", table, values, match)
        updated = []
        for row in self.tables.get(table, []):
            if all(row.get(k) == v for k, v in match.items()):
                row.update(values)
                updated.append(dict(row))
        return updated

    async def upsert(self, table, values):
        self._record("upsert", table, values)
        rows = self.tables.setdefault(table, [])
        key = "key" if "key" in values else "id"
        for row in rows:
            if row.get(key) == values.get(key):
                row.update(values)
                return [dict(row)]
        rows.append(dict(values))
        return [dict(values)]

    async def rpc(self, name, params):
        self._record("rpc", name, params)
        return self.rpc_results.get(name)

    async def invoke_function(self, name, body):
        self._record("invoke_function", name, body)
        return self.function_results.get(name, {})

    async def upload_to_signed_url(self, url, content, content_type):
        self._record("upload_to_signed_url", url)
        self.uploads.append((url, content, content_type))

    def subscribe(self, table, callback):
        self.calls.append(("subscribe", table))
        self.listeners.setdefault(table, []).append(callback)

        def _remove():
            self.listeners[table].remove(callback)

        return Subscription(_remove)

    def push(self, table: str, event: str, new: dict) -> None:
        """Deliver a realtime change to current subscribers."""
        for callback in list(self.listeners.get(table, [])):
            callback(ChangeEvent(table, event, new=new))

    async def get_session(self):
        self._record("get_session")
        return self.session

    async def sign_in_with_otp(self, email, redirect_to=None):
        self._record("sign_in_with_otp", email, redirect_to)

    async def verify_otp(self, email, token):
        self._record("verify_otp", email, token)
        session = build_session(user_id=f"user_{email.split('@')[0]}", email=email)
        self.session = session
        self._emit_auth_change("SIGNED_IN", session)
        return session

    async def sign_out(self):
        self._record("sign_out")
        self.session = None
        self._emit_auth_change("SIGNED_OUT", None)

    async def aclose(self):
        self.closed = True


@pytest.fixture
def product_rows():
    return [
        {
            "id": "p1",
            "name": "Linen Shirt",
            "slug": "linen-shirt",
            "description": "Breathable summer shirt",
            "price": "49.00",
            "category": "Apparel",
            "tags": ["featured", "summer"],
            "rating": 4.5,
            "created_at": "2026-09-01T10:00:00+00:00",
            "image_url": "https://cdn.example.com/shirt.jpg",
            "variants": [
                {"id": "v1", "name": "Small", "price": None, "stock": 4},
                {"id": "v2", "name": "Large", "price": "55.00", "stock": 2},
            ],
        },
        {
            "id": "p2",
            "name": "Canvas Tote",
            "slug": "canvas-tote",
            "description": "Sturdy bag for groceries",
            "price": "25.00",
            "category": "Accessories",
            "tags": ["eco"],
            "rating": 4.8,
            "created_at": "2026-10-01T10:00:00+00:00",
        },
        {
            "id": "p3",
            "name": "Wool Coat",
            "slug": "wool-coat",
            "price": "180.00",
            "category": "Apparel",
            "featured": True,
            "rating": 4.2,
            "created_at": "2026-08-01T10:00:00+00:00",
        },
        {
            "id": "p4",
            "name": "Ceramic Mug",
            "slug": "ceramic-mug",
            "price": "12.50",
            "category": "Home",
        },
    ]


@pytest.fixture
def products(product_rows):
    return [Product.from_row(row) for row in product_rows]


@pytest.fixture
def backend(product_rows):
    return FakeBackend(tables={"products": product_rows})


@pytest.fixture
def make_session():
    return build_session


@pytest.fixture
def fake_backend_cls():
    return FakeBackend
