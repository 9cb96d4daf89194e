"""Pytest configuration and fixtures."""

import os

# Settings must be in place before the app module is imported
os.environ.setdefault("AGORA_JSON_LOGS", "false")
os.environ.setdefault("SUPABASE_URL", "http://supabase.test")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-0123456789abcdef0123456789")

import uuid
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

import jwt
import pytest
from fastapi.testclient import TestClient

from agora_api.config.env import clear_env_cache
from agora_api.context import request_id_var, user_id_var
from agora_api.db.records import RECORD_TYPES, Record, Table
from agora_api.db.store import get_store
from agora_api.errors import UpstreamError
from agora_api.main import app

JWT_SECRET = os.environ["SUPABASE_JWT_SECRET"]
JWT_AUDIENCE = "authenticated"

ROLE_CATALOG = [
    {"id": 1, "name": "admin"},
    {"id": 2, "name": "mod"},
    {"id": 3, "name": "member"},
    {"id": 4, "name": "owner"},
]

_UUID_ID_TABLES = frozenset({
    Table.PROFILES,
    Table.SUBREDDITS,
    Table.POSTS,
    Table.COMMENTS,
})
_SCORED_TABLES = frozenset({Table.POSTS, Table.COMMENTS})
_TIMESTAMPED_TABLES = frozenset({
    Table.SUBREDDITS,
    Table.SUB_MEMBERS,
    Table.POSTS,
    Table.COMMENTS,
})
_UNIQUE_COLUMNS = {
    Table.PROFILES: ("username",),
    Table.SUBREDDITS: ("name",),
}


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


class FakeStore:
    """In-memory stand-in for ``DataStore``.

    Same public methods and return types; rows are validated through the
    table's record type on the way out. Server-side defaults (uuid ids,
    serial role ids, ``score``, ``created_at``) and unique columns mimic
    the Supabase schema. ``fail()`` injects ``UpstreamError`` (or any other
    exception) for a (table, operation) pair.
    """

    def __init__(self):
        self.tables: dict[Table, list[dict[str, Any]]] = {table: [] for table in Table}
        self.calls: list[tuple[str, str]] = []
        self._failures: dict[tuple[Table, str], Exception] = {}
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._next_serial = 100

    # -- failure injection ----------------------------------------------

    def fail(self, table: Table, operation: str, exc: Optional[Exception] = None) -> None:
        self._failures[(table, operation)] = exc or UpstreamError("injected failure")

    def heal(self) -> None:
        self._failures.clear()

    def _enter(self, table: Table, operation: str) -> None:
        self.calls.append((table.value, operation))
        exc = self._failures.get((table, operation))
        if exc is not None:
            raise exc

    # -- DataStore interface --------------------------------------------

    def select(
        self,
        table: Table,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        order: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Record]:
        self._enter(table, "select")
        rows = self._matching(table, filters)
        if order:
            present = [row for row in rows if row.get(order) is not None]
            missing = [row for row in rows if row.get(order) is None]
            present.sort(key=lambda row: row[order], reverse=descending)
            rows = present + missing
        if limit is not None:
            rows = rows[:limit]
        return self._records(table, rows)

    def select_one(self, table: Table, filters: Mapping[str, Any]) -> Optional[Record]:
        rows = self.select(table, filters, limit=1)
        return rows[0] if rows else None

    def insert(self, table: Table, row: Mapping[str, Any]) -> Record:
        self._enter(table, "insert")
        return self._records(table, [self._insert_row(table, row)])[0]

    def update(
        self, table: Table, filters: Mapping[str, Any], patch: Mapping[str, Any]
    ) -> Optional[Record]:
        self._enter(table, "update")
        patch = {key: _plain(value) for key, value in patch.items()}
        rows = self._matching(table, filters)
        for row in rows:
            self._check_unique(table, patch, exclude=row)
            row.update(patch)
        records = self._records(table, rows)
        return records[0] if records else None

    def delete(self, table: Table, filters: Mapping[str, Any]) -> None:
        if not filters:
            raise ValueError(f"Refusing unfiltered delete on {table.value}")
        self._enter(table, "delete")
        doomed = self._matching(table, filters)
        self.tables[table] = [row for row in self.tables[table] if row not in doomed]

    def upsert(
        self, table: Table, row: Mapping[str, Any], conflict_keys: Iterable[str]
    ) -> None:
        self._enter(table, "upsert")
        keys = tuple(conflict_keys)
        existing = self._matching(table, {key: row[key] for key in keys})
        if existing:
            existing[0].update({key: _plain(value) for key, value in row.items()})
        else:
            self._insert_row(table, row)

    # -- test helpers ---------------------------------------------------

    def rows(self, table: Table, **filters: Any) -> list[dict[str, Any]]:
        """Raw stored rows (copies), bypassing failure injection."""
        return [dict(row) for row in self._matching(table, filters)]

    def seed(self, table: Table, row: Mapping[str, Any]) -> dict[str, Any]:
        """Insert directly, bypassing failure injection and call tracking."""
        return dict(self._insert_row(table, row))

    # -- internals ------------------------------------------------------

    def _matching(self, table: Table, filters: Optional[Mapping[str, Any]]) -> list[dict[str, Any]]:
        wanted = {key: _plain(value) for key, value in (filters or {}).items()}
        return [
            row
            for row in self.tables[table]
            if all(row.get(key) == value for key, value in wanted.items())
        ]

    def _insert_row(self, table: Table, row: Mapping[str, Any]) -> dict[str, Any]:
        stored = {key: _plain(value) for key, value in row.items()}
        if table in _UUID_ID_TABLES:
            stored.setdefault("id", str(uuid.uuid4()))
        elif table == Table.ROLES:
            self._next_serial += 1
            stored.setdefault("id", self._next_serial)
        if table in _SCORED_TABLES:
            stored.setdefault("score", 0)
        if table in _TIMESTAMPED_TABLES:
            self._clock += timedelta(seconds=1)
            stored.setdefault("created_at", self._clock.isoformat())
        self._check_unique(table, stored)
        self.tables[table].append(stored)
        return stored

    def _check_unique(
        self, table: Table, row: Mapping[str, Any], exclude: Optional[dict[str, Any]] = None
    ) -> None:
        for column in _UNIQUE_COLUMNS.get(table, ()):
            value = row.get(column)
            if value is None:
                continue
            for other in self.tables[table]:
                if other is not exclude and other.get(column) == value:
                    raise UpstreamError(
                        f'duplicate key value violates unique constraint "{table.value}_{column}_key"',
                        details=f"Key ({column})=({value}) already exists.",
                    )

    @staticmethod
    def _records(table: Table, rows: list[dict[str, Any]]) -> list[Record]:
        record_type = RECORD_TYPES[table]
        return [record_type.model_validate(row) for row in rows]


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _reset_env_cache():
    """Re-read the environment around every test."""
    clear_env_cache()
    yield
    clear_env_cache()
    request_id_var.set("")
    user_id_var.set("")


@pytest.fixture
def store() -> FakeStore:
    """Fresh in-memory store with the role catalog seeded."""
    fake = FakeStore()
    for role in ROLE_CATALOG:
        fake.seed(Table.ROLES, role)
    return fake


@pytest.fixture
def client(store):
    """Test client for the FastAPI app, wired to the in-memory store."""
    app.dependency_overrides[get_store] = lambda: store
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()


def mint_token(
    subject: Optional[str],
    *,
    email: Optional[str] = None,
    secret: str = JWT_SECRET,
    audience: Optional[str] = JWT_AUDIENCE,
    expires_in: int = 3600,
    **claims: Any,
) -> str:
    """Mint an HS256 access token shaped like a Supabase one."""
    payload: dict[str, Any] = {
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        "role": "authenticated",
        **claims,
    }
    if subject is not None:
        payload["sub"] = subject
    if email is not None:
        payload["email"] = email
    if audience is not None:
        payload["aud"] = audience
    return jwt.encode(payload, secret, algorithm="HS256")


def bearer(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {mint_token(user_id, email=f'{user_id[:8]}@example.com')}"}


@pytest.fixture
def make_user(store):
    """Create a profile and optional platform role assignments; returns the id."""

    def _make(username: str, roles: Iterable[str] = ()) -> str:
        profile = store.seed(Table.PROFILES, {"username": username})
        for name in roles:
            role_id = next(role["id"] for role in ROLE_CATALOG if role["name"] == name)
            store.seed(Table.USER_ROLES, {"user_id": profile["id"], "role_id": role_id})
        return profile["id"]

    return _make


@pytest.fixture
def alice(make_user) -> str:
    return make_user("alice")


@pytest.fixture
def bob(make_user) -> str:
    return make_user("bob")


@pytest.fixture
def admin_id(make_user) -> str:
    return make_user("root", roles=["admin"])


@pytest.fixture
def make_subreddit(store):
    """Seed a subreddit owned by ``owner_id``; returns the subreddit id."""

    def _make(name: str, owner_id: str) -> str:
        subreddit = store.seed(Table.SUBREDDITS, {"name": name, "is_private": False})
        store.seed(
            Table.SUB_MEMBERS,
            {"user_id": owner_id, "subreddit_id": subreddit["id"], "role": "owner"},
        )
        return subreddit["id"]

    return _make


@pytest.fixture
def make_post(store):
    def _make(subreddit_id: str, author_id: str, title: str = "Hello world") -> str:
        post = store.seed(
            Table.POSTS,
            {
                "subreddit_id": subreddit_id,
                "author_id": author_id,
                "title": title,
                "content": "body",
                "type": "text",
            },
        )
        return post["id"]

    return _make


@pytest.fixture
def token_factory():
    """``mint_token`` as a fixture."""
    return mint_token


@pytest.fixture
def auth_headers():
    """Build ``Authorization`` headers for a user id."""
    return bearer
