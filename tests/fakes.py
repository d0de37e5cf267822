"""In-memory stand-ins for the async Supabase client and for time."""

from __future__ import annotations

import asyncio
import itertools
from types import SimpleNamespace
from typing import Any, Callable, Optional

BACKEND_URL: str = "https://project.supabase.test"


class FakeAPIError(Exception):
    """Shape of a PostgREST / GoTrue error: message, code, details, hint."""

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = None
        self.hint = None


class FakeClock:
    """Manually advanced wall clock with a matching async ``sleep``."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


def make_session(user_id: str, email: str, **metadata: Any) -> SimpleNamespace:
    user = SimpleNamespace(id=user_id, email=email, user_metadata=dict(metadata))
    return SimpleNamespace(user=user, access_token=f"token-{user_id}")


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class FakeSubscription:
    def __init__(self, owner: "FakeAuth", callback: Callable[[str, Any], None]) -> None:
        self._owner = owner
        self._callback = callback

    def unsubscribe(self) -> None:
        if self._callback in self._owner.listeners:
            self._owner.listeners.remove(self._callback)


class FakeAuth:
    """GoTrue-like auth namespace.

    ``offline`` makes every network call fail like a dropped connection.
    ``calls`` records each network call by name.
    """

    def __init__(self) -> None:
        self.session: Optional[SimpleNamespace] = None
        self.accounts: dict[str, dict[str, Any]] = {}
        self.listeners: list[Callable[[str, Any], None]] = []
        self.calls: list[str] = []
        self.offline: bool = False
        self.session_delay_s: float = 0.0
        self.issue_session_on_sign_in: bool = True
        self.sign_out_error: Optional[Exception] = None
        self._ids = itertools.count(1)

    def _network(self, name: str) -> None:
        self.calls.append(name)
        if self.offline:
            raise ConnectionError("Failed to fetch")

    def register(self, email: str, password: str, **metadata: Any) -> str:
        user_id = f"user-{next(self._ids)}"
        self.accounts[email] = {"id": user_id, "password": password, "metadata": metadata}
        return user_id

    def emit(self, event: str, session: Any) -> None:
        for callback in list(self.listeners):
            callback(event, session)

    async def get_session(self) -> Optional[SimpleNamespace]:
        self._network("get_session")
        if self.session_delay_s:
            await asyncio.sleep(self.session_delay_s)
        return self.session

    async def get_user(self) -> SimpleNamespace:
        self._network("get_user")
        return SimpleNamespace(user=self.session.user if self.session else None)

    async def sign_in_with_password(self, credentials: dict[str, str]) -> SimpleNamespace:
        self._network("sign_in_with_password")
        account = self.accounts.get(credentials["email"])
        if account is None or account["password"] != credentials["password"]:
            raise FakeAPIError("Invalid login credentials", code="invalid_credentials")
        session = make_session(account["id"], credentials["email"], **account["metadata"])
        if self.issue_session_on_sign_in:
            self.session = session
            return SimpleNamespace(user=session.user, session=session)
        return SimpleNamespace(user=session.user, session=None)

    async def sign_up(self, credentials: dict[str, Any]) -> SimpleNamespace:
        self._network("sign_up")
        email = credentials["email"]
        if email in self.accounts:
            raise FakeAPIError("User already registered", code="user_already_exists")
        metadata = credentials.get("options", {}).get("data", {})
        user_id = self.register(email, credentials["password"], **metadata)
        user = SimpleNamespace(id=user_id, email=email, user_metadata=metadata)
        return SimpleNamespace(user=user, session=None)

    async def sign_in_with_oauth(self, credentials: dict[str, Any]) -> SimpleNamespace:
        self._network("sign_in_with_oauth")
        return SimpleNamespace(
            provider=credentials["provider"],
            url=f"https://auth.example.test/authorize?provider={credentials['provider']}",
        )

    async def reset_password_for_email(self, email: str, options: dict[str, Any]) -> None:
        self._network("reset_password_for_email")

    async def sign_out(self, options: Optional[dict[str, Any]] = None) -> None:
        self._network("sign_out")
        if self.sign_out_error is not None:
            raise self.sign_out_error
        self.session = None

    def on_auth_state_change(self, callback: Callable[[str, Any], None]) -> FakeSubscription:
        self.listeners.append(callback)
        return FakeSubscription(self, callback)


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

class FakeQuery:
    """Chainable PostgREST query over ``FakeSupabase.tables``."""

    def __init__(self, client: "FakeSupabase", table: str) -> None:
        self._client = client
        self._table = table
        self._action = "select"
        self._payload: Any = None
        self._filters: list[tuple[str, Any]] = []
        self._single = False
        self._order: Optional[tuple[str, bool]] = None
        self._limit: Optional[int] = None

    def select(self, columns: str = "*") -> "FakeQuery":
        self._action = "select"
        return self

    def insert(self, rows: list[dict[str, Any]]) -> "FakeQuery":
        self._action, self._payload = "insert", rows
        return self

    def upsert(self, row: dict[str, Any], on_conflict: str = "id") -> "FakeQuery":
        self._action, self._payload = "upsert", row
        return self

    def update(self, values: dict[str, Any]) -> "FakeQuery":
        self._action, self._payload = "update", values
        return self

    def delete(self) -> "FakeQuery":
        self._action = "delete"
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append((column, value))
        return self

    def single(self) -> "FakeQuery":
        self._single = True
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self._order = (column, desc)
        return self

    def limit(self, count: int) -> "FakeQuery":
        self._limit = count
        return self

    def _matches(self, row: dict[str, Any]) -> bool:
        return all(row.get(column) == value for column, value in self._filters)

    async def execute(self) -> SimpleNamespace:
        client = self._client
        client.queries.append((self._table, self._action))
        if client.auth.offline:
            raise ConnectionError("Failed to fetch")
        if client.query_delay_s:
            await asyncio.sleep(client.query_delay_s)
        if self._table in client.missing_tables:
            raise FakeAPIError(f'relation "public.{self._table}" does not exist', code="42P01")
        if self._action in client.failing_actions:
            raise FakeAPIError("new row violates row-level security policy", code="42501")

        rows = client.tables.setdefault(self._table, [])

        if self._action == "select":
            found = [dict(row) for row in rows if self._matches(row)]
            if self._order is not None:
                column, desc = self._order
                found.sort(key=lambda row: row.get(column) or "", reverse=desc)
            if self._limit is not None:
                found = found[: self._limit]
            if self._single:
                if len(found) != 1:
                    raise FakeAPIError(
                        "JSON object requested, multiple (or no) rows returned",
                        code="PGRST116",
                    )
                return SimpleNamespace(data=found[0])
            return SimpleNamespace(data=found)

        if self._action == "upsert":
            row = dict(self._payload)
            rows[:] = [existing for existing in rows if existing.get("id") != row["id"]]
            rows.append(row)
            return SimpleNamespace(data=[row])

        if self._action == "insert":
            inserted = []
            for row in self._payload:
                row = {"id": f"{self._table}-{len(rows) + 1}", **row}
                rows.append(row)
                inserted.append(row)
            return SimpleNamespace(data=inserted)

        if self._action == "update":
            for row in rows:
                if self._matches(row):
                    row.update(self._payload)
            return SimpleNamespace(data=[row for row in rows if self._matches(row)])

        rows[:] = [row for row in rows if not self._matches(row)]
        return SimpleNamespace(data=[])


# ---------------------------------------------------------------------------
# Realtime
# ---------------------------------------------------------------------------

class FakeChannel:
    def __init__(self, name: str) -> None:
        self.name = name
        self.callback: Optional[Callable[[dict[str, Any]], None]] = None
        self.filter: Optional[str] = None
        self.subscribed = False

    def on_postgres_changes(
        self,
        event: str,
        callback: Callable[[dict[str, Any]], None],
        table: str = "*",
        schema: str = "public",
        filter: Optional[str] = None,
    ) -> "FakeChannel":
        self.callback = callback
        self.filter = filter
        return self

    async def subscribe(self) -> "FakeChannel":
        self.subscribed = True
        return self

    def push(self, payload: dict[str, Any]) -> None:
        assert self.callback is not None
        self.callback(payload)


class FakeSupabase:
    """Just enough of ``supabase.AsyncClient`` for the auth flows."""

    def __init__(self) -> None:
        self.auth = FakeAuth()
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.queries: list[tuple[str, str]] = []
        self.missing_tables: set[str] = set()
        self.failing_actions: set[str] = set()
        self.query_delay_s: float = 0.0
        self.channels: list[FakeChannel] = []
        self.removed_channels: list[FakeChannel] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def channel(self, name: str) -> FakeChannel:
        channel = FakeChannel(name)
        self.channels.append(channel)
        return channel

    async def remove_channel(self, channel: FakeChannel) -> None:
        self.removed_channels.append(channel)

    def count(self, table: str, action: str) -> int:
        return sum(1 for entry in self.queries if entry == (table, action))
