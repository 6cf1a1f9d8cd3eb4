"""Shared fixtures.

``FakeCassandraSession`` understands the handful of CQL shapes the services
prepare (keyed SELECT, INSERT, UPDATE, DELETE including clustering ranges,
lightweight transactions, set/list appends, logged batches) and keeps rows
in memory. Every ``aexecute`` yields to the event loop first, so concurrent
calls interleave the way they would against a real cluster while each
statement (or batch) stays atomic.
"""

import asyncio
import operator
import os
import re
import tempfile
from collections.abc import Iterator
from types import SimpleNamespace
from typing import Any


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="learninghub-logs-"))
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("AUTH_SECRET_KEY", "test-secret-key-with-enough-entropy-0123456789")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("EMAIL_ENABLED", "false")
os.environ.setdefault("FIREBASE_ENABLED", "false")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from learninghub.core.database.async_cassandra import SCHEMA  # noqa: E402


KEYSPACE = "learninghub_test"

OPERATORS = {
    "=": operator.eq,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}


# ==============================================================================
# In-memory Cassandra
# ==============================================================================


class FakeResult:
    def __init__(self, rows: list[dict[str, Any]], was_applied: bool = True):
        self._rows = [SimpleNamespace(**row) for row in rows]
        self.was_applied = was_applied

    def one(self) -> SimpleNamespace | None:
        return self._rows[0] if self._rows else None

    def __iter__(self) -> Iterator[SimpleNamespace]:
        return iter(self._rows)


class FakeTable:
    def __init__(self, cql: str):
        text = " ".join(cql.split()).split(" WITH ")[0]
        self.name = re.search(r"TABLE IF NOT EXISTS \S+?\.(\w+)", text).group(1)
        body = text[text.index("(") + 1 : text.rindex(")")]

        self.columns: list[str] = []
        self.collections: dict[str, str] = {}
        self.partition_key: list[str] = []
        self.clustering: list[str] = []

        pk = re.search(r"PRIMARY KEY \((.*)\)", body)
        if pk:
            key_def = pk.group(1)
            if key_def.startswith("("):
                inner, _, rest = key_def[1:].partition(")")
                self.partition_key = [c.strip() for c in inner.split(",")]
                self.clustering = [c.strip() for c in rest.split(",") if c.strip()]
            else:
                parts = [c.strip() for c in key_def.split(",")]
                self.partition_key, self.clustering = parts[:1], parts[1:]
            body = body[: pk.start()]

        for definition in re.split(r",(?![^<]*>)", body):
            definition = definition.strip()
            if not definition:
                continue
            name, col_type = definition.split(" ", 1)
            self.columns.append(name)
            if col_type.startswith(("SET<", "LIST<")):
                self.collections[name] = col_type[:3]
            if col_type.endswith("PRIMARY KEY"):
                self.partition_key = [name]

        self.rows: dict[tuple, dict[str, Any]] = {}

    @property
    def key_columns(self) -> list[str]:
        return self.partition_key + self.clustering

    def key_of(self, values: dict[str, Any]) -> tuple:
        return tuple(values[c] for c in self.key_columns)

    def matching(self, conditions: list[tuple[str, str, Any]]) -> list[dict[str, Any]]:
        rows = [
            row
            for row in self.rows.values()
            if all(OPERATORS[op](row.get(col), value) for col, op, value in conditions)
        ]
        if conditions and self.clustering:
            rows.sort(key=lambda r: tuple(r[c] for c in self.clustering))
        return rows

    def empty_row(self, key: dict[str, Any]) -> dict[str, Any]:
        row = dict.fromkeys(self.columns)
        row.update(key)
        return row


def _split_assignments(text: str) -> list[str]:
    return [part.strip() for part in text.split(",")]


def _conditions(text: str) -> list[tuple[str, str]]:
    """``col = ? AND pos >= ?`` -> [("col", "="), ("pos", ">=")]"""
    return [tuple(part.split()[:2]) for part in text.split(" AND ")]


class FakePrepared:
    """A parsed statement: target table, columns, WHERE and IF clauses."""

    def __init__(self, query: str):
        self.query = " ".join(query.split())
        q = self.query
        self.ttl_first = False
        self.lwt: str | None = None
        self.lwt_columns: list[str] = []
        self.assignments: list[tuple[str, bool]] = []
        self.where: list[tuple[str, str]] = []
        self.columns: list[str] = []

        if q.startswith("SELECT"):
            self.kind = "select"
            match = re.match(r"SELECT .+? FROM \S+?\.(\w+)(?: WHERE (.+))?$", q)
            self.table = match.group(1)
            if match.group(2):
                self.where = _conditions(match.group(2))
        elif q.startswith("INSERT"):
            self.kind = "insert"
            match = re.match(
                r"INSERT INTO \S+?\.(\w+) \((.+?)\) VALUES \(.+?\)"
                r"( IF NOT EXISTS)?( USING TTL \?)?$",
                q,
            )
            self.table = match.group(1)
            self.columns = [c.strip() for c in match.group(2).split(",")]
            self.lwt = "not_exists" if match.group(3) else None
            self.ttl_last = bool(match.group(4))
        elif q.startswith("UPDATE"):
            self.kind = "update"
            match = re.match(
                r"UPDATE \S+?\.(\w+)( USING TTL \?)? SET (.+?) WHERE (.+?)"
                r"(?: IF (EXISTS|\w+ = \?(?: AND \w+ = \?)*))?$",
                q,
            )
            self.table = match.group(1)
            self.ttl_first = bool(match.group(2))
            for assignment in _split_assignments(match.group(3)):
                column, expr = (s.strip() for s in assignment.split("=", 1))
                self.assignments.append((column, expr.startswith(f"{column} +")))
            self.where = _conditions(match.group(4))
            self._parse_lwt(match.group(5))
        elif q.startswith("DELETE"):
            self.kind = "delete"
            match = re.match(
                r"DELETE FROM \S+?\.(\w+) WHERE (.+?)"
                r"(?: IF (EXISTS|\w+ = \?(?: AND \w+ = \?)*))?$",
                q,
            )
            self.table = match.group(1)
            self.where = _conditions(match.group(2))
            self._parse_lwt(match.group(3))
        else:
            msg = f"Unsupported statement: {q}"
            raise ValueError(msg)

    def _parse_lwt(self, clause: str | None) -> None:
        if clause is None:
            return
        if clause == "EXISTS":
            self.lwt = "exists"
        else:
            self.lwt = "equals"
            self.lwt_columns = [c[0] for c in _conditions(clause)]


class FakeBatch:
    """Stand-in for ``cassandra.query.BatchStatement``."""

    def __init__(self, batch_type: Any = None):
        self.batch_type = batch_type
        self.entries: list[tuple[FakePrepared, list]] = []

    def add(self, statement: FakePrepared, parameters: list | None = None) -> None:
        self.entries.append((statement, list(parameters or [])))


class WriteFailure(Exception):
    """Raised by ``FakeCassandraSession`` for an injected write failure."""


class FakeCassandraSession:
    """In-memory stand-in for a cassandra-asyncio-driver session."""

    def __init__(self, keyspace: str = KEYSPACE):
        self.keyspace = keyspace
        self.tables: dict[str, FakeTable] = {}
        for _, statements in SCHEMA:
            for cql in statements:
                table = FakeTable(cql.format(keyspace=keyspace))
                self.tables[table.name] = table
        self.executed: list[str] = []
        self._failures: dict[str, int] = {}

    def fail_on_write(self, table: str, nth: int) -> None:
        """Make the ``nth`` next write to ``table`` raise ``WriteFailure``."""
        self._failures[table] = nth

    def prepare(self, query: str) -> FakePrepared:
        return FakePrepared(query)

    async def aexecute(self, statement: Any, params: list | None = None) -> FakeResult:
        await asyncio.sleep(0)
        if isinstance(statement, FakeBatch):
            return self._batch(statement)
        if isinstance(statement, str):
            statement = FakePrepared(statement)
        return self._run(statement, list(params or []))

    def _run(self, statement: FakePrepared, params: list) -> FakeResult:
        self.executed.append(statement.query)
        table = self.tables[statement.table]
        if statement.kind != "select" and statement.table in self._failures:
            self._failures[statement.table] -= 1
            if self._failures[statement.table] <= 0:
                del self._failures[statement.table]
                msg = f"write to {statement.table} failed"
                raise WriteFailure(msg)
        handler = getattr(self, f"_{statement.kind}")
        return handler(table, statement, params)

    def _batch(self, batch: FakeBatch) -> FakeResult:
        """Apply every statement, or none of them if one fails."""
        snapshot = {
            name: {key: dict(row) for key, row in table.rows.items()}
            for name, table in self.tables.items()
        }
        try:
            for statement, params in batch.entries:
                self._run(statement, params)
        except Exception:
            for name, rows in snapshot.items():
                self.tables[name].rows = rows
            raise
        return FakeResult([])

    @staticmethod
    def _bind_where(stmt: FakePrepared, params: list) -> list[tuple[str, str, Any]]:
        return [
            (col, op, value)
            for (col, op), value in zip(stmt.where, params[: len(stmt.where)], strict=True)
        ]

    @staticmethod
    def _lwt_holds(stmt: FakePrepared, row: dict[str, Any], values: list) -> bool:
        return all(
            row.get(col) == value
            for col, value in zip(stmt.lwt_columns, values, strict=True)
        )

    def _select(self, table: FakeTable, stmt: FakePrepared, params: list) -> FakeResult:
        return FakeResult([dict(row) for row in table.matching(self._bind_where(stmt, params))])

    def _insert(self, table: FakeTable, stmt: FakePrepared, params: list) -> FakeResult:
        values = dict(zip(stmt.columns, params[: len(stmt.columns)], strict=True))
        key = table.key_of(values)
        existing = table.rows.get(key)
        if stmt.lwt == "not_exists" and existing is not None:
            return FakeResult([dict(existing)], was_applied=False)
        row = existing or table.empty_row({})
        row.update(values)
        table.rows[key] = row
        return FakeResult([])

    def _update(self, table: FakeTable, stmt: FakePrepared, params: list) -> FakeResult:
        if stmt.ttl_first:
            params = params[1:]
        n_set = len(stmt.assignments)
        set_values = params[:n_set]
        where = {
            col: value for col, _, value in self._bind_where(stmt, params[n_set:])
        }
        lwt_params = params[n_set + len(stmt.where) :]

        key = table.key_of(where)
        existing = table.rows.get(key)
        if stmt.lwt == "exists" and existing is None:
            return FakeResult([], was_applied=False)
        if stmt.lwt == "equals" and (
            existing is None or not self._lwt_holds(stmt, existing, lwt_params)
        ):
            return FakeResult([dict(existing)] if existing else [], was_applied=False)

        row = existing or table.empty_row(where)
        for (column, append), value in zip(stmt.assignments, set_values, strict=True):
            if append:
                current = row.get(column)
                if table.collections.get(column) == "SET":
                    row[column] = set(current or ()) | set(value)
                else:
                    row[column] = list(current or ()) + list(value)
            else:
                row[column] = value
        table.rows[key] = row
        return FakeResult([])

    def _delete(self, table: FakeTable, stmt: FakePrepared, params: list) -> FakeResult:
        lwt_params = params[len(stmt.where) :]
        targets = table.matching(self._bind_where(stmt, params))

        if stmt.lwt is not None:
            if not targets:
                return FakeResult([], was_applied=False)
            if stmt.lwt == "equals" and not self._lwt_holds(stmt, targets[0], lwt_params):
                return FakeResult([dict(targets[0])], was_applied=False)

        for row in targets:
            del table.rows[table.key_of(row)]
        return FakeResult([])


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def cassandra_session() -> FakeCassandraSession:
    return FakeCassandraSession()


@pytest.fixture
def keyspace() -> str:
    return KEYSPACE


@pytest.fixture
def client() -> Iterator[TestClient]:
    """Client without lifespan: no database, Redis or email is started."""
    from learninghub.main import app

    saved = dict(app.state._state)
    yield TestClient(app)
    app.state._state.clear()
    app.state._state.update(saved)


@pytest.fixture(autouse=True)
def fake_batches(monkeypatch: pytest.MonkeyPatch) -> None:
    """Route services' logged batches to ``FakeBatch``."""
    monkeypatch.setattr("learninghub.courses.service.BatchStatement", FakeBatch)
