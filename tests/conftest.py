from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from database.connection import Connection
from database.registry import ConnectionRegistry
from database.statement import Statement


class RecordingStatement(Statement):
    def __init__(self, connection, query_text):
        super().__init__(connection, query_text)
        self._rows: List[Tuple[Any, ...]] = []
        self._position = 0
        self._insert_id: Optional[int] = None
        self.finished = False

    def execute(self, args: Sequence[Any]) -> bool:
        connection = self.connection
        self.sql = connection.interpolate(self.query_text, args)
        connection.executed.append(self.sql)
        for marker, errstr, errno in connection.failures:
            if marker in self.sql:
                connection.last_error = (errstr, errno)
                connection.record_error("SQL Error")
                return False
        columns, rows = connection.results.get(self.sql, ([], []))
        self.columns = list(columns)
        self._rows = [tuple(row) for row in rows]
        self._insert_id = connection.next_insert_id
        self.engine_time = connection.engine_cost
        self.handle = object()
        return True

    def fetch_row(self):
        if self._position >= len(self._rows):
            return None
        row = self._rows[self._position]
        self._position += 1
        return row

    def num_rows(self) -> int:
        return len(self._rows)

    def insert_id(self):
        return self._insert_id

    def affected_rows(self) -> int:
        return len(self._rows) or 1

    def finish(self) -> None:
        self.finished = True
        self.connection.finished.append(self.sql)


class RecordingConnection(Connection):
    """In-memory adapter that records every statement it is asked to run."""

    adapter_name = "recording"

    def connect(self, password):
        self.executed: List[str] = []
        self.finished: List[str] = []
        self.results: Dict[str, Tuple[List[str], List[Tuple[Any, ...]]]] = {}
        self.failures: List[Tuple[str, str, int]] = []
        self.unpreparable: List[str] = []
        self.last_error: Tuple[str, int] = ("", 0)
        self.next_insert_id: Optional[int] = 42
        self.engine_cost = 0.0
        self.disconnects = 0
        if self.options.get("fail_connect"):
            self.last_error = ("Access denied", 1045)
            self.record_error("Can't connect to database")
            return None
        return {"database": self.database, "password": password}

    def disconnect(self) -> None:
        self.disconnects += 1

    def escape_string(self, value: str) -> str:
        return value.replace("\\", "\\\\").replace("'", "\\'")

    def errstr(self) -> str:
        return self.last_error[0]

    def errno(self) -> int:
        return self.last_error[1]

    def prepare(self, sql: str):
        if sql in self.unpreparable:
            self.last_error = ("Cannot prepare", 2030)
            self.record_error("Prepare failed")
            return None
        return RecordingStatement(self, sql)

    def script(self, sql: str, columns: List[str], rows: List[Tuple[Any, ...]]) -> None:
        self.results[sql] = (columns, rows)

    def fail_on(self, marker: str, errstr: str = "You have an error in your SQL syntax", errno: int = 1064) -> None:
        self.failures.append((marker, errstr, errno))


@pytest.fixture
def db():
    return RecordingConnection("testdb", "tester", "secret")


@pytest.fixture
def relaxed_db():
    return RecordingConnection("testdb", "tester", "secret", options={"fatal_errors": False})


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def recording_adapter(monkeypatch):
    from adapters.factory import ADAPTERS

    monkeypatch.setitem(ADAPTERS, "recording", RecordingConnection)
    return RecordingConnection


class FakeDriverError(Exception):
    pass


class FakeCursor:
    def __init__(self, handle):
        self.handle = handle
        self.description = None
        self.rowcount = -1
        self.lastrowid = None
        self._rows: List[Tuple[Any, ...]] = []

    def execute(self, sql: str) -> None:
        self.handle.log.append(sql)
        if sql in self.handle.failing:
            raise self.handle.failing[sql]
        columns, rows = self.handle.results.get(sql, ([], []))
        self.description = [(column,) for column in columns] or None
        self._rows = list(rows)
        self.rowcount = len(self._rows) if columns else 1
        self.lastrowid = self.handle.next_lastrowid

    def fetchall(self):
        return list(self._rows)

    def fetchone(self):
        return self._rows[0] if self._rows else None

    def close(self) -> None:
        self.handle.closed_cursors += 1

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
        return False


class FakeHandle:
    """Stands in for a DB-API connection object of a networked driver."""

    def __init__(self, **params):
        self.params = params
        self.log: List[str] = []
        self.results: Dict[str, Tuple[List[str], List[Tuple[Any, ...]]]] = {}
        self.failing: Dict[str, Exception] = {}
        self.next_lastrowid: Optional[int] = None
        self.closed_cursors = 0
        self.closed = False
        self.info = SimpleNamespace(transaction_status=0, encoding="utf-8")

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def escape_string(self, value: str) -> str:
        return value.replace("\\", "\\\\").replace("'", "\\'")

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_driver():
    return SimpleNamespace(
        Error=FakeDriverError,
        connect=FakeHandle,
        pq=SimpleNamespace(TransactionStatus=SimpleNamespace(IDLE=0, INTRANS=2)),
    )
