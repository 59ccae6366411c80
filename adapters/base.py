from __future__ import annotations

import importlib
import time
from abc import abstractmethod
from types import ModuleType
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from adapters.sql_renderer import SQLDialect, get_sql_dialect
from database.connection import CORE_OPTIONS, Connection
from database.errors import ContractViolation, DatabaseError
from database.statement import Statement


class AdapterError(DatabaseError):
    pass


class DBAPIStatement(Statement):
    """Statement over a DB-API 2.0 cursor.

    Placeholders are bound by the connection before the text reaches the
    driver, so the driver never sees parameters. Result rows are buffered
    on execute, which keeps ``num_rows`` exact on every engine.
    """

    def __init__(self, connection: "DBAPIConnection", query_text: str):
        super().__init__(connection, query_text)
        self._rows: list = []
        self._position = 0
        self._insert_id: Optional[int] = None
        self._affected = 0

    def execute(self, args: Sequence[Any]) -> bool:
        connection = self.connection
        self.sql = connection.interpolate(self.query_text, args)
        driver = connection.load_driver()
        cursor = connection.dbh.cursor()
        started = time.perf_counter()
        try:
            cursor.execute(self.sql)
            description = cursor.description
            rows = cursor.fetchall() if description else []
        except driver.Error as exc:
            self.engine_time = time.perf_counter() - started
            cursor.close()
            connection.last_exception = exc
            connection.record_error(f"SQL Error in query:\n{self.sql}")
            return False

        self.engine_time = time.perf_counter() - started
        self.handle = cursor
        self.columns = [column[0] for column in description] if description else []
        self._rows = [tuple(row) for row in rows]
        self._position = 0
        self._affected = cursor.rowcount if cursor.rowcount is not None else -1
        self._insert_id = self._read_insert_id(cursor)
        self.after_execute(cursor)
        return True

    def _read_insert_id(self, cursor: Any) -> Optional[int]:
        return getattr(cursor, "lastrowid", None) or None

    def after_execute(self, cursor: Any) -> None:
        return None

    def fetch_row(self) -> Optional[Tuple[Any, ...]]:
        if self._position >= len(self._rows):
            return None
        row = self._rows[self._position]
        self._position += 1
        return row

    def num_rows(self) -> int:
        return len(self._rows)

    def insert_id(self) -> Optional[int]:
        return self._insert_id

    def affected_rows(self) -> int:
        return self._affected

    def finish(self) -> None:
        if self.handle is not None:
            self.handle.close()
            self.handle = None
        self._rows = []
        self._position = 0


class DBAPIConnection(Connection):
    dialect: SQLDialect = get_sql_dialect("")
    driver_module = ""
    driver_package = ""
    adapter_options: frozenset = frozenset()
    statement_class = DBAPIStatement

    # Driver handles opened with the ``pconnect`` option, shared across instances.
    _persistent_handles: Dict[Tuple[str, ...], Any] = {}

    @property
    def begin_statement(self) -> str:
        return self.dialect.begin_statement

    @property
    def identifier_quote(self) -> str:
        return self.dialect.identifier_quote

    @property
    def session_reset_statements(self) -> Tuple[str, ...]:
        return self.dialect.session_reset_statements

    @classmethod
    def load_driver(cls) -> ModuleType:
        try:
            return importlib.import_module(cls.driver_module)
        except ImportError as exc:
            raise AdapterError(
                f"The {cls.adapter_name} adapter needs a driver. Install it with "
                f"`python -m pip install {cls.driver_package}`."
            ) from exc

    @classmethod
    def available(cls) -> bool:
        try:
            importlib.import_module(cls.driver_module)
        except ImportError:
            return False
        return True

    def driver_options(self) -> Dict[str, Any]:
        skipped = CORE_OPTIONS | self.adapter_options
        return {key: value for key, value in self.options.items() if key not in skipped}

    def _persistent_key(self) -> Tuple[str, ...]:
        return (type(self).__name__, str(self.database), str(self.login), str(self.host), str(self.port))

    @abstractmethod
    def open_handle(self, driver: ModuleType, password: Optional[str]) -> Any:
        raise NotImplementedError

    def connect(self, password: Optional[str]) -> Any:
        self.last_exception: Optional[BaseException] = None
        self.persistent = bool(self.options.get("pconnect"))
        if self.persistent:
            cached = self._persistent_handles.get(self._persistent_key())
            if cached is not None:
                return cached

        driver = self.load_driver()
        try:
            handle = self.open_handle(driver, password)
        except driver.Error as exc:
            self.last_exception = exc
            self.record_error(f"Can't connect to database {self.database!r} on {self.host}")
            return None

        if self.persistent:
            self._persistent_handles[self._persistent_key()] = handle
        return handle

    def disconnect(self) -> None:
        if self.dbh is None or self.persistent:
            return
        self.dbh.close()

    def errstr(self) -> str:
        return str(self.last_exception) if self.last_exception is not None else ""

    def errno(self) -> Union[int, str]:
        if self.last_exception is None:
            return 0
        return self.error_code(self.last_exception)

    def error_code(self, exc: BaseException) -> Union[int, str]:
        return getattr(exc, "errno", None) or 0

    def prepare(self, sql: str) -> Optional[Statement]:
        if self.closed:
            raise ContractViolation(f"{self!r} is closed")
        if self.dbh is None:
            self.record_error("Not connected to a database")
            return None
        return self.statement_class(self, sql)
