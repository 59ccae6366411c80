"""Engine-agnostic connection core.

Adapters subclass ``Connection`` and fill in the engine-specific half:
``connect``, ``disconnect``, ``escape_string``, ``errstr``, ``errno`` and
``prepare`` (which hands back a ``Statement`` subclass). Everything else,
from placeholder binding to result shaping and transaction bookkeeping, is
built here on top of ``query``.
"""

from __future__ import annotations

import logging
import time
import traceback
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from database.args import flatten
from database.errors import ContractViolation, ErrorState, FatalQueryError, NoStatementError
from database.escaping import escape_direction, escape_field, quote
from database.placeholders import bind_placeholders
from database.statement import Statement

if TYPE_CHECKING:
    from database.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


CORE_OPTIONS = frozenset({"pconnect", "fatal_errors", "warning_logging"})


class Connection(ABC):
    adapter_name = "abstract"
    begin_statement = "START TRANSACTION"
    identifier_quote = "`"
    session_reset_statements: Tuple[str, ...] = ("ROLLBACK",)

    def __init__(
        self,
        database: str,
        login: Optional[str] = None,
        password: Optional[str] = None,
        host: str = "localhost",
        port: Optional[Union[int, str]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ):
        self.database = database
        self.login = login
        self.host = host
        self.port = port
        self.options: Dict[str, Any] = dict(options or {})

        self.dbh: Any = None
        self.last_statement: Optional[Statement] = None
        self.error_state = ErrorState()
        self.fatal_errors = bool(self.options.get("fatal_errors", True))
        self.enable_warning_logging = bool(self.options.get("warning_logging", False))

        self.query_count = 0
        self.query_time = 0.0
        self.engine_time = 0.0
        self.in_transaction = False

        self.registry: Optional["ConnectionRegistry"] = None
        self.global_name = ""
        self._shutdown_handlers: Optional[List[Tuple[Callable[..., Any], Optional[Sequence[Any]]]]] = []
        self.closed = False

        self.dbh = self.connect(password)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.adapter_name}:{self.database}@{self.host}>"

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.shutdown()
        return False

    def __del__(self) -> None:
        # A connection nobody references any more still owes its handlers a run.
        if "closed" not in self.__dict__:
            return
        try:
            self.shutdown()
        except Exception:
            logger.exception("shutdown of %r on release failed", self)

    # ------------------------------------------------------------------
    # Adapter contract
    # ------------------------------------------------------------------
    @abstractmethod
    def connect(self, password: Optional[str]) -> Any:
        raise NotImplementedError

    @abstractmethod
    def disconnect(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def escape_string(self, value: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def errstr(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def errno(self) -> Union[int, str]:
        raise NotImplementedError

    @abstractmethod
    def prepare(self, sql: str) -> Optional[Statement]:
        raise NotImplementedError

    def close(self) -> None:
        if self.closed:
            return
        self.disconnect()
        self.dbh = None
        self.closed = True

    def reset_session(self) -> None:
        for statement in self.session_reset_statements:
            self._command(statement)
        self.in_transaction = False

    # ------------------------------------------------------------------
    # Escaping
    # ------------------------------------------------------------------
    def escape(self, value: Any, escape_question_marks: bool = True) -> str:
        return quote(value, self.escape_string, escape_question_marks)

    def escape_array(self, values: Sequence[Any]) -> List[Any]:
        return [
            self.escape_array(value) if isinstance(value, (list, tuple)) else self.escape(value)
            for value in values
        ]

    def escape_bytefield(self, value: Any) -> str:
        return self.escape_string(value)

    def unescape_bytefield(self, value: Any) -> Any:
        return value

    def escape_field(self, *parts: str) -> str:
        return escape_field(*parts, quote_char=self.identifier_quote)

    @staticmethod
    def escape_direction(direction: str) -> str:
        return escape_direction(direction)

    def interpolate(self, sql: str, args: Sequence[Any]) -> str:
        return bind_placeholders(sql, args, lambda value: self.escape(value, escape_question_marks=False))

    # ------------------------------------------------------------------
    # Error state
    # ------------------------------------------------------------------
    def record_error(self, message: str = "", backtrace: bool = True) -> ErrorState:
        errstr = self.errstr()
        errno = self.errno()
        text = f"{message}\n\n" if message else ""
        text += f"{errstr} [#{errno}]"
        stack = None
        if backtrace:
            stack = "".join(traceback.format_stack()[:-1])
            text += "\n\nBacktrace\n" + stack
        self.error_state = ErrorState(message=text, errstr=errstr, errno=errno, backtrace=stack)
        if self.fatal_errors:
            logger.error("%s: %s [#%s]", message or "Database error", errstr, errno)
            raise FatalQueryError(self.error_state)
        logger.warning("%s: %s [#%s]", message or "Database error", errstr, errno)
        return self.error_state

    def clear_error(self) -> None:
        self.error_state = ErrorState()

    def enable_fatal_errors(self) -> None:
        self.fatal_errors = True

    def disable_fatal_errors(self) -> None:
        self.fatal_errors = False

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def query(self, sql: str, args: Any = ()) -> Optional[Statement]:
        """Prepare and execute ``sql``, binding ``args`` to its ``?`` placeholders.

        ``args`` may be a single value or any nesting of lists, tuples and
        mappings; it is flattened depth-first before binding. Returns the
        executed statement, or ``None`` if the engine gave no usable handle
        (only possible with fatal errors disabled).
        """
        flat_args = flatten(args)
        started = time.perf_counter()
        statement = self.prepare(sql)
        if statement is not None:
            statement.execute(flat_args)
            self.engine_time += statement.engine_time
        elapsed = time.perf_counter() - started
        self.query_time += elapsed
        self.query_count += 1
        logger.debug("query #%d took %.2fms: %s", self.query_count, elapsed * 1000.0, sql)

        if statement is None or statement.handle is None:
            self.last_statement = None
            return None
        self.last_statement = statement
        return statement

    def _command(self, sql: str) -> None:
        statement = self.query(sql)
        if statement is not None:
            statement.finish()

    def _shaped(self, sql: str, args: Any, shape: Callable[[Statement], Any]) -> Any:
        statement = self.query(sql, args)
        if statement is None:
            return None
        try:
            return shape(statement)
        finally:
            statement.finish()

    def query_row(self, sql: str, args: Any = ()) -> Optional[Tuple[Any, ...]]:
        return self._shaped(sql, args, lambda sh: sh.fetch_row())

    def query_assoc(self, sql: str, args: Any = ()) -> Optional[Dict[str, Any]]:
        return self._shaped(sql, args, lambda sh: sh.fetch_assoc())

    def query_col(self, sql: str, args: Any = ()) -> Any:
        def first_value(sh: Statement) -> Any:
            row = sh.fetch_row()
            return row[0] if row else None

        return self._shaped(sql, args, first_value)

    def query_one(self, sql: str, args: Any = ()) -> Any:
        return self.query_col(sql, args)

    def query_list(self, sql: str, args: Any = ()) -> Optional[List[Any]]:
        return self._shaped(sql, args, lambda sh: [row[0] for row in sh])

    def query_list_array(self, sql: str, args: Any = ()) -> Optional[List[Tuple[Any, ...]]]:
        return self._shaped(sql, args, lambda sh: list(sh))

    def query_list_assoc(self, sql: str, args: Any = ()) -> Optional[List[Dict[str, Any]]]:
        def assoc_rows(sh: Statement) -> List[Dict[str, Any]]:
            rows = []
            row = sh.fetch_assoc()
            while row is not None:
                rows.append(row)
                row = sh.fetch_assoc()
            return rows

        return self._shaped(sql, args, assoc_rows)

    def query_keyed_list(self, sql: str, args: Any = ()) -> Optional[Dict[Any, Any]]:
        return self._shaped(sql, args, lambda sh: {row[0]: row[1] for row in sh})

    def query_pairs(self, sql: str, args: Any = ()) -> Optional[Dict[Any, Any]]:
        return self.query_keyed_list(sql, args)

    def query_keyed_list_array(self, key: Union[str, int], sql: str, args: Any = ()) -> Optional[Dict[Any, Tuple[Any, ...]]]:
        def keyed_rows(sh: Statement) -> Dict[Any, Tuple[Any, ...]]:
            index = sh.column_index(key)
            return {row[index]: row for row in sh}

        return self._shaped(sql, args, keyed_rows)

    def query_keyed_list_assoc(self, key: str, sql: str, args: Any = ()) -> Optional[Dict[Any, Dict[str, Any]]]:
        def keyed_assoc(sh: Statement) -> Dict[Any, Dict[str, Any]]:
            rows: Dict[Any, Dict[str, Any]] = {}
            row = sh.fetch_assoc()
            while row is not None:
                rows[row[key]] = row
                row = sh.fetch_assoc()
            return rows

        return self._shaped(sql, args, keyed_assoc)

    def query_num_rows(self, sql: str, args: Any = ()) -> Optional[int]:
        return self._shaped(sql, args, lambda sh: sh.num_rows())

    def query_insert_id(self, sql: str, args: Any = ()) -> Optional[int]:
        return self._shaped(sql, args, lambda sh: self.insert_id())

    def insert_id(self) -> Optional[int]:
        if self.last_statement is None:
            raise NoStatementError("insert_id() called before any successful query")
        return self.last_statement.insert_id()

    def affected_rows(self) -> int:
        if self.last_statement is None:
            raise NoStatementError("affected_rows() called before any successful query")
        return self.last_statement.affected_rows()

    # ------------------------------------------------------------------
    # Statement builders
    # ------------------------------------------------------------------
    def insert(self, table: str, values: Mapping[str, Any]) -> Optional[Statement]:
        if not values:
            raise ContractViolation(f"insert into {table} needs at least one column")
        columns = ", ".join(values.keys())
        questions = ", ".join("?" for _ in values)
        sql = f"INSERT INTO {table}({columns}) VALUES({questions})"
        return self.query(sql, list(values.values()))

    def update(self, table: str, values: Mapping[str, Any], where: Mapping[str, Any]) -> Optional[Statement]:
        if not values:
            raise ContractViolation(f"update of {table} needs at least one column")
        if not where:
            raise ContractViolation(f"update of {table} needs at least one where condition")
        columns = ", ".join(f"{column} = ?" for column in values)
        where_clause = " AND ".join(f"{column} = ?" for column in where)
        sql = f"UPDATE {table} SET {columns} WHERE {where_clause}"
        return self.query(sql, [list(values.values()), list(where.values())])

    def upsert(
        self,
        table: str,
        values: Mapping[str, Any],
        where: Mapping[str, Any],
        primary_key: Union[str, Sequence[str]],
    ) -> Union[Statement, None, bool]:
        """Update the row matching ``where``, or insert ``values`` if there is none.

        Returns ``False`` when a row matches but its primary key differs
        from the one in ``values``; nothing is written in that case.
        """
        if not where:
            raise ContractViolation(f"upsert into {table} needs at least one where condition")
        keys = [primary_key] if isinstance(primary_key, str) else list(primary_key)
        where_clause = " AND ".join(f"{column} = ?" for column in where)
        row = self.query_assoc(f"SELECT {', '.join(keys)} FROM {table} WHERE {where_clause}", list(where.values()))
        if row:
            if all(_same_key(row.get(pk), values.get(pk)) for pk in keys):
                return self.update(table, values, where)
            return False
        return self.insert(table, values)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------
    def start_transaction(self) -> bool:
        if self.in_transaction:
            return False
        self._command(self.begin_statement)
        self.in_transaction = True
        return True

    def commit(self) -> bool:
        self._command("COMMIT")
        if not self.in_transaction:
            return False
        self.in_transaction = False
        return True

    def rollback(self) -> bool:
        self._command("ROLLBACK")
        if not self.in_transaction:
            return False
        self.in_transaction = False
        return True

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------
    def register_global_name(self, name: str) -> bool:
        if self.registry is not None and self.registry.get(name) is self:
            self.global_name = name
            return True
        return False

    def register_shutdown_handler(self, func: Callable[..., Any], params: Optional[Sequence[Any]] = None) -> None:
        if self.is_shut_down:
            raise ContractViolation(f"{self!r} has already been shut down")
        self._shutdown_handlers.append((func, params if isinstance(params, (list, tuple)) else None))

    def prepare_shutdown(self) -> None:
        """Run the shutdown handlers exactly once, in registration order.

        If this connection was registered under a global name whose registry
        slot has since been emptied, it binds itself back into that slot for
        the duration, so handlers that look it up by name still find it.
        """
        if self.is_shut_down:
            return
        handlers = self._shutdown_handlers
        self._shutdown_handlers = None

        resurrected = False
        if self.global_name and self.registry is not None and self.registry.get(self.global_name) is None:
            self.registry.bind(self.global_name, self)
            resurrected = True
        try:
            for func, params in handlers:
                logger.debug("running shutdown handler %r for %r", func, self)
                if params is not None:
                    func(*params)
                else:
                    func()
        finally:
            if resurrected and self.registry.get(self.global_name) is self:
                self.registry.unbind(self.global_name)

    def shutdown(self) -> None:
        self.prepare_shutdown()
        self.close()

    @property
    def is_shut_down(self) -> bool:
        return self._shutdown_handlers is None

    def describe(self) -> Dict[str, Any]:
        return {
            "adapter": self.adapter_name,
            "database": self.database,
            "host": self.host,
            "query_count": self.query_count,
            "query_time": self.query_time,
            "engine_time": self.engine_time,
            "in_transaction": self.in_transaction,
            "fatal_errors": self.fatal_errors,
            "error": self.error_state.message,
            "closed": self.closed,
        }


def _same_key(fetched: Any, wanted: Any) -> bool:
    if fetched == wanted:
        return True
    if fetched is None or wanted is None:
        return False
    return str(fetched) == str(wanted)
