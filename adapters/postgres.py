from __future__ import annotations

from types import ModuleType
from typing import Any, Optional, Union

from adapters.base import DBAPIConnection, DBAPIStatement
from adapters.sql_renderer import get_sql_dialect


class PostgresStatement(DBAPIStatement):
    def _read_insert_id(self, cursor: Any) -> Optional[int]:
        if not (self.sql or "").lstrip().upper().startswith("INSERT"):
            return None
        if self.columns and self._rows:
            # INSERT ... RETURNING names the generated key exactly.
            return self._rows[0][0]
        # cursor.lastrowid is an OID on PostgreSQL. lastval() is the session's most
        # recent sequence value, which is stale when this table has no serial column.
        driver = self.connection.load_driver()
        dbh = self.connection.dbh
        in_block = dbh.info.transaction_status != driver.pq.TransactionStatus.IDLE
        with dbh.cursor() as lookup:
            if in_block:
                lookup.execute("SAVEPOINT insert_id_lookup")
            try:
                lookup.execute("SELECT lastval()")
                row = lookup.fetchone()
            except driver.Error:
                if in_block:
                    lookup.execute("ROLLBACK TO SAVEPOINT insert_id_lookup")
                return None
            if in_block:
                lookup.execute("RELEASE SAVEPOINT insert_id_lookup")
        return row[0] if row else None


class PostgresConnection(DBAPIConnection):
    adapter_name = "postgres"
    dialect = get_sql_dialect("postgres")
    driver_module = "psycopg"
    driver_package = '"psycopg[binary]"'
    statement_class = PostgresStatement

    def open_handle(self, driver: ModuleType, password: Optional[str]) -> Any:
        params = {
            "dbname": self.database,
            "user": self.login,
            "password": password,
            "host": self.host,
            "port": int(self.port) if self.port not in (None, "") else None,
        }
        params.update(self.driver_options())
        params = {key: value for key, value in params.items() if value is not None}
        return driver.connect(autocommit=True, **params)

    def _escaping(self):
        from psycopg import pq  # type: ignore

        return pq.Escaping(self.dbh.pgconn)

    def escape_string(self, value: str) -> str:
        encoding = self.dbh.info.encoding
        return self._escaping().escape_string(str(value).encode(encoding)).decode(encoding)

    def escape_bytefield(self, value: Union[bytes, str]) -> str:
        if isinstance(value, str):
            value = value.encode("utf-8")
        return self._escaping().escape_bytea(bytes(value)).decode("ascii")

    def unescape_bytefield(self, value: Union[bytes, str]) -> bytes:
        from psycopg import pq  # type: ignore

        if isinstance(value, str):
            value = value.encode("ascii")
        return pq.Escaping().unescape_bytea(value)

    def error_code(self, exc: BaseException) -> Union[int, str]:
        return getattr(exc, "sqlstate", None) or 0
