from __future__ import annotations

from pathlib import Path
from types import ModuleType
from typing import Any, Optional, Union

from adapters.base import DBAPIConnection
from adapters.sql_renderer import get_sql_dialect


class SQLiteConnection(DBAPIConnection):
    adapter_name = "sqlite"
    dialect = get_sql_dialect("sqlite")
    driver_module = "sqlite3"
    driver_package = "pysqlite3"
    adapter_options = frozenset({"must_exist"})

    def _db_path(self, driver: ModuleType) -> str:
        raw = str(self.database)
        if raw == ":memory:" or raw.startswith("file:"):
            return raw
        db_path = Path(raw)
        if self.options.get("must_exist") and not db_path.exists():
            # Raised as a driver error so it is recorded like any failed connect.
            raise driver.OperationalError(f"SQLite database file does not exist: {db_path}")
        return str(db_path)

    def open_handle(self, driver: ModuleType, password: Optional[str]) -> Any:
        params = {"isolation_level": None}
        if str(self.database).startswith("file:"):
            params["uri"] = True
        params.update(self.driver_options())
        # isolation_level=None leaves transaction control to explicit BEGIN/COMMIT.
        return driver.connect(self._db_path(driver), **params)

    def escape_string(self, value: str) -> str:
        return str(value).replace("'", "''")

    def escape_bytefield(self, value: Union[bytes, str]) -> str:
        if isinstance(value, str):
            value = value.encode("utf-8")
        return bytes(value).hex()

    def unescape_bytefield(self, value: str) -> bytes:
        return bytes.fromhex(value)

    def error_code(self, exc: BaseException) -> Union[int, str]:
        return getattr(exc, "sqlite_errorcode", None) or 0

    def reset_session(self) -> None:
        if self.dbh is not None and self.dbh.in_transaction:
            self._command("ROLLBACK")
        self.in_transaction = False
