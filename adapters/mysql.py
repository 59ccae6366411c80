from __future__ import annotations

import logging
from types import ModuleType
from typing import Any, Dict, Optional, Union

from adapters.base import DBAPIConnection, DBAPIStatement
from adapters.sql_renderer import get_sql_dialect

logger = logging.getLogger(__name__)


class MySQLStatement(DBAPIStatement):
    def after_execute(self, cursor: Any) -> None:
        if self.connection.enable_warning_logging:
            self.connection.log_warnings(self.sql)


class MySQLConnection(DBAPIConnection):
    """Shared behaviour of the two MySQL drivers."""

    dialect = get_sql_dialect("mysql")
    statement_class = MySQLStatement

    def _db_params(self, password: Optional[str]) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "host": self.host,
            "user": self.login,
            "password": password or "",
            "database": self.database,
        }
        port = self.port
        if port not in (None, ""):
            # A non-numeric port is a unix socket path.
            if str(port).isdigit():
                params["port"] = int(port)
            else:
                params["unix_socket"] = str(port)
        params.update(self.driver_options())
        return params

    def error_code(self, exc: BaseException) -> Union[int, str]:
        errno = getattr(exc, "errno", None)
        if isinstance(errno, int):
            return errno
        if exc.args and isinstance(exc.args[0], int):
            return exc.args[0]
        return 0

    def log_warnings(self, sql: Optional[str] = None) -> None:
        cursor = self.dbh.cursor()
        try:
            cursor.execute("SHOW WARNINGS")
            warnings = cursor.fetchall()
        finally:
            cursor.close()
        for level, code, message in warnings:
            logger.warning("MySQL %s #%s: %s (query: %s)", level, code, message, sql)


class MySQLConnectorConnection(MySQLConnection):
    adapter_name = "mysqlconnector"
    driver_module = "mysql.connector"
    driver_package = "mysql-connector-python"

    def open_handle(self, driver: ModuleType, password: Optional[str]) -> Any:
        # The pure-Python connection exposes the converter used by escape_string.
        return driver.connect(autocommit=True, use_pure=True, **self._db_params(password))

    def escape_string(self, value: str) -> str:
        escaped = self.dbh.converter.escape(str(value))
        if isinstance(escaped, (bytes, bytearray)):
            return escaped.decode("utf-8")
        return escaped


class PyMySQLConnection(MySQLConnection):
    adapter_name = "pymysql"
    driver_module = "pymysql"
    driver_package = "PyMySQL"

    def open_handle(self, driver: ModuleType, password: Optional[str]) -> Any:
        return driver.connect(autocommit=True, **self._db_params(password))

    def escape_string(self, value: str) -> str:
        return self.dbh.escape_string(str(value))
