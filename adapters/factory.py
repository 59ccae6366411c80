from __future__ import annotations

import os
from typing import Callable, Dict, Optional, Type

from adapters.base import AdapterError
from adapters.mysql import MySQLConnectorConnection, PyMySQLConnection
from adapters.postgres import PostgresConnection
from adapters.sqlite import SQLiteConnection
from database.connection import Connection
from utils.env_loader import load_environments

MYSQL_DETECT = "mysql_detect"
# mysql.connector wins when both drivers are installed.
MYSQL_PREFERENCE = ("mysqlconnector", "pymysql")

ADAPTERS: Dict[str, Type[Connection]] = {}
_ALIASES = {
    "postgresql": "postgres",
    "sqlite3": "sqlite",
    "mysql": MYSQL_DETECT,
    "mysql_connector": "mysqlconnector",
}


def register_adapter(name: str, adapter_class: Optional[Type[Connection]] = None):
    def decorate(cls: Type[Connection]) -> Type[Connection]:
        ADAPTERS[name.strip().lower()] = cls
        return cls

    if adapter_class is None:
        return decorate
    return decorate(adapter_class)


def _is_available(adapter_class: Type[Connection]) -> bool:
    check: Callable[[], bool] = getattr(adapter_class, "available", lambda: True)
    return check()


def detect_mysql_adapter() -> Type[Connection]:
    for name in MYSQL_PREFERENCE:
        adapter_class = ADAPTERS.get(name)
        if adapter_class is not None and _is_available(adapter_class):
            return adapter_class
    raise AdapterError(
        "Could not perform automatic connection detection. Install one of: "
        "`python -m pip install mysql-connector-python` or `python -m pip install PyMySQL`."
    )


def get_adapter_class(adapter: Optional[str] = None) -> Type[Connection]:
    load_environments()
    name = (adapter or os.getenv("DB_ADAPTER", MYSQL_DETECT)).strip().lower()
    name = _ALIASES.get(name, name)
    if name == MYSQL_DETECT:
        return detect_mysql_adapter()
    try:
        return ADAPTERS[name]
    except KeyError:
        raise AdapterError(f"Unsupported adapter: {name}") from None


register_adapter("sqlite", SQLiteConnection)
register_adapter("postgres", PostgresConnection)
register_adapter("mysqlconnector", MySQLConnectorConnection)
register_adapter("pymysql", PyMySQLConnection)
