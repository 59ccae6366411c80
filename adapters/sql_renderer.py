from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class SQLDialect:
    engine: str
    identifier_quote: str
    begin_statement: str
    session_reset_statements: Tuple[str, ...]


def get_sql_dialect(db_engine: str) -> SQLDialect:
    engine = (db_engine or "mysql").strip().lower()
    if engine in {"postgres", "postgresql"}:
        return SQLDialect(
            engine="postgres",
            identifier_quote='"',
            begin_statement="START TRANSACTION",
            session_reset_statements=("ROLLBACK",),
        )
    if engine == "sqlite":
        # SQLite has no START TRANSACTION, and ROLLBACK fails outside of one.
        return SQLDialect(
            engine="sqlite",
            identifier_quote='"',
            begin_statement="BEGIN TRANSACTION",
            session_reset_statements=(),
        )
    if engine == "mysql":
        return SQLDialect(
            engine="mysql",
            identifier_quote="`",
            begin_statement="START TRANSACTION",
            session_reset_statements=("ROLLBACK", "UNLOCK TABLES", "SET autocommit = 1"),
        )
    return SQLDialect(
        engine=engine,
        identifier_quote='"',
        begin_statement="START TRANSACTION",
        session_reset_statements=("ROLLBACK",),
    )
