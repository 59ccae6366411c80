from adapters.sql_renderer import get_sql_dialect


def test_mysql_dialect_resets_locks_and_autocommit():
    dialect = get_sql_dialect("mysql")
    assert dialect.identifier_quote == "`"
    assert dialect.begin_statement == "START TRANSACTION"
    assert dialect.session_reset_statements == ("ROLLBACK", "UNLOCK TABLES", "SET autocommit = 1")


def test_sqlite_dialect_uses_begin_transaction():
    dialect = get_sql_dialect("sqlite")
    assert dialect.begin_statement == "BEGIN TRANSACTION"
    assert dialect.session_reset_statements == ()
    assert dialect.identifier_quote == '"'


def test_postgres_aliases_share_a_dialect():
    assert get_sql_dialect("postgresql") == get_sql_dialect("postgres")
    assert get_sql_dialect("postgres").session_reset_statements == ("ROLLBACK",)
