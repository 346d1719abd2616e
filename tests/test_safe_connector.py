import pytest

from core_logic.safe_connector import SafeDatabaseConnector, add_limit_if_needed


@pytest.mark.parametrize("sql, expected", [
    ("SELECT * FROM users", "SELECT * FROM users LIMIT 1000"),
    ("select * from users", "select * from users LIMIT 1000"),
    ("SELECT * FROM users LIMIT 5", "SELECT * FROM users LIMIT 5"),
    ("UPDATE users SET name = 'x'", "UPDATE users SET name = 'x'"),
    ("SHOW TABLES", "SHOW TABLES"),
])
def test_add_limit_if_needed(sql, expected):
    assert add_limit_if_needed(sql, 1000) == expected


def test_select_returns_dict_rows(sqlite_engine):
    connector = SafeDatabaseConnector(sqlite_engine)
    rows = connector.execute_sql("SELECT id, name FROM users ORDER BY id")

    assert rows == [{"id": 1, "name": "Alice"}, {"id": 2, "name": "Bob"}]


def test_row_cap_applied(sqlite_engine):
    connector = SafeDatabaseConnector(sqlite_engine, default_row_limit=2)

    assert len(connector.execute_sql("SELECT id FROM orders")) == 2
    assert len(connector.execute_sql("SELECT id FROM orders", row_limit=1)) == 1


def test_update_reports_affected_rows(sqlite_engine):
    connector = SafeDatabaseConnector(sqlite_engine)

    assert connector.execute_sql("UPDATE orders SET status = 'shipped' WHERE user_id = 1") == [{"affected_rows": 2}]
    assert connector.execute_sql("SELECT COUNT(*) AS n FROM orders WHERE status = 'shipped'") == [{"n": 2}]


def test_execution_error_is_value_error(sqlite_engine):
    connector = SafeDatabaseConnector(sqlite_engine)

    with pytest.raises(ValueError, match="Database Execution Error"):
        connector.execute_sql("SELECT missing_column FROM users")


def test_syntax_check(sqlite_engine):
    connector = SafeDatabaseConnector(sqlite_engine)

    assert connector.validate_sql_syntax("SELECT name FROM users")
    assert not connector.validate_sql_syntax("SELECT name FROM no_such_table")
    assert connector.explain_query("SELECT name FROM users")
