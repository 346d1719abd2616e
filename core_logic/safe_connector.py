# SQLPilot/core_logic/safe_connector.py
import logging
import re
import time
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from config.settings import DEFAULT_ROW_LIMIT, MAX_QUERY_TIMEOUT_SECONDS

connector_logger = logging.getLogger('SQLPilot.Connector')

_READ_PREFIXES = ("SELECT", "WITH", "SHOW", "DESCRIBE", "DESC ", "EXPLAIN")
_LIMIT_CLAUSE = re.compile(r"\bLIMIT\b", re.IGNORECASE)
_TIMEOUT_MARKERS = ("statement timeout", "max_execution_time", "maximum statement execution time", "timeout")


def add_limit_if_needed(sql: str, max_rows: int) -> str:
    """Appends a row cap to SELECT statements that carry no LIMIT clause."""
    upper_sql = sql.strip().upper()
    if _LIMIT_CLAUSE.search(sql):
        return sql
    if upper_sql.startswith("SELECT"):
        return f"{sql} LIMIT {max_rows}"
    return sql


def _install_statement_timeout(engine: Engine, timeout_seconds: int) -> None:
    """Sets a statement-level timeout on each new connection, where the dialect supports one."""
    dialect = engine.dialect.name
    timeout_ms = timeout_seconds * 1000
    if dialect == "mysql":
        statement = f"SET SESSION MAX_EXECUTION_TIME = {timeout_ms}"
    elif dialect == "postgresql":
        statement = f"SET statement_timeout = {timeout_ms}"
    else:
        return

    @event.listens_for(engine, "connect")
    def set_statement_timeout(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute(statement)
        cursor.close()


class SafeDatabaseConnector:
    """
    Executes SQL that has already passed the validator. Enforces the default
    row cap on SELECTs and a statement-level timeout.
    """
    def __init__(self, db: Union[str, Engine], default_row_limit: int = DEFAULT_ROW_LIMIT,
                 timeout_seconds: int = MAX_QUERY_TIMEOUT_SECONDS):
        self.engine = create_engine(db) if isinstance(db, str) else db
        self.default_row_limit = default_row_limit
        self.timeout_seconds = timeout_seconds
        _install_statement_timeout(self.engine, timeout_seconds)

    @staticmethod
    def _is_read_statement(sql: str) -> bool:
        return sql.strip().upper().startswith(_READ_PREFIXES)

    def _translate_error(self, sql: str, error: SQLAlchemyError) -> Exception:
        message = str(error).lower()
        if isinstance(error, OperationalError) and any(marker in message for marker in _TIMEOUT_MARKERS):
            return TimeoutError(
                f"Query execution exceeded time limits (>{self.timeout_seconds}s). Please simplify your request."
            )
        connector_logger.error(f"Database execution failed for SQL: {sql}")
        return ValueError(f"Database Execution Error: {error!r}")

    def execute_sql(self, sql: str, row_limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Runs one statement. SELECT-like statements return their rows as dicts;
        anything else runs in a transaction and returns [{'affected_rows': n}].
        """
        limited_sql = add_limit_if_needed(sql, row_limit or self.default_row_limit)
        start_time = time.time()
        try:
            if self._is_read_statement(limited_sql):
                with self.engine.connect() as connection:
                    result = connection.execute(text(limited_sql))
                    column_names = list(result.keys())
                    rows = [dict(zip(column_names, row)) for row in result.all()]
            else:
                with self.engine.begin() as connection:
                    result = connection.execute(text(limited_sql))
                    rows = [{"affected_rows": result.rowcount}]
        except SQLAlchemyError as e:
            raise self._translate_error(limited_sql, e) from e

        elapsed_ms = (time.time() - start_time) * 1000
        connector_logger.info(f"Query returned {len(rows)} row(s) in {elapsed_ms:.0f}ms")
        return rows

    def explain_query(self, sql: str) -> List[Dict[str, Any]]:
        """Runs EXPLAIN on the statement; the plan is returned, not interpreted."""
        try:
            with self.engine.connect() as connection:
                result = connection.execute(text(f"EXPLAIN {sql}"))
                column_names = list(result.keys())
                return [dict(zip(column_names, row)) for row in result.all()]
        except SQLAlchemyError as e:
            raise self._translate_error(sql, e) from e

    def validate_sql_syntax(self, sql: str) -> bool:
        try:
            self.explain_query(sql)
            return True
        except (ValueError, TimeoutError) as e:
            connector_logger.debug(f"SQL syntax check failed: {e}")
            return False
