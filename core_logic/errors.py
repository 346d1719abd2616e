# SQLPilot/core_logic/errors.py
from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Failure conditions surfaced by the planning, validation and execution layers."""
    EMPTY_INPUT = "EMPTY_INPUT"
    NO_RELEVANT_TABLE = "NO_RELEVANT_TABLE"
    UNRESOLVED_TABLE = "UNRESOLVED_TABLE"
    INJECTION_DETECTED = "INJECTION_DETECTED"
    FORBIDDEN_KEYWORD = "FORBIDDEN_KEYWORD"
    DML_DISALLOWED = "DML_DISALLOWED"
    DDL_DISALLOWED = "DDL_DISALLOWED"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    EXECUTION_FAILED = "EXECUTION_FAILED"
    EXECUTION_TIMEOUT = "EXECUTION_TIMEOUT"


class SQLPilotError(Exception):
    """Base error carrying an ErrorCode."""

    def __init__(self, code: ErrorCode, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"


class UpstreamUnavailableError(SQLPilotError):
    """The external AI generator timed out, errored or returned nothing usable."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(ErrorCode.UPSTREAM_UNAVAILABLE, message, cause)
