# SQLPilot/core_logic/sql_validator.py
"""
Single security chokepoint for every candidate SQL string, whichever
component produced it (rule-based synthesizer or AI generator).
"""
import logging
import re
from typing import Optional, Pattern, Tuple

from core_logic.data_models import SecurityPolicy, ValidationResult
from core_logic.errors import ErrorCode

security_logger = logging.getLogger('SQLPilot.Security')

# Whole-string patterns: applied with fullmatch and without DOTALL, so a
# fragment on a later line, or a comment marker that does not open the
# statement, is not caught here.
INJECTION_PATTERNS: Tuple[Pattern, ...] = (
    re.compile(r"--;.*", re.IGNORECASE),                # trailing comment marker
    re.compile(r".*union.*select.*", re.IGNORECASE),    # UNION-based injection
    re.compile(r".*or\s+1\s*=\s*1.*", re.IGNORECASE),   # tautologies
    re.compile(r".*and\s+1\s*=\s*1.*", re.IGNORECASE),
    re.compile(r".*exec\s*\(.*\).*", re.IGNORECASE),    # dynamic execution
    re.compile(r".*xp_.*", re.IGNORECASE),              # extended stored procedures
    re.compile(r".*sp_.*", re.IGNORECASE),              # system stored procedures
)

DML_KEYWORDS: Tuple[str, ...] = ("INSERT", "UPDATE", "DELETE", "REPLACE", "MERGE")
DDL_KEYWORDS: Tuple[str, ...] = ("CREATE", "DROP", "ALTER", "TRUNCATE", "RENAME")
CONFIRMATION_KEYWORDS: Tuple[str, ...] = ("DELETE", "UPDATE", "INSERT")

_WHITESPACE_RUN = re.compile(r"\s+")
_TRAILING_SEMICOLONS = re.compile(r"[\s;]+$")


def sanitize_sql(sql: Optional[str]) -> str:
    """Trim, collapse whitespace runs and drop trailing semicolons. Idempotent."""
    if not sql or not sql.strip():
        return ""
    collapsed = _WHITESPACE_RUN.sub(" ", sql.strip())
    return _TRAILING_SEMICOLONS.sub("", collapsed)


def _leading_keyword(upper_sql: str, keywords: Tuple[str, ...]) -> Optional[str]:
    for keyword in keywords:
        if upper_sql.startswith(keyword):
            return keyword
    return None


class SQLValidator:
    """Pure function of the configured SecurityPolicy and the input string."""

    def __init__(self, policy: Optional[SecurityPolicy] = None):
        self.policy = policy or SecurityPolicy.from_settings()

    def validate(self, sql: Optional[str]) -> ValidationResult:
        if not sql or not sql.strip():
            return ValidationResult.error(ErrorCode.EMPTY_INPUT, "SQL must not be empty.")

        clean_sql = sql.strip()
        security_logger.debug(f"Validating SQL: {clean_sql}")

        for check in (self._check_injection, self._check_forbidden_keywords, self._check_permissions):
            failure = check(clean_sql)
            if failure is not None:
                return failure

        needs_confirmation = self.needs_confirmation(clean_sql)
        security_logger.debug(f"SQL passed validation, needs confirmation: {needs_confirmation}")
        return ValidationResult.success(needs_confirmation)

    def _check_injection(self, sql: str) -> Optional[ValidationResult]:
        for pattern in INJECTION_PATTERNS:
            if pattern.fullmatch(sql):
                security_logger.warning(f"SECURITY ALERT: injection pattern {pattern.pattern!r} matched.")
                return ValidationResult.error(
                    ErrorCode.INJECTION_DETECTED,
                    "Possible SQL injection pattern detected. Please check the statement.",
                )
        return None

    def _check_forbidden_keywords(self, sql: str) -> Optional[ValidationResult]:
        upper_sql = sql.upper()
        for keyword in self.policy.forbidden_keywords:
            if keyword and keyword.upper() in upper_sql:
                security_logger.warning(f"SECURITY ALERT: forbidden keyword {keyword!r}.")
                return ValidationResult.error(ErrorCode.FORBIDDEN_KEYWORD, f"Contains forbidden keyword: {keyword}")
        return None

    def _check_permissions(self, sql: str) -> Optional[ValidationResult]:
        upper_sql = sql.upper().strip()

        if not self.policy.allow_dml:
            keyword = _leading_keyword(upper_sql, DML_KEYWORDS)
            if keyword:
                security_logger.warning(f"DML statement rejected: {keyword}")
                return ValidationResult.error(ErrorCode.DML_DISALLOWED, f"DML operations are disabled: {keyword}")

        if not self.policy.allow_ddl:
            keyword = _leading_keyword(upper_sql, DDL_KEYWORDS)
            if keyword:
                security_logger.warning(f"DDL statement rejected: {keyword}")
                return ValidationResult.error(ErrorCode.DDL_DISALLOWED, f"DDL operations are disabled: {keyword}")

        return None

    @staticmethod
    def needs_confirmation(sql: str) -> bool:
        """Mutating statements need a human yes, even when they do not start with the keyword."""
        upper_sql = sql.upper().strip()
        if _leading_keyword(upper_sql, DML_KEYWORDS) or _leading_keyword(upper_sql, DDL_KEYWORDS):
            return True
        return any(keyword in upper_sql for keyword in CONFIRMATION_KEYWORDS)


def validate_sql(sql: Optional[str], policy: Optional[SecurityPolicy] = None) -> ValidationResult:
    return SQLValidator(policy).validate(sql)
