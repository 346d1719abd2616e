# SQLPilot/core_logic/data_models.py
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from config.settings import ALLOW_DDL, ALLOW_DML, FORBIDDEN_KEYWORDS
from core_logic.errors import ErrorCode


class QueryKind(str, Enum):
    SELECT = "SELECT"
    COUNT = "COUNT"
    SUM = "SUM"
    AVG = "AVG"
    MAX = "MAX"
    MIN = "MIN"
    GROUP = "GROUP"


class Aggregation(str, Enum):
    COUNT = "COUNT"
    SUM = "SUM"
    AVG = "AVG"
    MAX = "MAX"
    MIN = "MIN"


class OrderDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class ColumnInfo(BaseModel):
    """Metadata for a single database column."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(description="The exact column name (e.g., customer_id).")
    data_type: str = Field(description="The declared SQL data type (e.g., INT, DECIMAL(10,2)).")
    nullable: bool = True
    default_value: Optional[str] = None
    comment: Optional[str] = None


class TableSchema(BaseModel):
    """Schema snapshot of one catalog table, built fresh for every planning request."""
    model_config = ConfigDict(frozen=True)

    name: str
    columns: Tuple[ColumnInfo, ...] = ()
    primary_keys: Tuple[str, ...] = ()
    foreign_keys: Dict[str, str] = Field(
        default_factory=dict,
        description="Local column name -> '<referencedTable>.<referencedColumn>'.",
    )

    @model_validator(mode="after")
    def _check_keys_are_columns(self) -> "TableSchema":
        known = set(self.column_names())
        missing_pks = [pk for pk in self.primary_keys if pk not in known]
        if missing_pks:
            raise ValueError(f"Primary key column(s) {missing_pks} not declared on table '{self.name}'.")
        for column, target in self.foreign_keys.items():
            if column not in known:
                raise ValueError(f"Foreign key column '{column}' not declared on table '{self.name}'.")
            table, _, ref_column = target.partition(".")
            if not table or not ref_column:
                raise ValueError(f"Foreign key target '{target}' must have the form 'table.column'.")
        return self

    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def get_column(self, name: str) -> Optional[ColumnInfo]:
        for column in self.columns:
            if column.name == name:
                return column
        return None


class QueryIntent(BaseModel):
    """Structured interpretation of one natural-language request."""
    original_query: str = ""
    query_types: List[QueryKind] = Field(default_factory=lambda: [QueryKind.SELECT])
    relevant_tables: List[str] = Field(default_factory=list)
    conditions: List[str] = Field(
        default_factory=list,
        description="Opaque descriptors: 'number: n', 'condition: <op> n', 'range: BETWEEN a AND b'.",
    )
    aggregations: List[Aggregation] = Field(default_factory=list)
    time_range: Optional[str] = Field(default=None, description="SQL predicate fragment, evaluated by the database.")
    order_direction: Optional[OrderDirection] = None
    limit_count: Optional[int] = Field(default=None, gt=0)

    @field_validator("query_types")
    @classmethod
    def _default_to_select(cls, value: List[QueryKind]) -> List[QueryKind]:
        deduped = list(dict.fromkeys(value))
        return deduped or [QueryKind.SELECT]

    @field_validator("aggregations")
    @classmethod
    def _dedupe_aggregations(cls, value: List[Aggregation]) -> List[Aggregation]:
        return list(dict.fromkeys(value))


class ValidationResult(BaseModel):
    """Outcome of validating exactly one SQL string."""
    model_config = ConfigDict(frozen=True)

    valid: bool
    error_code: Optional[ErrorCode] = None
    error_message: Optional[str] = None
    needs_confirmation: bool = False

    @classmethod
    def success(cls, needs_confirmation: bool) -> "ValidationResult":
        return cls(valid=True, needs_confirmation=needs_confirmation)

    @classmethod
    def error(cls, code: ErrorCode, message: str) -> "ValidationResult":
        return cls(valid=False, error_code=code, error_message=message, needs_confirmation=False)


class SqlGenerationResult(BaseModel):
    """Outcome of one planning request (rule-based or AI)."""
    success: bool
    sql: Optional[str] = None
    explanation: Optional[str] = None
    intent: Optional[QueryIntent] = None
    strategy: str = "rules"
    error_code: Optional[ErrorCode] = None
    error_message: Optional[str] = None

    @classmethod
    def ok(cls, sql: str, explanation: str, intent: Optional[QueryIntent] = None,
           strategy: str = "rules") -> "SqlGenerationResult":
        return cls(success=True, sql=sql, explanation=explanation, intent=intent, strategy=strategy)

    @classmethod
    def failure(cls, code: ErrorCode, message: str, strategy: str = "rules") -> "SqlGenerationResult":
        return cls(success=False, error_code=code, error_message=message, strategy=strategy)


class QueryResponse(BaseModel):
    """What the agent hands back to the caller for one request."""
    success: bool
    message: str
    generated_sql: Optional[str] = None
    explanation: Optional[str] = None
    data: List[Dict[str, Any]] = Field(default_factory=list)
    requires_confirmation: bool = False
    execution_time_ms: Optional[int] = None
    error_code: Optional[ErrorCode] = None

    @classmethod
    def ok(cls, data: List[Dict[str, Any]], sql: str, explanation: Optional[str] = None,
           execution_time_ms: Optional[int] = None) -> "QueryResponse":
        return cls(success=True, message="Query executed successfully.", data=data, generated_sql=sql,
                   explanation=explanation, execution_time_ms=execution_time_ms)

    @classmethod
    def error(cls, code: ErrorCode, message: str, sql: Optional[str] = None) -> "QueryResponse":
        return cls(success=False, message=message, error_code=code, generated_sql=sql)

    @classmethod
    def confirmation_required(cls, sql: str, explanation: Optional[str]) -> "QueryResponse":
        return cls(success=True, message="Confirmation required before execution.", generated_sql=sql,
                   explanation=explanation, requires_confirmation=True)


class SecurityPolicy(BaseModel):
    """Permission flags and forbidden keywords the validator enforces."""
    model_config = ConfigDict(frozen=True)

    allow_dml: bool = False
    allow_ddl: bool = False
    forbidden_keywords: Tuple[str, ...] = ()

    @classmethod
    def from_settings(cls) -> "SecurityPolicy":
        return cls(allow_dml=ALLOW_DML, allow_ddl=ALLOW_DDL, forbidden_keywords=FORBIDDEN_KEYWORDS)
