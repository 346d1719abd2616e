import pytest
from pydantic import ValidationError

from core_logic.data_models import (
    Aggregation, ColumnInfo, QueryIntent, QueryKind, QueryResponse, SecurityPolicy, SqlGenerationResult,
    TableSchema, ValidationResult,
)
from core_logic.errors import ErrorCode, SQLPilotError, UpstreamUnavailableError


def test_table_schema_rejects_unknown_primary_key():
    with pytest.raises(ValidationError):
        TableSchema(name="t", columns=[ColumnInfo(name="a", data_type="INT")], primary_keys=["b"])


def test_table_schema_rejects_foreign_key_on_missing_column():
    with pytest.raises(ValidationError):
        TableSchema(name="t", columns=[ColumnInfo(name="a", data_type="INT")], foreign_keys={"b": "u.id"})


def test_table_schema_rejects_malformed_foreign_key_target():
    with pytest.raises(ValidationError):
        TableSchema(name="t", columns=[ColumnInfo(name="a", data_type="INT")], foreign_keys={"a": "users"})


def test_table_schema_is_immutable(orders_schema):
    with pytest.raises(ValidationError):
        orders_schema.name = "other"


def test_table_schema_column_helpers(orders_schema):
    assert orders_schema.column_names() == ["id", "user_id", "amount", "status", "created_at"]
    assert orders_schema.get_column("amount").data_type == "DECIMAL(10,2)"
    assert orders_schema.get_column("missing") is None


def test_query_intent_defaults_to_select():
    assert QueryIntent().query_types == [QueryKind.SELECT]
    assert QueryIntent(query_types=[]).query_types == [QueryKind.SELECT]


def test_query_intent_dedupes_kinds_and_aggregations():
    intent = QueryIntent(
        query_types=[QueryKind.COUNT, QueryKind.COUNT],
        aggregations=[Aggregation.SUM, Aggregation.SUM, Aggregation.AVG],
    )
    assert intent.query_types == [QueryKind.COUNT]
    assert intent.aggregations == [Aggregation.SUM, Aggregation.AVG]


def test_query_intent_limit_must_be_positive():
    with pytest.raises(ValidationError):
        QueryIntent(limit_count=0)


def test_validation_result_factories():
    ok = ValidationResult.success(needs_confirmation=True)
    assert ok.valid and ok.needs_confirmation and ok.error_message is None

    bad = ValidationResult.error(ErrorCode.DML_DISALLOWED, "DML operations are disabled: DELETE")
    assert not bad.valid
    assert bad.needs_confirmation is False
    assert bad.error_code is ErrorCode.DML_DISALLOWED


def test_generation_and_response_factories():
    failure = SqlGenerationResult.failure(ErrorCode.NO_RELEVANT_TABLE, "nothing")
    assert not failure.success and failure.sql is None

    response = QueryResponse.confirmation_required("DELETE FROM users", "explain")
    assert response.requires_confirmation
    assert response.data == []


def test_security_policy_defaults_are_closed():
    policy = SecurityPolicy()
    assert policy.allow_dml is False
    assert policy.allow_ddl is False


def test_error_string_carries_code():
    error = UpstreamUnavailableError("AI model timed out")
    assert isinstance(error, SQLPilotError)
    assert error.code is ErrorCode.UPSTREAM_UNAVAILABLE
    assert str(error) == "[UPSTREAM_UNAVAILABLE] AI model timed out"
