# SQLPilot/core_logic/sql_synthesizer.py
import logging
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from config.patterns import (
    CONDITION_MARKER, GROUP_FIELD_HINTS, JOIN_KEY_HINT, MAIN_FIELD_HINTS, METRIC_FIELD_HINTS,
    NUMERIC_TYPE_HINTS, RANGE_MARKER, SUM_FIELD_HINTS, TIME_FIELD_HINTS
)
from core_logic.data_models import Aggregation, QueryIntent, QueryKind, SqlGenerationResult, TableSchema
from core_logic.errors import ErrorCode

synth_logger = logging.getLogger('SQLPilot.Synthesizer')

MAX_FALLBACK_FIELDS = 5

# Aggregation -> (function, output alias, preferred column hints)
AGGREGATE_OUTPUTS: Dict[Aggregation, Tuple[str, str, Tuple[str, ...]]] = {
    Aggregation.SUM: ("SUM", "total_sum", SUM_FIELD_HINTS),
    Aggregation.AVG: ("AVG", "average_value", METRIC_FIELD_HINTS),
    Aggregation.MAX: ("MAX", "max_value", METRIC_FIELD_HINTS),
    Aggregation.MIN: ("MIN", "min_value", METRIC_FIELD_HINTS),
}
COUNT_OUTPUT = "COUNT(*) AS total_count"


# --- Column search ---

def is_numeric_type(data_type: Optional[str]) -> bool:
    lowered = (data_type or "").lower()
    return any(hint in lowered for hint in NUMERIC_TYPE_HINTS)


def qualify(table: TableSchema, column_name: str) -> str:
    return f"{table.name}.{column_name}"


def find_column(
    tables: Sequence[TableSchema],
    hints: Sequence[str],
    type_filter: Optional[Callable[[str], bool]] = None,
    fallback: bool = False,
    rank_hints: bool = True,
) -> Optional[str]:
    """
    Shared "best column for X" search across the relevant tables.

    With rank_hints the hints are tried one at a time in preference order, so an
    'amount' column anywhere beats a 'price' column in the first table. Without
    it the first column (in table order) containing any hint wins. fallback
    returns the first column that passes type_filter when no hint matched.
    Returns a qualified 'table.column' or None.
    """
    def passes(column) -> bool:
        return type_filter is None or type_filter(column.data_type)

    if rank_hints:
        for hint in hints:
            for table in tables:
                for column in table.columns:
                    if hint in column.name.lower() and passes(column):
                        return qualify(table, column.name)
    else:
        for table in tables:
            for column in table.columns:
                name = column.name.lower()
                if any(hint in name for hint in hints) and passes(column):
                    return qualify(table, column.name)

    if fallback and type_filter is not None:
        for table in tables:
            for column in table.columns:
                if passes(column):
                    return qualify(table, column.name)
    return None


def find_numeric_field(tables: Sequence[TableSchema], hints: Sequence[str] = SUM_FIELD_HINTS) -> Optional[str]:
    return find_column(tables, hints, type_filter=is_numeric_type, fallback=True)


def find_group_field(tables: Sequence[TableSchema]) -> Optional[str]:
    return find_column(tables, GROUP_FIELD_HINTS)


def find_order_field(tables: Sequence[TableSchema], intent: QueryIntent) -> Optional[str]:
    if intent.aggregations:
        return find_numeric_field(tables)
    return find_column(tables, TIME_FIELD_HINTS, rank_hints=False)


def select_main_fields(tables: Sequence[TableSchema]) -> List[str]:
    """Primary keys plus descriptive columns; the first few columns of the main table otherwise."""
    fields: List[str] = []
    for table in tables:
        fields.extend(qualify(table, pk) for pk in table.primary_keys)
        for column in table.columns:
            name = column.name.lower()
            if any(hint in name for hint in MAIN_FIELD_HINTS):
                fields.append(qualify(table, column.name))

    if not fields and tables:
        first = tables[0]
        fields = [qualify(first, c.name) for c in first.columns[:MAX_FALLBACK_FIELDS]]

    return list(dict.fromkeys(fields))


def find_join_condition(main: TableSchema, other: TableSchema) -> Optional[str]:
    # 1. FK on the main table pointing at the joined table
    for column, target in main.foreign_keys.items():
        if target.startswith(other.name + "."):
            return f"{qualify(main, column)} = {target}"

    # 2. FK on the joined table pointing back at the main table
    for column, target in other.foreign_keys.items():
        if target.startswith(main.name + "."):
            return f"{qualify(other, column)} = {target}"

    # 3. Identically named id-like columns
    for main_column in main.columns:
        for other_column in other.columns:
            if main_column.name == other_column.name and JOIN_KEY_HINT in main_column.name.lower():
                return f"{qualify(main, main_column.name)} = {qualify(other, other_column.name)}"

    return None


# --- Clause builders ---

def build_select_clause(intent: QueryIntent, tables: Sequence[TableSchema]) -> str:
    fields: List[str] = []

    if intent.aggregations:
        for aggregation in intent.aggregations:
            if aggregation is Aggregation.COUNT:
                fields.append(COUNT_OUTPUT)
                continue
            function, alias, hints = AGGREGATE_OUTPUTS[aggregation]
            field = find_numeric_field(tables, hints)
            if field:
                fields.append(f"{function}({field}) AS {alias}")
            else:
                synth_logger.debug(f"No numeric column for {function}; aggregation omitted.")

        if QueryKind.GROUP in intent.query_types:
            group_field = find_group_field(tables)
            if group_field:
                fields.insert(0, group_field)
    else:
        fields.extend(select_main_fields(tables))

    return "SELECT " + (", ".join(fields) if fields else "*")


def build_join_clauses(tables: Sequence[TableSchema]) -> List[str]:
    main = tables[0]
    joins = []
    for other in tables[1:]:
        condition = find_join_condition(main, other)
        if condition:
            joins.append(f"LEFT JOIN {other.name} ON {condition}")
        else:
            synth_logger.info(f"Relevant table '{other.name}' has no join path to '{main.name}'; skipped.")
    return joins


def build_where_clause(intent: QueryIntent, tables: Sequence[TableSchema]) -> Optional[str]:
    predicates: List[str] = []
    if intent.time_range:
        predicates.append(intent.time_range)

    for descriptor in intent.conditions:
        if not (descriptor.startswith(CONDITION_MARKER) or descriptor.startswith(RANGE_MARKER)):
            continue
        condition = descriptor.split(": ", 1)[1]
        # Inline conditions carry no column; bind to the preferred numeric field.
        field = find_numeric_field(tables)
        if field:
            predicates.append(f"{field} {condition}")

    if not predicates:
        return None
    return "WHERE " + " AND ".join(predicates)


def build_group_by_clause(intent: QueryIntent, tables: Sequence[TableSchema]) -> Optional[str]:
    if QueryKind.GROUP not in intent.query_types or not intent.aggregations:
        return None
    group_field = find_group_field(tables)
    return f"GROUP BY {group_field}" if group_field else None


def build_order_by_clause(intent: QueryIntent, tables: Sequence[TableSchema]) -> Optional[str]:
    if intent.order_direction is None:
        return None
    order_field = find_order_field(tables, intent)
    return f"ORDER BY {order_field} {intent.order_direction.value}" if order_field else None


def build_sql(intent: QueryIntent, tables: Sequence[TableSchema]) -> str:
    """Assembles one SELECT statement from an intent and its resolved tables (non-empty)."""
    clauses: List[Optional[str]] = [
        build_select_clause(intent, tables),
        f"FROM {tables[0].name}",
        *build_join_clauses(tables),
        build_where_clause(intent, tables),
        build_group_by_clause(intent, tables),
        build_order_by_clause(intent, tables),
        f"LIMIT {intent.limit_count}" if intent.limit_count is not None else None,
    ]
    return " ".join(clause for clause in clauses if clause)


def build_explanation(intent: QueryIntent, sql: str) -> str:
    """Human-facing echo of the interpretation, shown before confirmation. Not meant to be parsed."""
    lines = [f'For your request "{intent.original_query}", I understood that you want to:']
    if intent.aggregations:
        lines.append("- compute statistics: " + ", ".join(a.value for a in intent.aggregations))
    if intent.relevant_tables:
        lines.append("- query tables: " + ", ".join(intent.relevant_tables))
    if intent.time_range:
        lines.append("- restrict results to a time range")
    if intent.limit_count is not None:
        lines.append(f"- return at most {intent.limit_count} rows")
    lines.append("")
    lines.append("Generated SQL:")
    lines.append(sql)
    return "\n".join(lines)


def synthesize(intent: QueryIntent, schemas: Mapping[str, TableSchema]) -> SqlGenerationResult:
    """
    Deterministically builds a SELECT for the intent. Missing or unresolvable
    tables come back as a failed result, never as an exception.
    """
    if not intent.relevant_tables:
        synth_logger.info(f"No relevant table for '{intent.original_query[:40]}'.")
        return SqlGenerationResult.failure(
            ErrorCode.NO_RELEVANT_TABLE,
            "No relevant table found. Please mention what data you are looking for more specifically.",
        )

    tables = [schemas[name] for name in intent.relevant_tables if name in schemas]
    if not tables:
        synth_logger.error(f"Relevant tables {intent.relevant_tables} missing from schema map.")
        return SqlGenerationResult.failure(
            ErrorCode.UNRESOLVED_TABLE,
            f"Schema information for tables {intent.relevant_tables} could not be resolved.",
        )

    sql = build_sql(intent, tables)
    synth_logger.info(f"Synthesized SQL: {sql}")
    return SqlGenerationResult.ok(sql, build_explanation(intent, sql), intent)
