# SQLPilot/core_logic/intent_extractor.py
import logging
from typing import List, Optional, Sequence

from config.patterns import (
    COMPARATOR_OPERATORS, CONDITION_MARKER, DEFAULT_GLOSSARY, DEFAULT_PATTERNS, NUMBER_MARKER, RANGE_MARKER,
    PatternSet,
)
from core_logic.data_models import Aggregation, OrderDirection, QueryIntent, QueryKind, TableSchema
from core_logic.relevance_ranker import rank

intent_logger = logging.getLogger('SQLPilot.Intent')


def detect_query_types(text: str, patterns: PatternSet = DEFAULT_PATTERNS) -> List[QueryKind]:
    """Every kind whose trigger occurs anywhere in the text; [SELECT] when nothing matched."""
    kinds = [kind for pattern, kind in patterns.intents if pattern.search(text)]
    return kinds or [QueryKind.SELECT]


def detect_aggregations(text: str, patterns: PatternSet = DEFAULT_PATTERNS) -> List[Aggregation]:
    found: List[Aggregation] = []
    for pattern, aggregation in patterns.aggregations:
        if pattern.search(text) and aggregation not in found:
            found.append(aggregation)
    return found


def detect_time_range(text: str, patterns: PatternSet = DEFAULT_PATTERNS) -> Optional[str]:
    """First time phrase in table declaration order wins, regardless of position in the text."""
    for pattern, fragment in patterns.time_ranges:
        if pattern.search(text):
            return fragment
    return None


def detect_order_direction(text: str, patterns: PatternSet = DEFAULT_PATTERNS) -> Optional[OrderDirection]:
    for pattern, direction in patterns.orders:
        if pattern.search(text):
            return direction
    return None


def detect_limit(text: str, patterns: PatternSet = DEFAULT_PATTERNS) -> Optional[int]:
    match = patterns.limit.search(text)
    if not match:
        return None
    value = int(next(group for group in match.groups() if group is not None))
    return value if value > 0 else None


def extract_conditions(text: str, patterns: PatternSet = DEFAULT_PATTERNS) -> List[str]:
    """
    Three independent passes producing opaque descriptors. Nothing here is bound
    to a column; the synthesizer picks a field later.
    """
    conditions = [f"{NUMBER_MARKER}{m.group()}" for m in patterns.number.finditer(text)]

    for match in patterns.comparison.finditer(text):
        operator = COMPARATOR_OPERATORS.get(match.group(1).lower(), "=")
        conditions.append(f"{CONDITION_MARKER}{operator} {match.group(2)}")

    for match in patterns.range.finditer(text):
        conditions.append(f"{RANGE_MARKER}BETWEEN {match.group(1)} AND {match.group(2)}")

    return conditions


def extract_intent(
    text: str,
    available_schemas: Sequence[TableSchema] = (),
    patterns: PatternSet = DEFAULT_PATTERNS,
    glossary=DEFAULT_GLOSSARY,
) -> QueryIntent:
    """
    Parses free-form text into a QueryIntent. Never raises for string input:
    the worst case is an intent that only carries query_types=[SELECT].
    """
    text = text or ""
    intent_logger.debug(f"Analyzing intent: '{text[:80]}'")

    intent = QueryIntent(
        original_query=text,
        query_types=detect_query_types(text, patterns),
        relevant_tables=rank(text, available_schemas, glossary) if text.strip() else [],
        conditions=extract_conditions(text, patterns),
        aggregations=detect_aggregations(text, patterns),
        time_range=detect_time_range(text, patterns),
        order_direction=detect_order_direction(text, patterns),
        limit_count=detect_limit(text, patterns),
    )

    intent_logger.debug(
        f"Intent: types={[k.value for k in intent.query_types]}, tables={intent.relevant_tables}, "
        f"aggregations={[a.value for a in intent.aggregations]}, time_range={intent.time_range!r}, "
        f"order={intent.order_direction}, limit={intent.limit_count}"
    )
    return intent
