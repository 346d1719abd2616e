# SQLPilot/core_logic/relevance_ranker.py
import json
import logging
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from config.patterns import DEFAULT_GLOSSARY
from config.settings import GLOSSARY_PATH
from core_logic.data_models import TableSchema

ranker_logger = logging.getLogger('SQLPilot.Ranker')

Glossary = Tuple[Tuple[str, Tuple[str, ...]], ...]

# Scoring weights (lower-cased substring containment against the query vocabulary)
TABLE_NAME_WEIGHT = 10.0
TABLE_SEGMENT_WEIGHT = 3.0
COLUMN_NAME_WEIGHT = 2.0
COLUMN_SEGMENT_WEIGHT = 1.0


def load_glossary(path: Optional[str] = None, base: Glossary = DEFAULT_GLOSSARY) -> Glossary:
    """
    Extends the built-in glossary with a JSON file of the form
    {"term": ["identifier", ...]}. Entries from the file come first.
    """
    if not path:
        return base
    with open(path, encoding="utf-8") as fh:
        raw = json.load(fh)
    extra = tuple((str(term), tuple(str(i) for i in identifiers)) for term, identifiers in raw.items())
    ranker_logger.info(f"Loaded {len(extra)} glossary terms from {path}")
    return extra + tuple(base)


def configured_glossary() -> Glossary:
    return load_glossary(GLOSSARY_PATH)


def expand_vocabulary(text: str, glossary: Iterable[Tuple[str, Sequence[str]]] = DEFAULT_GLOSSARY) -> str:
    """Lower-cased text followed by the identifiers of every glossary term it contains."""
    lowered = (text or "").lower()
    extra: List[str] = []
    for term, identifiers in glossary:
        if term.lower() in lowered:
            extra.extend(i.lower() for i in identifiers)
    if not extra:
        return lowered
    return lowered + " " + " ".join(extra)


def score_table(vocabulary: str, schema: TableSchema) -> float:
    """Bag-of-substrings relevance of one table against an already lower-cased vocabulary."""
    score = 0.0
    table_name = schema.name.lower()

    if table_name in vocabulary:
        score += TABLE_NAME_WEIGHT
    for part in table_name.split("_"):
        if part in vocabulary:
            score += TABLE_SEGMENT_WEIGHT

    for column in schema.columns:
        column_name = column.name.lower()
        if column_name in vocabulary:
            score += COLUMN_NAME_WEIGHT
        for part in column_name.split("_"):
            if part in vocabulary:
                score += COLUMN_SEGMENT_WEIGHT

    return score


def rank_with_scores(
    text: str,
    schemas: Sequence[TableSchema],
    glossary: Iterable[Tuple[str, Sequence[str]]] = DEFAULT_GLOSSARY,
) -> List[Tuple[str, float]]:
    """(table, score) pairs, strictly descending by score; ties keep catalog order."""
    if not schemas:
        return []

    vocabulary = expand_vocabulary(text, glossary)
    scores = np.array([score_table(vocabulary, schema) for schema in schemas], dtype=float)

    # Stable sort on the negated scores keeps catalog order among equal scores.
    order = np.argsort(-scores, kind="stable")
    ranked = [(schemas[i].name, float(scores[i])) for i in order if scores[i] > 0]

    for name, score in ranked:
        ranker_logger.debug(f"Table {name} relevance: {score}")
    return ranked


def rank(
    text: str,
    schemas: Sequence[TableSchema],
    glossary: Iterable[Tuple[str, Sequence[str]]] = DEFAULT_GLOSSARY,
) -> List[str]:
    """Relevant table names, most relevant first. Tables scoring 0 are excluded."""
    ranked = [name for name, _ in rank_with_scores(text, schemas, glossary)]
    ranker_logger.info(f"Relevant tables for '{(text or '')[:40]}': {ranked}")
    return ranked
