# SQLPilot/core_logic/query_planner.py
import logging
import time
from typing import Optional

from config.patterns import DEFAULT_PATTERNS, PatternSet
from core_logic.data_models import SqlGenerationResult
from core_logic.errors import ErrorCode
from core_logic.intent_extractor import extract_intent
from core_logic.relevance_ranker import Glossary, configured_glossary
from core_logic.sql_synthesizer import synthesize
from ingestion.introspection import SchemaCatalog

planner_logger = logging.getLogger('SQLPilot.Planner')


class QueryPlanner:
    """Rule-based strategy: catalog snapshot -> intent -> ranked tables -> SELECT."""

    def __init__(self, catalog: SchemaCatalog, patterns: PatternSet = DEFAULT_PATTERNS,
                 glossary: Optional[Glossary] = None):
        self.catalog = catalog
        self.patterns = patterns
        self.glossary = glossary if glossary is not None else configured_glossary()

    def generate_sql(self, user_query: str) -> SqlGenerationResult:
        """
        Catalog I/O faults propagate to the caller; every other failure comes
        back as a structured SqlGenerationResult.
        """
        if not user_query or not user_query.strip():
            return SqlGenerationResult.failure(ErrorCode.EMPTY_INPUT, "Query must not be empty.")

        start_time = time.time()
        schemas = self.catalog.snapshot()
        intent = extract_intent(user_query, schemas, self.patterns, self.glossary)
        result = synthesize(intent, {schema.name: schema for schema in schemas})

        planner_logger.info(
            f"Rule-based planning {'succeeded' if result.success else 'failed'} "
            f"in {time.time() - start_time:.2f}s"
        )
        return result
