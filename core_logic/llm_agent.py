# SQLPilot/core_logic/llm_agent.py
import re
import time
from typing import Dict, List, Optional, Tuple
import logging

import httpx

from config.settings import (
    AI_HEALTH_TIMEOUT_SECONDS, AI_ROW_LIMIT, AI_TIMEOUT_SECONDS, DEFAULT_ROW_LIMIT, MAX_RETRY_COUNT,
    OLLAMA_BASE_URL, OLLAMA_MODEL, SQL_END_TOKEN, SQL_START_TOKEN, USE_AI
)
from config.prompts import SYSTEM_PROMPT_TEMPLATE, CRITIC_PROMPT_TEMPLATE
from core_logic.data_models import QueryResponse, SqlGenerationResult, TableSchema
from core_logic.errors import ErrorCode, UpstreamUnavailableError
from core_logic.query_planner import QueryPlanner
from core_logic.safe_connector import SafeDatabaseConnector
from core_logic.sql_validator import SQLValidator, sanitize_sql
from ingestion.introspection import SchemaCatalog, build_schema_context

agent_logger = logging.getLogger('SQLPilot.Agent')

_SQL_VERBS = ("SELECT", "WITH", "INSERT", "UPDATE", "DELETE")
# Explanatory lines models like to wrap around the statement
_EXPLANATION_PREFIXES = ("这个", "根据", "以上", "注意", "note", "this query", "explanation")
_CODE_FENCE = re.compile(r"```(?:sql)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)


# --- AI Client (Ollama-compatible endpoint) ---
class OllamaClient:
    """Calls an external model over HTTP. Every call is bounded by a timeout."""
    def __init__(self, base_url: str = OLLAMA_BASE_URL, model: str = OLLAMA_MODEL,
                 timeout: float = AI_TIMEOUT_SECONDS, health_timeout: float = AI_HEALTH_TIMEOUT_SECONDS,
                 transport: Optional[httpx.BaseTransport] = None):
        self.model_name = model
        self.timeout = timeout
        self.health_timeout = health_timeout
        self.http = httpx.Client(base_url=base_url, transport=transport)

    def is_available(self) -> bool:
        try:
            response = self.http.get("/api/tags", timeout=self.health_timeout)
            response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            agent_logger.warning(f"AI service unavailable: {e}")
            return False

    def generate(self, prompt: str) -> str:
        payload = {
            "model": self.model_name,
            "prompt": prompt,
            "stream": False,
            # Low temperature for deterministic SQL
            "options": {"temperature": 0.1, "top_p": 0.9, "repeat_penalty": 1.1},
        }
        agent_logger.debug(f"Sending prompt to AI model: {prompt[:100]}")
        try:
            response = self.http.post("/api/generate", json=payload, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as e:
            raise UpstreamUnavailableError(f"AI model timed out after {self.timeout:.0f}s.", e) from e
        except httpx.HTTPError as e:
            raise UpstreamUnavailableError(f"AI model call failed: {e}", e) from e
        except ValueError as e:
            raise UpstreamUnavailableError("AI model returned a malformed response.", e) from e

        text = body.get("response") if isinstance(body, dict) else None
        if not text or not text.strip():
            raise UpstreamUnavailableError("AI model returned an empty response.")
        return text


def extract_sql(response_text: str) -> Optional[str]:
    """
    Pulls the statement out of a model response: start/end tokens first, then
    a fenced code block, then the lines from the first SQL verb onwards.
    """
    pattern = re.escape(SQL_START_TOKEN) + r"\s*(.*?)\s*" + re.escape(SQL_END_TOKEN)
    match = re.search(pattern, response_text, re.DOTALL | re.IGNORECASE)
    if match and match.group(1).strip():
        return match.group(1).strip().replace("`", "")

    fenced = _CODE_FENCE.search(response_text)
    if fenced and fenced.group(1).strip():
        return fenced.group(1).strip()

    collected: List[str] = []
    for line in response_text.strip().splitlines():
        stripped = line.strip()
        if not stripped or stripped.lower().startswith(_EXPLANATION_PREFIXES):
            continue
        if not collected and not stripped.upper().startswith(_SQL_VERBS):
            continue
        collected.append(stripped)

    if collected:
        return " ".join(collected)
    return None


def clean_generated_sql(sql: Optional[str], row_limit: int = AI_ROW_LIMIT) -> str:
    if not sql or not sql.strip():
        raise UpstreamUnavailableError("AI model produced no SQL.")

    cleaned = re.sub(r";+$", "", sql.strip().replace("```sql", "").replace("```", "").strip())
    upper_sql = cleaned.upper()
    if "SELECT" in upper_sql and "LIMIT" not in upper_sql:
        cleaned += f" LIMIT {row_limit}"
    return cleaned


# --- Prompt Builder ---
class DynamicPromptBuilder:
    """Assembles the prompt from the schema context, for first generation or self-correction."""

    def build_sql_prompt(self, user_query: str, schema_context: str,
                         error_details: Optional[Dict] = None) -> str:
        if error_details:
            prompt = CRITIC_PROMPT_TEMPLATE.format(
                failed_query=error_details['query'],
                error_message=error_details['error']
            )
            prompt += f"\n--- DATABASE SCHEMA (Original) ---\n{schema_context}"
            prompt += f"\n--- USER REQUEST (Original) ---\n{user_query}"
        else:
            prompt = SYSTEM_PROMPT_TEMPLATE.format(schema_context=schema_context)
            prompt += f"\n--- USER REQUEST ---\n{user_query}"
        return prompt


# --- Core Agent Logic ---
class SQLAgent:
    """
    Request-level orchestration: pick a generation strategy, pass every
    candidate statement through the validator, hold risky statements for
    confirmation, execute the rest.
    """

    def __init__(self, catalog: SchemaCatalog, db_connector: SafeDatabaseConnector,
                 planner: Optional[QueryPlanner] = None, ai_client: Optional[OllamaClient] = None,
                 validator: Optional[SQLValidator] = None, use_ai: bool = USE_AI,
                 row_limit: int = DEFAULT_ROW_LIMIT):
        self.catalog = catalog
        self.db_connector = db_connector
        self.planner = planner or QueryPlanner(catalog)
        self.ai_client = ai_client
        self.validator = validator or SQLValidator()
        self.use_ai = use_ai
        self.row_limit = row_limit
        self.prompt_builder = DynamicPromptBuilder()

    # --- Generation ---

    def _generate_with_ai(self, user_query: str, error_details: Optional[Dict] = None) -> SqlGenerationResult:
        schema_context = build_schema_context(self.catalog.snapshot())
        prompt = self.prompt_builder.build_sql_prompt(user_query, schema_context, error_details)

        start_time = time.time()
        response_text = self.ai_client.generate(prompt)
        agent_logger.info(f"AI SQL Generation Latency: {time.time() - start_time:.2f}s")

        sql = clean_generated_sql(extract_sql(response_text))
        return SqlGenerationResult.ok(sql, f"Generated by the AI model for your request: {user_query}",
                                      strategy="ai")

    def generate(self, user_query: str) -> SqlGenerationResult:
        """AI strategy when enabled and reachable; the rule-based planner otherwise or on AI failure."""
        if self.use_ai and self.ai_client is not None and self.ai_client.is_available():
            try:
                return self._generate_with_ai(user_query)
            except UpstreamUnavailableError as e:
                agent_logger.warning(f"AI generation failed, falling back to rules: {e}")
        else:
            agent_logger.info("AI generation disabled or unavailable; using rule-based planner.")
        return self.planner.generate_sql(user_query)

    # --- Validation and Execution ---

    def _execute(self, sql: str) -> Tuple[List[Dict], int]:
        start_time = time.time()
        rows = self.db_connector.execute_sql(sql, self.row_limit)
        return rows, int((time.time() - start_time) * 1000)

    def _check_ai_syntax(self, sql: str) -> None:
        if sql.upper().startswith("SELECT") and not self.db_connector.validate_sql_syntax(sql):
            raise ValueError("Generated SQL failed the EXPLAIN syntax check.")

    def _validate_and_execute(self, generation: SqlGenerationResult, user_query: str,
                              confirmed: bool) -> QueryResponse:
        for attempt in range(MAX_RETRY_COUNT + 1):
            sql = sanitize_sql(generation.sql)
            validation = self.validator.validate(sql)
            if not validation.valid:
                return QueryResponse.error(validation.error_code, validation.error_message, sql)

            if validation.needs_confirmation and not confirmed:
                agent_logger.info(f"Statement held for confirmation: {sql}")
                return QueryResponse.confirmation_required(sql, generation.explanation)

            try:
                if generation.strategy == "ai":
                    self._check_ai_syntax(sql)
                rows, elapsed_ms = self._execute(sql)
                return QueryResponse.ok(rows, sql, generation.explanation, elapsed_ms)

            except TimeoutError as e:
                return QueryResponse.error(ErrorCode.EXECUTION_TIMEOUT, str(e), sql)

            except ValueError as e:
                error_message = str(e)
                agent_logger.warning(f"Execution failed on attempt {attempt}: {error_message[:100]}")
                if generation.strategy != "ai" or attempt == MAX_RETRY_COUNT:
                    return QueryResponse.error(ErrorCode.EXECUTION_FAILED, error_message, sql)
                try:
                    generation = self._generate_with_ai(user_query, {"query": sql, "error": error_message})
                except UpstreamUnavailableError as upstream:
                    return QueryResponse.error(ErrorCode.EXECUTION_FAILED,
                                               f"{error_message} (self-correction failed: {upstream.message})", sql)

        return QueryResponse.error(ErrorCode.EXECUTION_FAILED, "SQL failed execution after max retries.")

    def run(self, user_query: str, confirmed: bool = False) -> QueryResponse:
        if not user_query or not user_query.strip():
            return QueryResponse.error(ErrorCode.EMPTY_INPUT, "Query must not be empty.")

        agent_logger.info(f"Processing query: '{user_query}'")
        generation = self.generate(user_query)
        if not generation.success:
            return QueryResponse.error(generation.error_code, generation.error_message)

        return self._validate_and_execute(generation, user_query, confirmed)

    def execute_confirmed(self, sql: str) -> QueryResponse:
        """Runs a statement the user approved. It is validated again before execution."""
        clean_sql = sanitize_sql(sql)
        validation = self.validator.validate(clean_sql)
        if not validation.valid:
            return QueryResponse.error(validation.error_code, validation.error_message, clean_sql)
        try:
            rows, elapsed_ms = self._execute(clean_sql)
        except TimeoutError as e:
            return QueryResponse.error(ErrorCode.EXECUTION_TIMEOUT, str(e), clean_sql)
        except ValueError as e:
            return QueryResponse.error(ErrorCode.EXECUTION_FAILED, str(e), clean_sql)
        return QueryResponse.ok(rows, clean_sql, execution_time_ms=elapsed_ms)

    # --- Catalog pass-through ---

    def list_tables(self) -> List[str]:
        return self.catalog.list_tables()

    def describe_table(self, table_name: str) -> TableSchema:
        return self.catalog.describe_table(table_name)
