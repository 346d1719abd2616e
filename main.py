# SQLPilot/main.py
import argparse
import json
import logging
from typing import Union

from sqlalchemy.engine import Engine

from config.settings import DB_URI, LOG_LEVEL, USE_AI
from core_logic.data_models import QueryResponse
from core_logic.llm_agent import OllamaClient, SQLAgent
from core_logic.safe_connector import SafeDatabaseConnector
from ingestion.introspection import SchemaCatalog

# Configure basic logging to see the flow
logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
main_logger = logging.getLogger('SQLPilot.Main')


# --- 1. System Initialization ---
def initialize_system(db_uri: Union[str, Engine] = DB_URI, use_ai: bool = USE_AI) -> SQLAgent:
    main_logger.info("--- INITIALIZING SQLPILOT ---")

    db_connector = SafeDatabaseConnector(db_uri)
    # Catalog and connector share one engine (and one pool)
    catalog = SchemaCatalog(db_connector.engine)
    ai_client = OllamaClient() if use_ai else None
    agent = SQLAgent(catalog, db_connector, ai_client=ai_client, use_ai=use_ai)

    main_logger.info("--- System Ready. ---")
    return agent


# --- 2. Run Query Function ---
def process_query(agent: SQLAgent, query: str, confirmed: bool = False) -> QueryResponse:
    main_logger.info(f"--- PROCESSING USER QUERY: '{query}' ---")
    try:
        response = agent.run(query, confirmed=confirmed)
    except Exception as e:
        # Request boundary: unexpected faults (e.g. catalog I/O) become a failed response
        main_logger.exception("Unexpected failure while processing query")
        return QueryResponse(success=False, message=f"Processing failed: {e}")

    # A held statement is also a success; check the gate first.
    if response.requires_confirmation:
        main_logger.warning(f"CONFIRMATION REQUIRED: {response.generated_sql}")
        print(f"{response.message}\n{response.generated_sql}\nRe-run with --yes to execute.")
    elif response.success:
        main_logger.info(f"SQL SUCCESS: {response.generated_sql}")
        print(response.explanation or "")
        print(json.dumps(response.data, ensure_ascii=False, indent=2, default=str))
    else:
        main_logger.error(f"AGENT FAILURE: [{response.error_code}] {response.message}")
        print(f"SQLPilot Error: {response.message}")
    return response


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Translate a natural-language question into SQL and run it.")
    parser.add_argument("query", nargs="+", help="Question in Chinese or English, e.g. 用户总数")
    parser.add_argument("--db", default=DB_URI, help="SQLAlchemy database URI")
    parser.add_argument("--no-ai", action="store_true", help="Use the rule-based planner only")
    parser.add_argument("--yes", action="store_true", help="Confirm statements that modify data")
    args = parser.parse_args()

    agent = initialize_system(args.db, use_ai=USE_AI and not args.no_ai)
    process_query(agent, " ".join(args.query), confirmed=args.yes)
