import json
import logging
from typing import Any, Callable, Dict, List, Optional

from utils import config
from utils.aiAPI import generateResponse
from utils.context import identify_relevant_tables, limit_schema_context, minimal_schema
from utils.engine import is_read_only
from utils.errors import ModelLimitError, SchemaContextError
from utils.schema import Schema, schema_to_dict
from utils.service import SchemaContextService, detect_database, resolve_target_database

logger = logging.getLogger(__name__)

MAX_EXPLAINED_ROWS = 10

SQL_INSTRUCTIONS = """
Important instructions:
1. Generate ONLY the SQL query without ANY explanations or comments.
2. Even if the query requires joins or subqueries to connect tables, still return ONLY the SQL.
3. Do not prefix your response with text like "SQL:" or similar.
4. If a query needs to find information based on a name or other identifier that requires joining tables, always produce a valid SQL query.
5. For complex queries involving multiple tables, use appropriate JOIN statements, following the References of each column.
6. Do NOT return text explaining why you can't generate a query - if it's possible to write SQL for the request, write it.
7. Your response must begin with SQL keywords like SELECT, SHOW or DESCRIBE.
"""

EXPLAIN_PROMPT = """You are a helpful assistant that explains database query results in natural language.
Your task is to provide a clear, concise explanation of the query results."""

Completer = Callable[..., str]


def strip_formatting(result: str) -> str:
    result = result.strip().strip("`").strip()
    if result.lower().startswith("sql"):
        result = result[3:].strip()
    return result


def sql_prompt(schema_json: str, label: str = "database schema information") -> str:
    return f"""You are a helpful SQL query generator. Your task is to convert natural language into valid SQL queries.

Here is the {label}:
{schema_json}
{SQL_INSTRUCTIONS}"""


class QueryAssistant:
    """Turns a question into SQL, runs it and narrates the rows."""

    def __init__(
        self,
        service: SchemaContextService,
        complete: Completer = generateResponse,
        model: Optional[str] = None,
        fallback_model: Optional[str] = None,
    ):
        self.service = service
        self.complete = complete
        self.model = model or config.LLM_MODEL
        self.fallback_model = fallback_model or config.LLM_FALLBACK_MODEL

    def generate_sql(self, question: str, schema: Schema, database: Optional[str] = None) -> str:
        focused = limit_schema_context(schema, database)
        try:
            result = self.complete(
                sql_prompt(json.dumps(schema_to_dict(focused), indent=2)), question, self.model
            )
        except ModelLimitError:
            # one downgrade: smaller model, primary keys only
            logger.warning("Falling back to %s due to model limits", self.fallback_model)
            result = self.complete(
                sql_prompt(json.dumps(minimal_schema(focused), indent=2), "minimal database schema information"),
                question,
                self.fallback_model,
            )
        return strip_formatting(result)

    def explain_results(self, question: str, rows: List[Dict[str, Any]]) -> str:
        limited = rows[:MAX_EXPLAINED_ROWS]
        note = f"(Showing first {MAX_EXPLAINED_ROWS} of {len(rows)} results)" if len(rows) > MAX_EXPLAINED_ROWS else ""
        user_text = (
            f'Original question: "{question}"\n\n'
            f"Query results: {json.dumps(limited, indent=2, default=str)}\n"
            f"{note}\n\n"
            "Please explain these results in a conversational way."
        )
        try:
            return self.complete(EXPLAIN_PROMPT, user_text, self.model, temperature=0.7)
        except ModelLimitError:
            logger.warning("Falling back to %s for explanation due to model limits", self.fallback_model)
            return self.complete(EXPLAIN_PROMPT, user_text, self.fallback_model, temperature=0.7)

    def _schema_context(self, database: Optional[str]) -> Schema:
        cached = self.service.store.load()
        if database:
            if cached and database in cached:
                logger.info("Using cached schema for specific database: %s", database)
                return {database: cached[database]}
            return {database: self.service.get_database_schema(database, use_cache=False)}
        if cached:
            logger.info("Using complete cached schema")
            return cached
        return self.service.build_full_context(use_cache=False)

    def process_question(self, question: str, database: Optional[str] = None) -> Dict[str, Any]:
        try:
            all_databases = self.service.all_databases()
            if not database:
                database = detect_database(question, config.user_databases(all_databases))

            context = self._schema_context(database)
            reduced = identify_relevant_tables(question, context)
            sql = self.generate_sql(question, reduced, database)

            # anything that is not a read-only statement is the model explaining itself
            if not is_read_only(sql):
                return {"query": question, "sql": None, "results": None, "explanation": sql}

            target = resolve_target_database(question, database, reduced, all_databases, sql=sql)
            results = self.service.introspector.run_query(sql, target)
            explanation = self.explain_results(question, results)
            return {"query": question, "sql": sql, "results": results, "explanation": explanation}
        except SchemaContextError as e:
            logger.error("Error processing natural language query: %s", e.message)
            return {"query": question, "sql": None, "results": None, "explanation": f"I encountered an error: {e.message}"}
        except Exception as e:
            logger.exception("Error processing natural language query")
            return {"query": question, "sql": None, "results": None, "explanation": f"I encountered an error: {str(e)}"}
