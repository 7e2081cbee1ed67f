"""
Narrows a full multi-database schema to what a single question needs, and
keeps the serialized result inside the prompt budget.
"""
import json
import logging
from typing import Dict, List, Optional

from utils import config
from utils.schema import KeyKind, Schema, copy_schema, schema_to_dict

logger = logging.getLogger(__name__)

STOP_WORDS = {"what", "when", "where", "which", "how", "many", "much", "were", "does", "have"}

FALLBACK_SAMPLE_SIZE = 3


def extract_keywords(question: str) -> List[str]:
    return [
        word for word in question.lower().split()
        if len(word) > 3 and word not in STOP_WORDS
    ]


def _matches(name: str, keywords: List[str]) -> bool:
    # plain substring containment, "user" also matches "users_archive"
    name = name.lower()
    return any(keyword in name for keyword in keywords)


def sample_schema(schema: Schema, size: int = FALLBACK_SAMPLE_SIZE) -> Schema:
    return {
        database: {table: tables[table] for table in list(tables)[:size]}
        for database, tables in schema.items()
    }


def identify_relevant_tables(question: str, schema: Schema) -> Schema:
    """
    Keep the tables whose name or column names contain a keyword of the
    question. A database whose own name matches, but none of whose tables
    do, is kept whole. When nothing matches anywhere a small sample of every
    database is returned instead, so the result is never empty for a
    non-empty schema.
    """
    keywords = extract_keywords(question)
    logger.debug("Identifying relevant tables for keywords: %s", keywords)

    reduced: Schema = {}
    for database, tables in schema.items():
        database_relevant = _matches(database, keywords)
        relevant = {}
        for table, columns in tables.items():
            if _matches(table, keywords) or any(_matches(c.name, keywords) for c in columns):
                relevant[table] = columns

        if relevant:
            reduced[database] = relevant
        elif database_relevant:
            reduced[database] = dict(tables)

    if not reduced:
        logger.info("No specific relevance found, using a sample of the schema")
        return sample_schema(schema)
    return reduced


def context_size(schema: Schema) -> int:
    return len(json.dumps(schema_to_dict(schema)))


def limit_schema_context(
    schema: Schema,
    selected_database: Optional[str] = None,
    max_chars: Optional[int] = None,
    large_database_tables: Optional[int] = None,
) -> Schema:
    """
    Shrink ``schema`` for a prompt. Column types of databases with many
    tables are dropped, largest database first, until the serialized size
    fits ``max_chars``. Field names, keys and references always stay.
    """
    if selected_database and selected_database in schema:
        return {selected_database: schema[selected_database]}

    max_chars = max_chars if max_chars is not None else config.CONTEXT_MAX_CHARS
    large_database_tables = (
        large_database_tables if large_database_tables is not None else config.LARGE_DATABASE_TABLES
    )

    reduced = copy_schema(schema)
    size = context_size(reduced)
    if size <= max_chars:
        return reduced

    logger.info("Schema context too large (%d chars), optimizing large databases", size)
    large = sorted(
        (database for database, tables in reduced.items() if len(tables) > large_database_tables),
        key=lambda database: len(reduced[database]),
        reverse=True,
    )
    for database in large:
        for columns in reduced[database].values():
            for column in columns:
                column.type = None
        size = context_size(reduced)
        if size <= max_chars:
            break
    else:
        if size > max_chars:
            logger.warning("Schema context still %d chars after dropping column types", size)
    return reduced


def minimal_schema(schema: Schema) -> Dict[str, Dict[str, str]]:
    """Table names with their primary key columns only, for the downgraded prompt."""
    minimal = {}
    for database, tables in schema.items():
        minimal[database] = {}
        for table, columns in tables.items():
            primary_keys = [c.name for c in columns if c.key_kind == KeyKind.PRIMARY]
            minimal[database][table] = (
                f"Primary keys: {', '.join(primary_keys)}" if primary_keys else "No primary keys"
            )
    return minimal
