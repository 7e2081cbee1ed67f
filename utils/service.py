import logging
from typing import Dict, List, Optional

import sqlglot
from sqlglot import expressions
from sqlglot.errors import SqlglotError

from utils import config, relationships, schema_format
from utils.cache import SchemaStore
from utils.engine import SchemaIntrospector
from utils.errors import IntrospectionError, NotFoundError
from utils.schema import Column, Reference, RelationshipEdge, Schema

logger = logging.getLogger(__name__)


class SchemaContextService:
    """Decides between the cached snapshot and live introspection."""

    def __init__(self, store: SchemaStore = None, introspector: SchemaIntrospector = None):
        self.store = store or SchemaStore()
        self.introspector = introspector or SchemaIntrospector()

    def all_databases(self) -> List[str]:
        return self.introspector.list_databases()

    def list_databases(self) -> List[str]:
        return config.user_databases(self.all_databases())

    def introspect_database(self, database: str) -> Dict[str, List[Column]]:
        return {
            table: self.introspector.describe_table(database, table)
            for table in self.introspector.list_tables(database)
        }

    def get_database_schema(self, database: str, use_cache: bool = True) -> Dict[str, List[Column]]:
        # a live result is not written back, caching happens at the aggregate level
        if use_cache:
            cached = self.store.load()
            if cached and database in cached:
                logger.info("Using cached schema for database %s", database)
                return cached[database]
        return self.introspect_database(database)

    def get_table(self, database: str, table: str) -> List[Column]:
        tables = self.get_database_schema(database)
        if table not in tables:
            raise NotFoundError(f"Table {table} not found in database {database}")
        return tables[table]

    def build_full_context(self, use_cache: bool = True) -> Schema:
        if use_cache:
            cached = self.store.load()
            if cached:
                logger.info("Using cached schema context")
                return cached

        context: Schema = {}
        for database in self.list_databases():
            try:
                context[database] = self.introspect_database(database)
            except IntrospectionError as e:
                logger.error("Skipping database %s due to error: %s", database, e.message)

        self.store.save(context)
        return context

    def cache_databases(self, databases: List[str]) -> Schema:
        """Introspect only ``databases`` and merge them into the cached snapshot."""
        partial = {database: self.introspect_database(database) for database in databases}
        return self.store.update(partial)

    def cached_schema(self) -> Schema:
        schema = self.store.load()
        if not schema:
            raise NotFoundError("No cached schema found")
        return schema

    def import_schema(self, schema: Schema) -> Schema:
        self.store.save(schema)
        return schema

    def export_text(self) -> str:
        return schema_format.encode(self.cached_schema())

    def add_relationship(self, edge: RelationshipEdge) -> Schema:
        schema = self.store.load() or {}
        target = Reference(
            database=edge.target_database,
            table=edge.target_table,
            column=edge.target_column,
            type=edge.type,
        )
        relationships.add_reference(
            schema, edge.source_database, edge.source_table, edge.source_column, target
        )
        self.store.save(schema)
        return schema

    def remove_relationship(self, edge: RelationshipEdge) -> Schema:
        schema = self.cached_schema()
        target = Reference(database=edge.target_database, table=edge.target_table, column=edge.target_column)
        relationships.remove_reference(
            schema, edge.source_database, edge.source_table, edge.source_column, target
        )
        self.store.save(schema)
        return schema

    def list_relationships(self) -> List[RelationshipEdge]:
        return relationships.list_references(self.store.load() or {})


def detect_database(question: str, databases: List[str]) -> Optional[str]:
    question = question.lower()
    for database in databases:
        name = database.lower()
        variants = {
            name,
            name.replace("_", " "),
            name[:-3] if name.endswith("_db") else name,
            name[:-2] if name.endswith("db") else name,
        }
        if any(variant.strip() and variant in question for variant in variants):
            logger.info("Detected database %s from question", database)
            return database
    return None


def database_from_sql(sql: str) -> Optional[str]:
    """First database qualifier on a table in ``sql``, e.g. ``shop`` for ``shop.orders``."""
    try:
        tree = sqlglot.parse_one(sql, read="mysql")
    except SqlglotError:
        return None
    if tree is None:
        return None
    for table in tree.find_all(expressions.Table):
        if table.db:
            return table.db
    return None


def resolve_target_database(
    question: str,
    explicit_database: Optional[str],
    reduced_schema: Schema,
    all_databases: List[str],
    sql: Optional[str] = None,
) -> Optional[str]:
    """
    Pick the database to run against: the explicit one, else one named in the
    question, else one qualifying a table in the generated SQL, else the first
    database of the reduced context, else the first non-system database.
    """
    if explicit_database:
        return explicit_database

    candidates = config.user_databases(all_databases)
    detected = detect_database(question, candidates)
    if detected:
        return detected

    if sql:
        qualified = database_from_sql(sql)
        if qualified:
            return qualified

    if reduced_schema:
        return next(iter(reduced_schema))

    if candidates:
        return candidates[0]
    return all_databases[0] if all_databases else None
