import logging
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import Engine, create_engine, event, inspect, text
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError

from utils import config
from utils.errors import IntrospectionError, ValidationError
from utils.logger import after_execute, before_execute
from utils.schema import FOREIGN_KEY, PRIMARY_KEY, Column

logger = logging.getLogger(__name__)

READ_ONLY_PREFIXES = ("select", "show", "describe")

# one engine per database name, None is the server-level default
ENGINE_CACHE: Dict[Optional[str], Engine] = {}


def get_engine(database: Optional[str] = None) -> Engine:
    if database not in ENGINE_CACHE:
        url = URL.create(
            config.DB_DRIVER,
            username=config.DB_USER,
            password=config.DB_PASS,
            host=config.DB_HOST,
            port=config.DB_PORT,
            database=database or config.DB_NAME,
        )
        engine = create_engine(url, pool_size=5, max_overflow=10, pool_pre_ping=True)
        event.listen(engine, "before_execute", before_execute)
        event.listen(engine, "after_execute", after_execute)
        ENGINE_CACHE[database] = engine
    return ENGINE_CACHE[database]


def dispose_all_engines():
    for _, engine in ENGINE_CACHE.items():
        engine.dispose()
    ENGINE_CACHE.clear()


def is_read_only(sql: str) -> bool:
    return sql.strip().lower().startswith(READ_ONLY_PREFIXES)


def ensure_read_only(sql: str):
    if not is_read_only(sql):
        raise ValidationError("Only read-only queries are permitted", status_code=403)


def _key_for(name: str, primary: set, unique: set, multiple: set) -> Optional[str]:
    # mirrors the Key column of MySQL's DESCRIBE
    if name in primary:
        return PRIMARY_KEY
    if name in unique:
        return "UNI"
    if name in multiple:
        return FOREIGN_KEY
    return None


class SchemaIntrospector:
    """
    Reads table and column metadata from the live databases.

    Relationships are never read from the database here; they only come
    from the cached snapshot and explicit relationship edits.
    """

    def __init__(self, engine_factory: Callable[[Optional[str]], Engine] = get_engine):
        self.engine_factory = engine_factory

    def list_databases(self) -> List[str]:
        try:
            return inspect(self.engine_factory(None)).get_schema_names()
        except SQLAlchemyError as e:
            raise IntrospectionError(f"Error fetching databases: {e}") from e

    def list_tables(self, database: str) -> List[str]:
        try:
            return inspect(self.engine_factory(database)).get_table_names(schema=database)
        except SQLAlchemyError as e:
            raise IntrospectionError(f"Error fetching tables from {database}: {e}") from e

    def describe_table(self, database: str, table: str) -> List[Column]:
        try:
            inspector = inspect(self.engine_factory(database))
            raw_columns = inspector.get_columns(table, schema=database)
            primary = set(inspector.get_pk_constraint(table, schema=database).get("constrained_columns") or [])
            unique = set()
            multiple = set()
            for index in inspector.get_indexes(table, schema=database):
                names = [name for name in index.get("column_names") or [] if name]
                if not names:
                    continue
                if index.get("unique") and len(names) == 1:
                    unique.add(names[0])
                else:
                    multiple.add(names[0])
            for constraint in inspector.get_unique_constraints(table, schema=database):
                names = constraint.get("column_names") or []
                if len(names) == 1:
                    unique.add(names[0])
            for fk in inspector.get_foreign_keys(table, schema=database):
                multiple.update(fk.get("constrained_columns") or [])
        except SQLAlchemyError as e:
            raise IntrospectionError(f"Error fetching schema for {database}.{table}: {e}") from e

        return [
            Column(
                name=col["name"],
                type=str(col["type"]),
                key=_key_for(col["name"], primary, unique, multiple),
            )
            for col in raw_columns
        ]

    def run_query(self, sql: str, database: Optional[str] = None) -> List[Dict[str, Any]]:
        try:
            engine = self.engine_factory(database)
            with engine.connect() as connection:
                result = connection.execute(text(sql))
                if result.returns_rows:
                    return [dict(row) for row in result.mappings()]
                return []
        except SQLAlchemyError as e:
            raise IntrospectionError(f"Error executing query: {e}") from e
