import logging
from typing import List, Optional

from utils.errors import NotFoundError
from utils.schema import DEFAULT_RELATIONSHIP, Column, Reference, RelationshipEdge, Schema

logger = logging.getLogger(__name__)


def find_column(columns: List[Column], name: str) -> Optional[Column]:
    return next((column for column in columns if column.name == name), None)


def upsert_reference(column: Column, reference: Reference) -> bool:
    """Attach ``reference`` to ``column``; returns False when an existing edge was updated."""
    if column.references is None:
        column.references = []
    for i, existing in enumerate(column.references):
        if existing.target == reference.target:
            column.references[i] = reference
            return False
    column.references.append(reference)
    return True


def _locate_or_stub(schema: Schema, database: str, table: str, column: str) -> Column:
    columns = schema.setdefault(database, {}).setdefault(table, [])
    found = find_column(columns, column)
    if found is None:
        found = Column(name=column)
        columns.append(found)
    return found


def add_reference(
    schema: Schema,
    source_database: str,
    source_table: str,
    source_column: str,
    target: Reference,
    rel_type: Optional[str] = None,
) -> Schema:
    """
    Record that ``source_database.source_table.source_column`` points at ``target``.

    Missing source entries are created as bare columns, and the target column is
    stubbed when it is not in the schema yet, so every edge resolves to at least
    a placeholder. Adding an edge to a target that is already referenced updates
    it in place. The reverse edge is not created.
    """
    if rel_type:
        target = target.model_copy(update={"type": rel_type})

    source = _locate_or_stub(schema, source_database, source_table, source_column)
    _locate_or_stub(schema, target.database, target.table, target.column)

    added = upsert_reference(source, target)
    logger.info(
        "%s relationship %s.%s.%s -> %s (%s)",
        "Added" if added else "Updated",
        source_database, source_table, source_column,
        target.dotted(), target.type,
    )
    return schema


def remove_reference(
    schema: Schema,
    source_database: str,
    source_table: str,
    source_column: str,
    target: Reference,
) -> Schema:
    columns = schema.get(source_database, {}).get(source_table)
    if columns is None:
        raise NotFoundError(f"Table {source_table} not found in database {source_database}")

    column = find_column(columns, source_column)
    if column is None:
        raise NotFoundError(f"Column {source_column} not found in {source_database}.{source_table}")

    remaining = [ref for ref in column.references or [] if ref.target != target.target]
    if len(remaining) == len(column.references or []):
        raise NotFoundError(
            f"No relationship from {source_database}.{source_table}.{source_column} to {target.dotted()}"
        )

    # an emptied reference list is dropped rather than kept as []
    column.references = remaining or None
    logger.info(
        "Removed relationship %s.%s.%s -> %s",
        source_database, source_table, source_column, target.dotted(),
    )
    return schema


def list_references(schema: Schema) -> List[RelationshipEdge]:
    edges = []
    for database, tables in schema.items():
        for table, columns in tables.items():
            for column in columns:
                for reference in column.references or []:
                    edges.append(RelationshipEdge(
                        source_database=database,
                        source_table=table,
                        source_column=column.name,
                        target_database=reference.database,
                        target_table=reference.table,
                        target_column=reference.column,
                        type=reference.type or DEFAULT_RELATIONSHIP,
                    ))
    return edges
