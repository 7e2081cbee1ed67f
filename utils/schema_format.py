"""
Compact, human-editable schema notation.

One line per table, a blank line between databases, ``#`` starts a comment::

    shop.orders: id(INT,PK), customer_id(INT,FK,REF=shop.customers.id), note

Each column is a name optionally followed by a parenthesized attribute list.
Attributes are matched in order: ``PK``/``PRIMARY`` and ``FK``/``FOREIGN``
set the key, ``UNI`` keeps the unique-key tag, ``REF=db.table.col[:TYPE]``
adds a relationship, and anything else is taken as the column type (when
several are given the last one wins).

A database without tables has no table line to carry it; it is written as a
``# database: name`` comment and does not come back from ``decode``.
"""
import logging
import re
from typing import List, Optional

from utils.relationships import upsert_reference
from utils.schema import (
    DEFAULT_RELATIONSHIP,
    FOREIGN_KEY,
    PRIMARY_KEY,
    Column,
    Reference,
    Schema,
)

logger = logging.getLogger(__name__)

LINE_PATTERN = re.compile(r"^([^.\s]+)\.([^:]+):\s*(.*)$")
# key=value attribute; an "=" inside a quoted or parenthesized type such as enum('a=b') is not one
ATTRIBUTE_PATTERN = re.compile(r"^\s*\w+\s*=")

UNIQUE_KEY = "UNI"


def split_top_level(text: str, sep: str = ",") -> List[str]:
    """Split on ``sep`` only where it is not nested inside parentheses."""
    parts = []
    depth = 0
    current = []
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth = max(depth - 1, 0)
        if char == sep and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    parts.append("".join(current).strip())
    return [part for part in parts if part]


def _attribute_group(token: str) -> Optional[str]:
    """Return the text inside the outer parentheses, or None when unbalanced."""
    open_at = token.find("(")
    if not token.endswith(")"):
        return None
    depth = 0
    for i in range(open_at, len(token)):
        if token[i] == "(":
            depth += 1
        elif token[i] == ")":
            depth -= 1
            # the group must close exactly at the end of the token
            if depth == 0 and i != len(token) - 1:
                return None
    if depth != 0:
        return None
    return token[open_at + 1:-1]


def parse_reference(value: str) -> Optional[Reference]:
    target, _, rel_type = value.partition(":")
    parts = [part.strip() for part in target.split(".")]
    if len(parts) != 3 or not all(parts):
        return None
    return Reference(
        database=parts[0],
        table=parts[1],
        column=parts[2],
        type=rel_type.strip() or DEFAULT_RELATIONSHIP,
    )


def _apply_attribute(column: Column, attr: str):
    upper = attr.upper()
    if upper in ("PK", "PRIMARY"):
        column.key = PRIMARY_KEY
    elif upper in ("FK", "FOREIGN"):
        column.key = FOREIGN_KEY
    elif upper == UNIQUE_KEY:
        column.key = UNIQUE_KEY
    elif ATTRIBUTE_PATTERN.match(attr):
        name, _, value = attr.partition("=")
        if name.strip().upper() != "REF":
            logger.debug("Ignoring attribute %s on column %s", attr, column.name)
            return
        reference = parse_reference(value.strip())
        if reference is None:
            logger.debug("Skipping malformed reference %s on column %s", value, column.name)
            return
        upsert_reference(column, reference)
    else:
        column.type = attr


def parse_column(token: str) -> Optional[Column]:
    if "(" not in token:
        name = token.strip()
        if not name or ")" in name:
            return None
        return Column(name=name)

    name = token[:token.find("(")].strip()
    if not name:
        return None
    column = Column(name=name)

    group = _attribute_group(token)
    if group is None:
        logger.debug("Malformed attribute group in %r, keeping bare column", token)
        return column

    for attr in split_top_level(group):
        _apply_attribute(column, attr)
    return column


def _strip_comment(line: str) -> str:
    line = line.strip()
    if line.startswith("#") or line.startswith("//"):
        return ""
    return line.split("#", 1)[0].strip()


def decode(text: str) -> Schema:
    """Parse the compact notation; lines that do not match are skipped."""
    schema: Schema = {}
    for number, raw_line in enumerate(text.splitlines(), start=1):
        line = _strip_comment(raw_line)
        if not line:
            continue

        match = LINE_PATTERN.match(line)
        if not match:
            logger.debug("Skipping unparseable schema line %d: %r", number, raw_line)
            continue

        database, table, columns_text = match.groups()
        table = table.strip()
        columns: List[Column] = []
        for token in split_top_level(columns_text):
            column = parse_column(token)
            if column is None:
                logger.debug("Skipping column token %r on line %d", token, number)
                continue
            # names are unique within a table, a repeated name replaces the earlier one
            existing = next((i for i, c in enumerate(columns) if c.name == column.name), None)
            if existing is None:
                columns.append(column)
            else:
                columns[existing] = column

        # a repeated database.table line replaces the earlier definition
        schema.setdefault(database, {})[table] = columns
    return schema


def _key_tag(key: str) -> str:
    if key == PRIMARY_KEY:
        return "PK"
    if key == FOREIGN_KEY:
        return "FK"
    return key


def encode_column(column: Column) -> str:
    attrs = []
    if column.type:
        attrs.append(column.type)
    if column.key:
        attrs.append(_key_tag(column.key))
    for reference in column.references or []:
        ref = f"REF={reference.dotted()}"
        if reference.type != DEFAULT_RELATIONSHIP:
            ref += f":{reference.type}"
        attrs.append(ref)
    if not attrs:
        return column.name
    return f"{column.name}({','.join(attrs)})"


def encode(schema: Schema) -> str:
    blocks = []
    for database, tables in schema.items():
        lines = [
            f"{database}.{table}: " + ", ".join(encode_column(c) for c in columns)
            for table, columns in tables.items()
        ]
        if not lines:
            lines = [f"# database: {database} (no tables)"]
        blocks.append("\n".join(lines))
    if not blocks:
        return ""
    return "\n\n".join(blocks) + "\n"
