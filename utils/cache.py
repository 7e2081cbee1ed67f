"""
Cached schema snapshot kept on disk, so the live databases are only
introspected when the cache is empty or explicitly rebuilt.

The file is read and rewritten without locking; overlapping writers race and
the last one wins.
"""
import json
import logging
import os
import tempfile
from typing import Optional

from utils import config, schema_format
from utils.errors import FormatError
from utils.schema import Schema, schema_from_dict, schema_to_dict

logger = logging.getLogger(__name__)


class SchemaStore:
    def __init__(self, path: Optional[str] = None):
        self.path = path or config.SCHEMA_CACHE_FILE

    def load(self) -> Optional[Schema]:
        """Return the cached schema, or None when there is nothing usable on disk."""
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return schema_from_dict(json.load(f))
        except FileNotFoundError:
            logger.info("No cached schema found at %s", self.path)
        except (OSError, json.JSONDecodeError, FormatError) as e:
            logger.warning("Ignoring unreadable schema cache %s: %s", self.path, e)
        return None

    def save(self, schema: Schema) -> bool:
        tmp_path = None
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            # written beside the target and swapped in, a failed write keeps the old snapshot
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=directory or ".", suffix=".tmp", delete=False
            ) as f:
                tmp_path = f.name
                json.dump(schema_to_dict(schema), f, indent=2)
            os.replace(tmp_path, self.path)
            logger.info("Schema cached successfully (%d databases)", len(schema))
            return True
        except (OSError, TypeError) as e:
            logger.error("Error caching schema to %s: %s", self.path, e)
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            return False

    def update(self, partial: Schema) -> Schema:
        """Merge ``partial`` into the cached snapshot and persist the result."""
        merged = merge_into(self.load() or {}, partial)
        self.save(merged)
        return merged


def merge_into(existing: Schema, partial: Schema) -> Schema:
    # database level only, a partial entry replaces the whole database
    return {**existing, **partial}


def parse_schema_text(text: str, filename: str = "") -> Schema:
    """
    Parse an uploaded schema document. ``.json`` files are read as the cache
    format, anything else as the compact notation with JSON as a second try.
    """
    if filename.lower().endswith(".json"):
        try:
            return schema_from_dict(json.loads(text))
        except json.JSONDecodeError as e:
            raise FormatError(f"Invalid JSON schema file: {e}") from e

    schema = schema_format.decode(text)
    if schema:
        return schema

    try:
        schema = schema_from_dict(json.loads(text))
    except (json.JSONDecodeError, FormatError) as e:
        raise FormatError("Schema file is neither JSON nor the compact schema format") from e
    if not schema:
        raise FormatError("Schema file does not define any databases")
    return schema


def load_from_file(path: str) -> Schema:
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise FormatError(f"Could not read schema file {path}: {e}") from e
    return parse_schema_text(text, path)
