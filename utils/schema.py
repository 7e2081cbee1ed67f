from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from utils.errors import FormatError

DEFAULT_RELATIONSHIP = "MANY_TO_ONE"

# raw driver vocabulary stored under "Key"
PRIMARY_KEY = "PRI"
FOREIGN_KEY = "MUL"


class KeyKind(str, Enum):
    NONE = "NONE"
    PRIMARY = "PRIMARY"
    FOREIGN = "FOREIGN"
    OTHER = "OTHER"


class Reference(BaseModel):
    database: str
    table: str
    column: str
    type: str = DEFAULT_RELATIONSHIP

    @property
    def target(self):
        return (self.database, self.table, self.column)

    def dotted(self) -> str:
        return f"{self.database}.{self.table}.{self.column}"


class Column(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(alias="Field")
    type: Optional[str] = Field(default=None, alias="Type")
    key: Optional[str] = Field(default=None, alias="Key")
    references: Optional[List[Reference]] = Field(default=None, alias="References")

    @property
    def key_kind(self) -> KeyKind:
        if not self.key:
            return KeyKind.NONE
        if self.key == PRIMARY_KEY:
            return KeyKind.PRIMARY
        if self.key == FOREIGN_KEY:
            return KeyKind.FOREIGN
        return KeyKind.OTHER

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# database -> table -> columns, dict insertion order is the iteration order
Schema = Dict[str, Dict[str, List[Column]]]

_schema_adapter = TypeAdapter(Schema)


def schema_from_dict(data: Any) -> Schema:
    try:
        return _schema_adapter.validate_python(data)
    except PydanticValidationError as e:
        raise FormatError(f"Invalid schema document: {e.error_count()} problem(s) found") from e


def schema_to_dict(schema: Schema) -> Dict[str, Any]:
    return {
        database: {
            table: [column.to_dict() for column in columns]
            for table, columns in tables.items()
        }
        for database, tables in schema.items()
    }


def copy_schema(schema: Schema) -> Schema:
    return {
        database: {
            table: [column.model_copy(deep=True) for column in columns]
            for table, columns in tables.items()
        }
        for database, tables in schema.items()
    }


class RelationshipEdge(BaseModel):
    source_database: str
    source_table: str
    source_column: str
    target_database: str
    target_table: str
    target_column: str
    type: str = DEFAULT_RELATIONSHIP


# request bodies

class QueryRequest(BaseModel):
    sql: Optional[str] = None
    database: Optional[str] = None


class ChatRequest(BaseModel):
    query: Optional[str] = None
    database: Optional[str] = None


class GenerateRequest(BaseModel):
    databases: List[str] = []


class RelationshipRequest(BaseModel):
    source_database: Optional[str] = None
    source_table: Optional[str] = None
    source_column: Optional[str] = None
    target_database: Optional[str] = None
    target_table: Optional[str] = None
    target_column: Optional[str] = None
    type: Optional[str] = None
