from typing import Annotated

from fastapi import APIRouter, Depends

from routes.deps import get_schema_service
from utils.engine import ensure_read_only
from utils.errors import ValidationError
from utils.schema import QueryRequest
from utils.service import SchemaContextService

router = APIRouter(prefix="/api/db", tags=["Databases"])

service_dep = Annotated[SchemaContextService, Depends(get_schema_service)]


@router.get("/databases")
def list_databases(service: service_dep):
    return service.list_databases()


@router.get("/databases/{database}/tables")
def list_tables(database: str, service: service_dep):
    return list(service.get_database_schema(database))


@router.get("/databases/{database}/tables/{table}")
def describe_table(database: str, table: str, service: service_dep):
    return [column.to_dict() for column in service.get_table(database, table)]


@router.post("/query")
def execute_query(request: QueryRequest, service: service_dep):
    if not request.sql:
        raise ValidationError("SQL query is required")
    if not request.database:
        raise ValidationError("Database name is required")
    # checked before anything reaches the database
    ensure_read_only(request.sql)
    return service.introspector.run_query(request.sql, request.database)
