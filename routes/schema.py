import os
import tempfile
from typing import Annotated

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import PlainTextResponse

from routes.deps import get_schema_service
from utils import config
from utils.cache import load_from_file
from utils.errors import ValidationError
from utils.relationships import list_references
from utils.schema import (
    DEFAULT_RELATIONSHIP,
    GenerateRequest,
    RelationshipEdge,
    RelationshipRequest,
    schema_to_dict,
)
from utils.service import SchemaContextService

router = APIRouter(prefix="/api/db/schema", tags=["Schema"])

service_dep = Annotated[SchemaContextService, Depends(get_schema_service)]

MAX_UPLOAD_BYTES = 10 * 1024 * 1024

EDGE_FIELDS = (
    "source_database", "source_table", "source_column",
    "target_database", "target_table", "target_column",
)


def require_edge(request: RelationshipRequest) -> RelationshipEdge:
    missing = [name for name in EDGE_FIELDS if not getattr(request, name)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    fields = {name: getattr(request, name) for name in EDGE_FIELDS}
    return RelationshipEdge(**fields, type=request.type or DEFAULT_RELATIONSHIP)


@router.post("/cache")
def cache_schema(service: service_dep):
    schema = service.build_full_context(use_cache=False)
    return {"success": True, "message": "Schema cached successfully", "databases": list(schema)}


@router.get("/cache")
def get_cached_schema(service: service_dep):
    return schema_to_dict(service.cached_schema())


@router.get("/export", response_class=PlainTextResponse)
def export_schema(service: service_dep):
    return service.export_text()


@router.post("/upload")
def upload_schema(service: service_dep, schemaFile: UploadFile = File(...)):
    content = schemaFile.file.read()
    if not content:
        raise ValidationError("No file uploaded")
    if len(content) > MAX_UPLOAD_BYTES:
        raise ValidationError("Schema file exceeds the 10MB limit", status_code=413)

    # keep the extension, it selects the parser
    suffix = os.path.splitext(schemaFile.filename or "")[1]
    os.makedirs(config.UPLOAD_DIR, exist_ok=True)
    with tempfile.NamedTemporaryFile(dir=config.UPLOAD_DIR, suffix=suffix, delete=False) as f:
        f.write(content)
        path = f.name
    try:
        schema = load_from_file(path)
    finally:
        os.remove(path)

    service.import_schema(schema)
    return {"success": True, "message": "Schema file processed successfully", "databases": list(schema)}


@router.post("/generate")
def generate_schema(request: GenerateRequest, service: service_dep):
    if not request.databases:
        raise ValidationError("At least one database is required")
    schema = service.cache_databases(request.databases)
    return {"success": True, "message": "Schema generated and cached", "databases": list(schema)}


@router.post("/relationships")
def add_relationship(request: RelationshipRequest, service: service_dep):
    edge = require_edge(request)
    schema = service.add_relationship(edge)
    return {"success": True, "relationships": list_references(schema)}


@router.get("/relationships")
def get_relationships(service: service_dep):
    return service.list_relationships()


@router.delete("/relationships")
def delete_relationship(request: RelationshipRequest, service: service_dep):
    edge = require_edge(request)
    schema = service.remove_relationship(edge)
    return {"success": True, "relationships": list_references(schema)}
