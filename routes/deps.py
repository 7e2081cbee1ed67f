from functools import lru_cache

from fastapi import Depends

from utils.assistant import QueryAssistant
from utils.service import SchemaContextService


@lru_cache
def get_schema_service() -> SchemaContextService:
    return SchemaContextService()


def get_assistant(service: SchemaContextService = Depends(get_schema_service)) -> QueryAssistant:
    return QueryAssistant(service)
