from typing import Annotated

from fastapi import APIRouter, Depends

from routes.deps import get_assistant
from utils.assistant import QueryAssistant
from utils.errors import ValidationError
from utils.schema import ChatRequest

router = APIRouter(prefix="/api/chat", tags=["Chat"])


@router.post("/query")
def process_query(request: ChatRequest, assistant: Annotated[QueryAssistant, Depends(get_assistant)]):
    if not request.query or not request.query.strip():
        raise ValidationError("Query is required")
    return assistant.process_question(request.query, request.database)
