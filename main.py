import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from routes import execute, nlp2sql, schema
from utils.engine import dispose_all_engines
from utils.errors import SchemaContextError
from utils.logger import configure_logging

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    yield
    try:
        logger.info("Shutting down, closing all database connections...")
        dispose_all_engines()
    except Exception as e:
        logger.exception("Failed during shutdown: %s", str(e))


app = FastAPI(title="Schema-aware natural language SQL API", lifespan=lifespan)

# Enable CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(execute.router)
app.include_router(schema.router)
app.include_router(nlp2sql.router)


@app.exception_handler(SchemaContextError)
async def schema_context_error_handler(request: Request, exc: SchemaContextError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})


@app.get("/health")
def health():
    return {"message": "working and stuff"}
