import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from main import app
from routes.deps import get_assistant, get_schema_service
from utils import config
from utils.assistant import QueryAssistant
from utils.cache import SchemaStore
from utils.errors import IntrospectionError, ModelLimitError
from utils.schema import Column, schema_from_dict
from utils.service import SchemaContextService


SHOP = {
    "orders": [
        {"Field": "id", "Type": "int", "Key": "PRI"},
        {"Field": "customer_id", "Type": "int", "Key": "MUL"},
        {"Field": "total", "Type": "decimal(10,2)"},
    ],
    "customers": [
        {"Field": "id", "Type": "int", "Key": "PRI"},
        {"Field": "email", "Type": "varchar(255)", "Key": "UNI"},
    ],
}


class FakeIntrospector:
    """Stands in for the live databases; counts every metadata call."""

    def __init__(self, databases=None, broken=()):
        if databases is None:
            databases = {"information_schema": {}, "shop": SHOP}
        self.databases = databases
        self.broken = set(broken)
        self.calls = 0
        self.queries = []
        self.rows = [{"total": 3}]

    def list_databases(self):
        self.calls += 1
        return list(self.databases) + sorted(self.broken)

    def list_tables(self, database):
        self.calls += 1
        if database in self.broken or database not in self.databases:
            raise IntrospectionError(f"Error fetching tables from {database}: access denied")
        return list(self.databases[database])

    def describe_table(self, database, table):
        self.calls += 1
        return [Column(**column) for column in self.databases[database][table]]

    def run_query(self, sql, database=None):
        self.queries.append((sql, database))
        return self.rows


class FakeLLM:
    """Replays canned replies; an exception instance in ``replies`` is raised instead."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def __call__(self, system_prompt, user_text, model, **kwargs):
        self.calls.append({"system": system_prompt, "user": user_text, "model": model})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def limit_error():
    return ModelLimitError("Model hit a token or rate limit")


@pytest.fixture
def shop_schema():
    return schema_from_dict({"shop": SHOP})


@pytest.fixture
def store(tmp_path):
    return SchemaStore(str(tmp_path / "config" / "db_schema.json"))


@pytest.fixture
def introspector():
    return FakeIntrospector(broken=["legacy"])


@pytest.fixture
def service(store, introspector):
    return SchemaContextService(store=store, introspector=introspector)


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def assistant(service, llm):
    return QueryAssistant(service, complete=llm, model="primary", fallback_model="fallback")


@pytest_asyncio.fixture(scope="function")
async def client(service, assistant, tmp_path, monkeypatch):
    monkeypatch.setattr(config, "UPLOAD_DIR", str(tmp_path / "uploads"))
    app.dependency_overrides[get_schema_service] = lambda: service
    app.dependency_overrides[get_assistant] = lambda: assistant

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
