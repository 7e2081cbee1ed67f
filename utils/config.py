import os
from dotenv import load_dotenv

load_dotenv()

DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if DEV_MODE else "INFO").upper()

# database connection
DB_DRIVER = os.getenv("DB_DRIVER", "mysql+pymysql")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = int(os.getenv("DB_PORT", "3306"))
DB_USER = os.getenv("DB_USER")
DB_PASS = os.getenv("DB_PASS")
DB_NAME = os.getenv("DB_NAME")

# never listed or introspected when enumerating "all databases"
SYSTEM_DATABASES = ("information_schema", "mysql", "performance_schema", "sys")

SCHEMA_CACHE_FILE = os.getenv("SCHEMA_CACHE_FILE", os.path.join("config", "db_schema.json"))
UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join("tmp", "uploads"))

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
LLM_MODEL = os.getenv("LLM_MODEL", "gemini-1.5-pro")
LLM_FALLBACK_MODEL = os.getenv("LLM_FALLBACK_MODEL", "gemini-1.5-flash")

# prompt budget for the serialized schema
CONTEXT_MAX_CHARS = int(os.getenv("CONTEXT_MAX_CHARS", "50000"))
LARGE_DATABASE_TABLES = int(os.getenv("LARGE_DATABASE_TABLES", "15"))


def is_system_database(name: str) -> bool:
    return name.lower() in SYSTEM_DATABASES


def user_databases(databases):
    return [db for db in databases if not is_system_database(db)]
