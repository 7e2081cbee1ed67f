import logging
import time

import sqlglot
from sqlglot.errors import SqlglotError

from utils import config

logger = logging.getLogger("sql")


def configure_logging(level: str = None):
    logging.basicConfig(
        level=level or config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def before_execute(conn, _clauseelement, _multiparams, _params, _execution_options=None):
    conn.info["query_start_time"] = time.perf_counter()


def after_execute(conn, clauseelement, _multiparams, _params, _execution_options=None, _result=None):
    started = conn.info.pop("query_start_time", None)
    if started is None:
        return
    elapsed = time.perf_counter() - started
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("%.4fs %s", elapsed, normalize_sql(str(clauseelement)))


def normalize_sql(query: str) -> str:
    query = query.strip().rstrip(";")
    try:
        return ";\n".join(q.sql() for q in sqlglot.parse(query) if q is not None)
    except SqlglotError:
        return query
