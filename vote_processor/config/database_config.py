"""
Connection settings for the governance database holding proposals and votes.

Settings come from DATABASE_URL (a libpq URI or key/value DSN) or from the
individual DATABASE_* variables. The results readers never write, so every
session is opened read-only and with a statement timeout.
"""

import os
from typing import Any, Dict, Mapping, Optional

import psycopg2
from psycopg2.extensions import parse_dsn

from vote_processor.utils.logger import logger

# libpq keyword -> environment variable
ENV_PARAMS = {
    "host": "DATABASE_HOST",
    "port": "DATABASE_PORT",
    "dbname": "DATABASE_NAME",
    "user": "DATABASE_USER",
    "password": "DATABASE_PASSWORD",
}
REQUIRED_PARAMS = ("host", "dbname", "user", "password")
DEFAULT_QUERY_TIMEOUT_MS = "15000"


class DatabaseNotConfiguredError(RuntimeError):
    """The governance database settings are missing or malformed."""


def _session_options(environ: Mapping[str, str], existing: Optional[str] = None) -> str:
    timeout_ms = environ.get("RESULTS_QUERY_TIMEOUT_MS", DEFAULT_QUERY_TIMEOUT_MS)
    options = f"-c default_transaction_read_only=on -c statement_timeout={timeout_ms}"
    return f"{existing} {options}" if existing else options


def load_connection_params(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """psycopg2 connect() keywords for the results database.

    Raises DatabaseNotConfiguredError naming whatever is missing.
    """
    environ = os.environ if environ is None else environ

    url = environ.get("DATABASE_URL")
    if url:
        try:
            params: Dict[str, Any] = parse_dsn(url)
        except psycopg2.ProgrammingError as e:
            raise DatabaseNotConfiguredError(f"DATABASE_URL is not a valid connection string: {e}") from e
        missing = [f"DATABASE_URL {name}" for name in REQUIRED_PARAMS if not params.get(name)]
    else:
        params = {name: environ[var] for name, var in ENV_PARAMS.items() if environ.get(var)}
        missing = [ENV_PARAMS[name] for name in REQUIRED_PARAMS if name not in params]

    if missing:
        raise DatabaseNotConfiguredError(f"Missing required database settings: {', '.join(missing)}")

    port = str(params.get("port", "5432"))
    if not port.isdigit():
        raise DatabaseNotConfiguredError("DATABASE_PORT must be a valid integer")
    params["port"] = int(port)

    params.setdefault("sslmode", environ.get("PGSSLMODE", "prefer"))
    params.setdefault("connect_timeout", int(environ.get("DB_CONNECT_TIMEOUT", "10")))
    params.setdefault("application_name", environ.get("DB_APPLICATION_NAME", "vote-processor"))
    params["options"] = _session_options(environ, params.get("options"))
    return params


def describe_database(params: Dict[str, Any]) -> str:
    """Where the params point, for logs. Never includes the password."""
    return f"postgresql://{params.get('user')}:***@{params.get('host')}:{params.get('port')}/{params.get('dbname')}"


def database_configured() -> bool:
    try:
        load_connection_params()
        return True
    except DatabaseNotConfiguredError as e:
        logger.error("Results database is not configured: %s", e)
        return False
