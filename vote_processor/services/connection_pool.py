"""
Pooled read-only connections to the governance database.

Readers borrow a cursor with `pool.cursor()`; the connection goes back to the
pool when the block ends. A connection broken mid-query is discarded rather
than handed to the next reader. After repeated failures to connect, the pool
refuses new attempts for a backoff period so a database outage does not turn
every results request into a fresh login.
"""

import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

import psycopg2
import psycopg2.pool

from vote_processor.config.database_config import describe_database, load_connection_params
from vote_processor.utils.logger import logger

# Errors after which a connection cannot be trusted again
BROKEN_CONNECTION_ERRORS = (psycopg2.OperationalError, psycopg2.InterfaceError)


class DatabaseUnavailableError(RuntimeError):
    """No results database connection can be handed out right now."""


class ResultsConnectionPool:
    """Thread-safe pool of read-only connections with failure backoff."""

    def __init__(
        self,
        min_connections: int = 1,
        max_connections: int = 5,
        max_failures: int = 3,
        backoff_seconds: int = 30,
    ):
        self.min_connections = min_connections
        self.max_connections = max_connections
        self.max_failures = max_failures
        self.backoff_seconds = backoff_seconds
        self._pool: Optional[psycopg2.pool.ThreadedConnectionPool] = None
        self._lock = threading.Lock()
        self._failures = 0
        self._last_failure = 0.0

    def _open(self) -> psycopg2.pool.ThreadedConnectionPool:
        params = load_connection_params()
        logger.info("ResultsConnectionPool: connecting to %s (min=%d, max=%d)",
                    describe_database(params), self.min_connections, self.max_connections)
        return psycopg2.pool.ThreadedConnectionPool(self.min_connections, self.max_connections, **params)

    @property
    def in_backoff(self) -> bool:
        if self._failures < self.max_failures:
            return False
        return time.time() - self._last_failure <= self.backoff_seconds

    def _failed(self, action: str, error: Exception) -> DatabaseUnavailableError:
        self._failures += 1
        self._last_failure = time.time()
        logger.error("ResultsConnectionPool: %s failed (%d in a row): %s", action, self._failures, error)
        return DatabaseUnavailableError(f"Results database unavailable: {action} failed: {error}")

    def _checkout(self):
        with self._lock:
            if self.in_backoff:
                raise DatabaseUnavailableError(
                    f"Results database unavailable after {self._failures} failures, "
                    f"retrying in at most {self.backoff_seconds}s"
                )

            if self._pool is None:
                try:
                    self._pool = self._open()
                except Exception as e:
                    raise self._failed("opening the pool", e) from e

            try:
                conn = self._pool.getconn()
            except psycopg2.Error as e:
                error = self._failed("getting a connection", e)
                if self._failures >= 2:
                    logger.warning("ResultsConnectionPool: dropping pool after repeated failures")
                    self._discard_pool()
                raise error from e

            self._failures = 0
            return conn

    def _release(self, conn, discard: bool = False):
        with self._lock:
            if self._pool is None:
                return
            try:
                self._pool.putconn(conn, close=discard)
            except psycopg2.pool.PoolError as e:
                logger.warning("ResultsConnectionPool: could not return connection: %s", e)

    @contextmanager
    def cursor(self) -> Iterator[Any]:
        """Borrow a cursor for one read.

        Raises DatabaseUnavailableError when no connection can be had. Query
        errors propagate unchanged.
        """
        conn = self._checkout()
        discard = False
        try:
            with conn.cursor() as cur:
                yield cur
        except BROKEN_CONNECTION_ERRORS:
            discard = True
            raise
        finally:
            self._release(conn, discard=discard)

    def ping(self) -> None:
        with self.cursor() as cur:
            cur.execute("SELECT 1")

    def _discard_pool(self):
        if self._pool is None:
            return
        try:
            self._pool.closeall()
            logger.info("ResultsConnectionPool: closed all connections")
        except psycopg2.pool.PoolError as e:
            logger.error("ResultsConnectionPool: error closing pool: %s", e)
        finally:
            self._pool = None

    def close(self):
        with self._lock:
            self._discard_pool()

    def status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "pool_open": self._pool is not None,
                "failure_count": self._failures,
                "in_backoff": self.in_backoff,
            }


_results_pool: Optional[ResultsConnectionPool] = None
_results_pool_lock = threading.Lock()


def get_results_pool() -> ResultsConnectionPool:
    """The process-wide pool, created on first use."""
    global _results_pool
    with _results_pool_lock:
        if _results_pool is None:
            _results_pool = ResultsConnectionPool()
        return _results_pool


def close_results_pool():
    global _results_pool
    with _results_pool_lock:
        if _results_pool is not None:
            _results_pool.close()
            _results_pool = None
