"""Ledger database access with bounded retry over a connection pool."""
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from psycopg2.extras import Json, RealDictCursor
from psycopg2.pool import ThreadedConnectionPool

from ledger_ingest import settings
from ledger_ingest.logging_conf import logger
from ledger_ingest.serialization import dumps

LOOKUP_WORKSPACE_SQL = "SELECT workspace_id FROM __retrievers.discord_guild_details(%s)"

INSERT_RECORD_SQL = """
    INSERT INTO ledger.tracks (definition_id, project_id, data)
    VALUES (%s, %s, %s)
    RETURNING id
"""

INSERT_RECORD_RECEIVED_SQL = """
    INSERT INTO ledger.tracks (definition_id, project_id, data, received_at)
    VALUES (%s, %s, %s, %s)
    RETURNING id
"""


@dataclass
class LedgerRecord:
    """One append-only row in the ledger."""

    definition_id: int
    project_id: Any
    data: Dict[str, Any]
    received_at: Optional[str] = None


def create_pool(params: Dict[str, Any], maxconn: int) -> ThreadedConnectionPool:
    """Build a thread-safe pool bounded at ``maxconn`` connections."""
    return ThreadedConnectionPool(1, maxconn, **params)


@contextmanager
def pooled_cursor(pool):
    """Borrow a connection for one unit of work.

    Commits on success and rolls back on error. The connection always goes
    back to the pool; one the server already closed is discarded.
    """
    conn = pool.getconn()
    try:
        cur = conn.cursor(cursor_factory=RealDictCursor)
        try:
            yield cur
            conn.commit()
        except Exception:
            if not conn.closed:
                conn.rollback()
            raise
        finally:
            cur.close()
    finally:
        pool.putconn(conn, close=bool(conn.closed))


class Database:
    """Stateless executor for the ledger store."""

    def __init__(self, pool=None, retry_max: Optional[int] = None,
                 retry_delay_ms: Optional[int] = None, sleep=time.sleep):
        self._pool = pool
        self.retry_max = retry_max if retry_max is not None else settings.RETRY_MAX
        delay_ms = retry_delay_ms if retry_delay_ms is not None else settings.RETRY_DELAY_MS
        self.retry_delay = delay_ms / 1000.0
        self._sleep = sleep

    @property
    def pool(self):
        """Get or create the connection pool."""
        if self._pool is None:
            self._pool = create_pool(settings.ledger_connection_params(), settings.POOL_MAX_CONNECTIONS)
        return self._pool

    def close(self):
        """Close every pooled connection."""
        if self._pool is not None and not self._pool.closed:
            self._pool.closeall()
        self._pool = None

    def execute(self, statement: str, params=None) -> List[Dict[str, Any]]:
        """Run one statement, retrying the whole unit of work on any failure.

        Failing to get a connection (pool exhausted, server down) counts as a
        failed attempt. After the last attempt the last error is raised.
        """
        last_error = None
        for attempt in range(1, self.retry_max + 1):
            try:
                with pooled_cursor(self.pool) as cur:
                    cur.execute(statement, params)
                    rows = cur.fetchall() if cur.description is not None else []
                if attempt > 1:
                    logger.info(f"Query succeeded on attempt {attempt}")
                return rows
            except Exception as e:
                last_error = e
                logger.error(f"Database query failed (attempt {attempt}/{self.retry_max}): {e}")
                if attempt < self.retry_max:
                    self._sleep(self.retry_delay)
        raise last_error

    def lookup_workspace(self, external_id: str) -> List[Dict[str, Any]]:
        """Return the workspace binding rows for an external tenant id."""
        return self.execute(LOOKUP_WORKSPACE_SQL, (str(external_id),))

    def insert_record(self, record: LedgerRecord) -> Optional[Any]:
        """Append a ledger record and return its id."""
        data = Json(record.data, dumps=dumps)
        if record.received_at is None:
            rows = self.execute(INSERT_RECORD_SQL, (record.definition_id, record.project_id, data))
        else:
            rows = self.execute(
                INSERT_RECORD_RECEIVED_SQL,
                (record.definition_id, record.project_id, data, record.received_at),
            )
        return rows[0]["id"] if rows else None
