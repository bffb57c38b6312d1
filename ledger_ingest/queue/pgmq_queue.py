"""Durable queue on top of the pgmq Postgres extension.

Reads hand out a lease: every message returned by ``read`` stays invisible to
other readers until its visibility timeout runs out. A message is only gone
from the active queue once it is archived or deleted, so a consumer that dies
mid-batch loses nothing.
"""
from typing import Any, Dict, List

import psycopg2
from psycopg2.extras import Json

from ledger_ingest import settings
from ledger_ingest.db import create_pool, pooled_cursor
from ledger_ingest.logging_conf import logger
from ledger_ingest.queue.models import QueueMessage
from ledger_ingest.serialization import dumps


class PgmqQueue:
    """Named channels backed by pgmq."""

    def __init__(self, pool=None):
        self._pool = pool

    @property
    def pool(self):
        """Get or create the queue connection pool."""
        if self._pool is None:
            self._pool = create_pool(settings.queue_connection_params(), settings.POOL_MAX_CONNECTIONS)
        return self._pool

    def close(self):
        """Close every pooled connection."""
        if self._pool is not None and not self._pool.closed:
            self._pool.closeall()
        self._pool = None

    def ensure_queue(self, name: str) -> None:
        """Create the channel unless it already exists."""
        try:
            with pooled_cursor(self.pool) as cur:
                cur.execute("SELECT pgmq.create(%s)", (name,))
            logger.info(f"Queue {name} initialized")
        except psycopg2.Error as e:
            if "already exists" not in str(e):
                raise
            logger.info(f"Queue {name} already exists")

    def enqueue(self, name: str, payload: Dict[str, Any]) -> int:
        """Durably append a payload and return its message id."""
        with pooled_cursor(self.pool) as cur:
            cur.execute("SELECT pgmq.send(%s, %s) AS msg_id", (name, Json(payload, dumps=dumps)))
            msg_id = cur.fetchone()["msg_id"]
        logger.info(f"Message enqueued with ID: {msg_id}")
        return msg_id

    def read(self, name: str, vt_seconds: int, qty: int) -> List[QueueMessage]:
        """Lease up to ``qty`` visible messages for ``vt_seconds``."""
        with pooled_cursor(self.pool) as cur:
            cur.execute(
                """
                SELECT msg_id, read_ct, enqueued_at, vt, message
                FROM pgmq.read(%s, %s, %s)
                """,
                (name, vt_seconds, qty),
            )
            rows = cur.fetchall()
        return [QueueMessage.from_row(row) for row in rows]

    def archive(self, name: str, msg_id: int) -> bool:
        """Move a message to the archive table. False if it was not active."""
        with pooled_cursor(self.pool) as cur:
            cur.execute("SELECT pgmq.archive(%s::text, %s::bigint) AS archived", (name, msg_id))
            archived = bool(cur.fetchone()["archived"])
        if archived:
            logger.info(f"Message {msg_id} archived")
        else:
            logger.debug(f"Message {msg_id} not active in {name}; nothing to archive")
        return archived

    def delete(self, name: str, msg_id: int) -> bool:
        """Permanently drop a message. False if it was not active."""
        with pooled_cursor(self.pool) as cur:
            cur.execute("SELECT pgmq.delete(%s::text, %s::bigint) AS deleted", (name, msg_id))
            deleted = bool(cur.fetchone()["deleted"])
        if deleted:
            logger.info(f"Message {msg_id} deleted")
        return deleted

    def size(self, name: str) -> int:
        """Number of messages still in the active queue."""
        with pooled_cursor(self.pool) as cur:
            cur.execute("SELECT queue_length FROM pgmq.metrics(%s)", (name,))
            row = cur.fetchone()
        return int(row["queue_length"]) if row else 0
