"""Entry point for the event source: puts inbound events on the queue."""
from datetime import datetime, timezone
from typing import Any, Optional

from ledger_ingest import settings
from ledger_ingest.events import get_event_kind
from ledger_ingest.logging_conf import logger
from ledger_ingest.queue.models import EventEnvelope
from ledger_ingest.queue.pgmq_queue import PgmqQueue
from ledger_ingest.telemetry import Telemetry


class Producer:
    """Serializes inbound events and enqueues them."""

    def __init__(self, queue: PgmqQueue, queue_name: Optional[str] = None,
                 telemetry: Optional[Telemetry] = None):
        self.queue = queue
        self.queue_name = queue_name or settings.QUEUE_NAME
        self.telemetry = telemetry or Telemetry()

    def publish(self, tenant_external_id: Any, kind: str, event: Any,
                received_at: Optional[str] = None) -> int:
        """
        Enqueue one event and return its message id.

        Args:
            tenant_external_id: External group id; stored as text
            kind: One of the supported event kinds
            event: Event body as a JSON-compatible value
            received_at: ISO-8601 arrival time, defaults to now

        Raises:
            UnknownEventKindError for an unsupported kind, or the queue error
            after reporting it.
        """
        get_event_kind(kind)
        envelope = EventEnvelope(
            tenant_external_id=str(tenant_external_id) if tenant_external_id not in (None, "") else None,
            kind=kind,
            body=event,
            received_at=received_at or datetime.now(timezone.utc).isoformat(),
        )
        try:
            return self.queue.enqueue(self.queue_name, envelope.to_payload())
        except Exception as e:
            logger.error(f"Failed to enqueue {kind}: {e}")
            self.telemetry.report_exception(e, {
                "tenant_external_id": envelope.tenant_external_id,
                "event_type": kind,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            })
            raise
