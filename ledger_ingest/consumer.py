"""Consumer that drains the event queue into the ledger."""
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Optional

from ledger_ingest import settings
from ledger_ingest.db import Database, LedgerRecord
from ledger_ingest.events import get_event_kind
from ledger_ingest.logging_conf import logger
from ledger_ingest.queue.models import EventEnvelope, QueueMessage
from ledger_ingest.queue.pgmq_queue import PgmqQueue
from ledger_ingest.resolver import ResolveOutcome, TenantResolver
from ledger_ingest.telemetry import Telemetry


class Consumer:
    """Polls the queue in batches and writes each event to its workspace.

    A message is archived only after its event has been handled. Anything
    that fails is left alone and comes back once its visibility timeout
    expires.
    """

    def __init__(
        self,
        queue: PgmqQueue,
        db: Database,
        resolver: Optional[TenantResolver] = None,
        telemetry: Optional[Telemetry] = None,
        queue_name: Optional[str] = None,
        batch_size: Optional[int] = None,
        visibility_timeout: Optional[int] = None,
        poll_interval_ms: Optional[int] = None,
        sleep=time.sleep,
    ):
        self.queue = queue
        self.db = db
        self.telemetry = telemetry or Telemetry()
        self.resolver = resolver or TenantResolver(db, self.telemetry)
        self.queue_name = queue_name or settings.QUEUE_NAME
        self.batch_size = batch_size or settings.BATCH_SIZE
        self.visibility_timeout = visibility_timeout or settings.VISIBILITY_TIMEOUT_SECONDS
        interval_ms = poll_interval_ms if poll_interval_ms is not None else settings.POLL_INTERVAL_MS
        self.poll_interval = interval_ms / 1000.0
        self._sleep = sleep
        self._executor = None
        self.running = False

    @property
    def executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.batch_size, thread_name_prefix="consumer")
        return self._executor

    def initialize(self):
        """Make sure the queue exists. Errors here are fatal."""
        self.queue.ensure_queue(self.queue_name)
        try:
            logger.info(f"Queue {self.queue_name} has {self.queue.size(self.queue_name)} pending messages")
        except Exception as e:
            logger.warning(f"Could not read size of queue {self.queue_name}: {e}")

    def run(self):
        """Main consumer loop."""
        logger.info("Starting message consumer...")
        self.initialize()
        self.running = True
        logger.info("Queue initialized")

        while self.running:
            try:
                self.poll_once()
                self._sleep(self.poll_interval)
            except Exception as e:
                logger.error(f"Consumer error: {e}", exc_info=True)
                self.telemetry.report_exception(e, {"event": "consumer_loop", "queue": self.queue_name})
                self._sleep(self.poll_interval * 5)

        self.shutdown()
        logger.info("Consumer stopped")

    def stop(self):
        """Ask the loop to exit after the current batch."""
        self.running = False

    def shutdown(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def poll_once(self) -> int:
        """Read one batch, process it concurrently and return how many were archived."""
        messages = self.queue.read(self.queue_name, self.visibility_timeout, self.batch_size)
        if not messages:
            return 0

        logger.info(f"Processing {len(messages)} messages")
        futures = [self.executor.submit(self.process_message, msg) for msg in messages]
        wait(futures)

        archived = sum(1 for future in futures if future.result())
        if archived < len(messages):
            logger.warning(
                f"{len(messages) - archived} of {len(messages)} messages left for redelivery "
                f"in {self.visibility_timeout}s"
            )
        return archived

    def process_message(self, msg: QueueMessage) -> bool:
        """Resolve, persist and archive one message. True when archived."""
        try:
            envelope = EventEnvelope.from_payload(msg.payload)
            kind = get_event_kind(envelope.kind)

            def persist(workspace_id):
                data = dict(envelope.body) if isinstance(envelope.body, dict) else {"event": envelope.body}
                metadata = kind.metadata(envelope.body)
                metadata.update({
                    "msg_id": msg.msg_id,
                    "enqueued_at": msg.enqueued_at,
                    "read_ct": msg.read_ct,
                })
                data["_metadata"] = metadata

                record_id = self.db.insert_record(LedgerRecord(
                    definition_id=kind.definition_id,
                    project_id=workspace_id,
                    data=data,
                    received_at=envelope.received_at,
                ))
                logger.info(f"Event saved to ledger with ID: {record_id}")

            outcome = self.resolver.with_resolved_workspace(
                envelope.tenant_external_id, kind.name, persist, event=msg.payload
            )
            if outcome is ResolveOutcome.FAILED:
                logger.warning(f"Message {msg.msg_id} not archived; it will be redelivered")
                return False

            self.queue.archive(self.queue_name, msg.msg_id)
            return True

        except Exception as e:
            logger.error(f"Failed to process message {msg.msg_id}: {e}", exc_info=True)
            return False
