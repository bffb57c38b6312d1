"""Main application - drains the event queue into the ledger."""
import signal
import sys

from ledger_ingest.logging_conf import logger
from ledger_ingest import settings
from ledger_ingest.consumer import Consumer
from ledger_ingest.db import Database, create_pool
from ledger_ingest.queue.pgmq_queue import PgmqQueue
from ledger_ingest.resolver import TenantResolver
from ledger_ingest.telemetry import Telemetry


class Application:
    """Owns the connection pools and the consumer for one process."""

    def __init__(self):
        self.db = None
        self.queue = None
        self.consumer = None
        self.running = False

    def start(self):
        """Validate config and build the process-wide resources."""
        logger.info("=" * 50)
        logger.info("Ledger Ingest Consumer")
        logger.info("=" * 50)
        logger.info(f"Queue: {settings.QUEUE_NAME}")
        logger.info(f"Batch size: {settings.BATCH_SIZE}")
        logger.info(f"Visibility timeout: {settings.VISIBILITY_TIMEOUT_SECONDS}s")
        logger.info(f"Poll interval: {settings.POLL_INTERVAL_MS}ms")
        logger.info("=" * 50)

        settings.validate_config()

        telemetry = Telemetry()
        self.db = Database(create_pool(settings.ledger_connection_params(), settings.POOL_MAX_CONNECTIONS))
        self.queue = PgmqQueue(create_pool(settings.queue_connection_params(), settings.POOL_MAX_CONNECTIONS))
        self.consumer = Consumer(
            queue=self.queue,
            db=self.db,
            resolver=TenantResolver(self.db, telemetry),
            telemetry=telemetry,
        )
        self.running = True
        logger.info("Started - watching for queued events")

    def stop(self):
        """Stop the application."""
        if not self.running:
            return
        self.running = False
        if self.consumer:
            self.consumer.stop()
        logger.info("Stopping")

    def close(self):
        if self.db:
            self.db.close()
        if self.queue:
            self.queue.close()
        logger.info("Stopped")

    def run(self):
        """Main loop."""
        self.start()
        try:
            self.consumer.run()
        finally:
            self.close()


def main():
    """Entry point."""
    app = Application()

    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}")
        app.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        app.run()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal consumer error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
