"""Logging configuration with Betterstack support.

Console and file output append any telemetry ``context`` attached to a record,
so reports that go to BetterStack stay readable in local logs too.
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from logtail import LogtailHandler

from ledger_ingest import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ContextFormatter(logging.Formatter):
    """Appends ``key=value`` pairs from a record's ``context`` extra."""

    def format(self, record):
        line = super().format(record)
        context = getattr(record, "context", None)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        if record.exc_text or record.stack_info:
            head, _, tail = line.partition("\n")
            return f"{head} [{pairs}]\n{tail}"
        return f"{line} [{pairs}]"


def setup_logging(level_name=None):
    level = getattr(logging, (level_name or settings.LOG_LEVEL).upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = []

    local_formatter = ContextFormatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(local_formatter)
    root_logger.addHandler(console_handler)

    file_handler = RotatingFileHandler(settings.LOGS_DIR / "consumer.log", maxBytes=10 * 1024 * 1024, backupCount=5)
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(local_formatter)
    root_logger.addHandler(file_handler)

    # BetterStack receives context as structured fields, not in the message
    if settings.BETTERSTACK_SOURCE_TOKEN:
        try:
            handler_kwargs = {"source_token": settings.BETTERSTACK_SOURCE_TOKEN}
            if settings.BETTERSTACK_INGEST_HOST:
                handler_kwargs["host"] = settings.BETTERSTACK_INGEST_HOST
            betterstack_handler = LogtailHandler(**handler_kwargs)
            betterstack_handler.setLevel(logging.DEBUG)
            betterstack_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            root_logger.addHandler(betterstack_handler)
            root_logger.info(
                f"BetterStack logging enabled (host: {settings.BETTERSTACK_INGEST_HOST or 'default'})"
            )
        except Exception as e:
            root_logger.warning(f"Failed to initialize BetterStack logging: {e}")

    for noisy in ("urllib3", "psycopg2"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return root_logger


logger = setup_logging()
