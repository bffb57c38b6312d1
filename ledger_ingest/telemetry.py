"""Error and message reporting to BetterStack.

Reports go through a dedicated logger so the BetterStack handler installed by
``logging_conf`` ships them with their context as structured fields. Neither
method ever raises into the caller.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ledger_ingest.logging_conf import logger

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
}


class Telemetry:
    """Best-effort sink for exceptions and notable messages."""

    def __init__(self, sink: Optional[logging.Logger] = None):
        self.sink = sink or logging.getLogger("ledger_ingest.telemetry")

    def report_exception(self, error: BaseException, context: Optional[Dict[str, Any]] = None) -> None:
        try:
            extra = self._extra(context)
            extra["error_type"] = type(error).__name__
            self.sink.error(
                f"{type(error).__name__}: {error}",
                exc_info=(type(error), error, error.__traceback__),
                extra=extra,
            )
        except Exception as e:
            logger.error(f"Failed to report exception: {e}")
            logger.error(f"Original error: {error!r}")

    def report_message(self, text: str, level: str = "info", context: Optional[Dict[str, Any]] = None) -> None:
        try:
            self.sink.log(LEVELS.get(level, logging.INFO), text, extra=self._extra(context))
        except Exception as e:
            logger.error(f"Failed to report message: {e}")

    def _extra(self, context: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "context": dict(context or {}),
            "reported_at": datetime.now(timezone.utc).isoformat(),
        }
