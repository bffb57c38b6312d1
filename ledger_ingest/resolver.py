"""Map external tenant ids to ledger workspaces."""
import enum
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from ledger_ingest import settings
from ledger_ingest.db import Database, LedgerRecord
from ledger_ingest.logging_conf import logger
from ledger_ingest.telemetry import Telemetry


class ResolveOutcome(enum.Enum):
    HANDLED = "handled"
    SKIPPED = "skipped"
    UNREGISTERED = "unregistered"
    FAILED = "failed"


class TenantResolver:
    """Looks up the workspace bound to an external tenant and runs a handler in it."""

    def __init__(self, db: Database, telemetry: Optional[Telemetry] = None):
        self.db = db
        self.telemetry = telemetry or Telemetry()

    def with_resolved_workspace(
        self,
        external_id: Optional[str],
        event_kind: str,
        handler: Callable[[Any], None],
        event: Any = None,
    ) -> ResolveOutcome:
        """
        Run ``handler(workspace_id)`` for the workspace bound to ``external_id``.

        Never raises. Unknown tenants get a notice in the meta workspace instead
        of a handler call. Errors from the lookup or the handler are reported
        and turned into ``ResolveOutcome.FAILED``.
        """
        if not external_id:
            logger.warning(f"Skipping {event_kind}: no tenant id")
            return ResolveOutcome.SKIPPED

        try:
            logger.info(f"Looking up workspace for tenant: {external_id}")
            results = self.db.lookup_workspace(external_id)

            if not results:
                logger.warning(f"No workspace found for tenant: {external_id}")
                self.log_unregistered_tenant(external_id, event_kind, event)
                return ResolveOutcome.UNREGISTERED

            workspace_id = results[0].get("workspace_id")
            if not workspace_id:
                logger.error(f"No workspace_id in binding for tenant: {external_id}")
                return ResolveOutcome.SKIPPED

            handler(workspace_id)
            return ResolveOutcome.HANDLED

        except Exception as e:
            self.telemetry.report_exception(e, {
                "tenant_external_id": str(external_id),
                "event_type": event_kind,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            })
            logger.error(f"Failed to process {event_kind} for tenant {external_id}: {e}", exc_info=True)
            return ResolveOutcome.FAILED

    def log_unregistered_tenant(self, external_id: str, event_kind: str, event: Any) -> None:
        """Record an unknown tenant in the meta workspace. Failures are only reported."""
        try:
            logger.info(f"Logging unregistered tenant {external_id} to meta workspace")
            data = dict(event) if isinstance(event, dict) else {"event": event}
            data["_metadata"] = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "event_type": "new_tenant_identified",
                "tenant_external_id": str(external_id),
                "source_kind": event_kind,
            }
            record_id = self.db.insert_record(LedgerRecord(
                definition_id=settings.NEW_TENANT_DEFINITION_ID,
                project_id=settings.META_WORKSPACE_ID,
                data=data,
            ))
            logger.info(f"Unregistered tenant logged with ID: {record_id}")
            self.telemetry.report_message(
                f"New tenant identified: {external_id}",
                "info",
                {"tenant_external_id": str(external_id), "event_type": event_kind},
            )
        except Exception as e:
            logger.error(f"Failed to log unregistered tenant {external_id}: {e}")
            self.telemetry.report_exception(e, {
                "tenant_external_id": str(external_id),
                "event": "log_unregistered_tenant",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "meta_workspace_id": settings.META_WORKSPACE_ID,
                "definition_id": settings.NEW_TENANT_DEFINITION_ID,
            })
