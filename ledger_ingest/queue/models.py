"""Queue data models."""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


class InvalidEnvelopeError(ValueError):
    """Raised when a queued payload is not a usable event envelope."""


@dataclass
class QueueMessage:
    """A message as handed out by the queue store."""

    msg_id: int
    read_ct: int
    enqueued_at: datetime
    vt: datetime
    payload: Dict[str, Any]

    @classmethod
    def from_row(cls, row: Dict[str, Any]):
        """Factory method to build a QueueMessage from a ``pgmq.read`` row."""
        return cls(
            msg_id=row["msg_id"],
            read_ct=row["read_ct"],
            enqueued_at=row["enqueued_at"],
            vt=row["vt"],
            payload=row["message"],
        )


@dataclass
class EventEnvelope:
    """An inbound event together with the tenant it came from."""

    tenant_external_id: Optional[str]
    kind: str
    body: Any
    received_at: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "tenant_external_id": self.tenant_external_id,
            "kind": self.kind,
            "event": self.body,
            "received_at": self.received_at,
        }

    @classmethod
    def from_payload(cls, payload: Any):
        if not isinstance(payload, dict):
            raise InvalidEnvelopeError(f"Payload must be an object, got {type(payload).__name__}")
        missing = [key for key in ("kind", "event") if key not in payload]
        if missing:
            raise InvalidEnvelopeError(f"Payload missing {', '.join(missing)}")

        tenant_id = payload.get("tenant_external_id")
        return cls(
            tenant_external_id=str(tenant_id) if tenant_id not in (None, "") else None,
            kind=payload["kind"],
            body=payload["event"],
            received_at=payload.get("received_at"),
        )
