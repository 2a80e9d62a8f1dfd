"""
Dead Letter Event Model
Represents a webhook that could not be delivered and was routed to the DLQ stream
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from relay.models.event import WebhookEvent

DLQ_FIELDS = ("error", "failedAt", "originalStream")


@dataclass
class DeadLetterEvent:
    """
    Event that failed and was routed to DLQ

    Contains the original event fields plus failure information for
    inspection and replay.

    Attributes:
        entry_id: DLQ stream entry id (None until written)
        fields: Original event fields, without DLQ metadata
        error: Failure description
        failed_at: When the event was dead-lettered (ISO-8601, UTC)
        original_stream: Stream the event was consumed from
    """

    fields: Dict[str, str]
    error: str
    failed_at: str
    original_stream: str
    entry_id: Optional[str] = None

    @classmethod
    def from_event(cls, event: WebhookEvent, error: str, original_stream: str) -> "DeadLetterEvent":
        return cls(
            fields=event.to_fields(),
            error=error,
            failed_at=datetime.now(timezone.utc).isoformat(),
            original_stream=original_stream,
        )

    @classmethod
    def from_stream_entry(cls, entry_id: str, data: Dict[str, str]) -> "DeadLetterEvent":
        fields = {k: v for k, v in data.items() if k not in DLQ_FIELDS}
        return cls(
            fields=fields,
            error=data.get("error", ""),
            failed_at=data.get("failedAt", ""),
            original_stream=data.get("originalStream", ""),
            entry_id=entry_id,
        )

    def to_stream_fields(self) -> Dict[str, str]:
        """Flat field map written to the DLQ stream"""
        return {
            **self.fields,
            "error": self.error,
            "failedAt": self.failed_at,
            "originalStream": self.original_stream,
        }

    def replay_fields(self) -> Dict[str, str]:
        """Field map republished on replay (DLQ metadata stripped)"""
        return dict(self.fields)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to dictionary for JSON serialization

        Returns:
            Dict representation
        """
        return {
            "id": self.entry_id,
            "data": self.to_stream_fields(),
            "error": self.error,
            "failedAt": self.failed_at,
            "originalStream": self.original_stream,
        }
