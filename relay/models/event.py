"""
WebhookEvent Data Model - one entry consumed from the webhook stream
Stream entries are flat string maps; structured fields arrive JSON-encoded
"""

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass
class WebhookEvent:
    """
    Represents a single received webhook waiting to be forwarded

    Attributes:
        message_id: Stream-assigned entry id (used for acknowledgment)
        webhook_id: Id assigned by the ingestion endpoint
        endpoint_id: Logical endpoint the webhook was received on
        method: HTTP method of the original request
        headers: JSON-encoded header map
        body: Base64-encoded request body
        query: JSON-encoded query parameter map
        timestamp: Receipt timestamp as written by ingestion
        platform: Optional platform tag (e.g. "github", "stripe")
        default_target: Optional default-target hint from the endpoint
        retry_config: Optional JSON-encoded per-event retry policy
        raw: Original field map, preserved verbatim for dead-lettering
    """

    message_id: str
    webhook_id: str
    endpoint_id: str
    method: str = "POST"
    headers: str = "{}"
    body: str = ""
    query: str = "{}"
    timestamp: str = ""
    platform: Optional[str] = None
    default_target: Optional[str] = None
    retry_config: Optional[str] = None
    raw: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_stream_entry(cls, message_id: str, fields: Dict[str, str]) -> "WebhookEvent":
        """
        Build an event from a stream entry

        Args:
            message_id: Stream entry id
            fields: Flat field/value map of the entry

        Returns:
            WebhookEvent instance
        """
        return cls(
            message_id=message_id,
            webhook_id=fields.get("webhookId", ""),
            endpoint_id=fields.get("endpointId", ""),
            method=(fields.get("method") or "POST").upper(),
            headers=fields.get("headers") or "{}",
            body=fields.get("body", ""),
            query=fields.get("query") or "{}",
            timestamp=fields.get("timestamp", ""),
            platform=fields.get("platform") or None,
            default_target=fields.get("defaultTarget") or None,
            retry_config=fields.get("retryConfig") or None,
            raw=dict(fields),
        )

    def to_fields(self) -> Dict[str, str]:
        """Convert back to a flat field map (for republishing)"""
        if self.raw:
            return dict(self.raw)

        fields = {
            "webhookId": self.webhook_id,
            "endpointId": self.endpoint_id,
            "method": self.method,
            "headers": self.headers,
            "body": self.body,
            "query": self.query,
            "timestamp": self.timestamp,
        }
        if self.platform:
            fields["platform"] = self.platform
        if self.default_target:
            fields["defaultTarget"] = self.default_target
        if self.retry_config:
            fields["retryConfig"] = self.retry_config
        return fields

    def decode_body(self) -> bytes:
        """
        Decode the transport-encoded body

        Falls back to the raw value when it is not valid base64, so an
        ambiguous encoding never fails a delivery on its own.
        """
        try:
            return base64.b64decode(self.body, validate=True)
        except (binascii.Error, ValueError):
            return self.body.encode("utf-8")

    def parse_headers(self) -> Dict[str, str]:
        """Parse the JSON header map; malformed input yields no headers"""
        return _parse_flat_map(self.headers)

    def parse_query(self) -> Dict[str, str]:
        """Parse the JSON query map; malformed input yields no parameters"""
        return _parse_flat_map(self.query)


def _parse_flat_map(raw: str) -> Dict[str, str]:
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return {}

    if not isinstance(parsed, dict):
        return {}

    return {str(k): str(v) for k, v in parsed.items() if v is not None}
