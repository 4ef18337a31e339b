"""Webhook response record - one per (trigger, endpoint) that finished."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from hookcast.errors import EndpointDispatchFailure


@dataclass(frozen=True)
class WebhookResponse:
    topic: str
    endpoint: str
    response: Any = None
    error: EndpointDispatchFailure | None = None
    trigger_id: str = ""
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status_code(self) -> int | None:
        if self.response is not None:
            return getattr(self.response, "status_code", None)
        if self.error is not None:
            return self.error.status_code
        return None

    def to_dict(self) -> dict:
        return {
            "topic": self.topic,
            "endpoint": self.endpoint,
            "trigger_id": self.trigger_id,
            "ok": self.ok,
            "status_code": self.status_code,
            "error": self.error.reason if self.error else None,
            "received_at": self.received_at.isoformat(),
        }
