from .engine import DispatchEngine, TriggerHandle
from .poster import HttpPoster
from .records import WebhookResponse
from .stream import ResponseStream, Subscription

__all__ = [
    "DispatchEngine",
    "TriggerHandle",
    "HttpPoster",
    "WebhookResponse",
    "ResponseStream",
    "Subscription",
]
