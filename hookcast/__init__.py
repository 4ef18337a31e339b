"""hookcast - topic-based webhook registry and concurrent dispatcher."""
from .dispatch import DispatchEngine, HttpPoster, ResponseStream, TriggerHandle, WebhookResponse
from .errors import (
    EndpointDispatchFailure,
    EngineClosed,
    HookcastError,
    InvalidEndpoint,
    PersistenceFailure,
    StreamClosed,
    UnknownTopic,
)
from .registry import EndpointSet, TopicRegistry
from .store import JsonFileStore, MemoryStore

__version__ = "0.1.0"

__all__ = [
    "TopicRegistry",
    "EndpointSet",
    "DispatchEngine",
    "TriggerHandle",
    "ResponseStream",
    "WebhookResponse",
    "HttpPoster",
    "MemoryStore",
    "JsonFileStore",
    "HookcastError",
    "UnknownTopic",
    "InvalidEndpoint",
    "EndpointDispatchFailure",
    "PersistenceFailure",
    "EngineClosed",
    "StreamClosed",
]
