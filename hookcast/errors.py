"""Errors - everything the registry, engine and stores raise."""


class HookcastError(Exception):
    """Base class for hookcast errors."""


class UnknownTopic(HookcastError, KeyError):
    """Raised when a topic is read or has endpoints removed but is not registered."""

    def __init__(self, topic: str):
        super().__init__(topic)
        self.topic = topic

    def __str__(self) -> str:
        return f"Unknown topic: {self.topic}"


class InvalidEndpoint(HookcastError, ValueError):
    """Raised when an endpoint is not an absolute http(s) URL."""


class EndpointDispatchFailure(HookcastError):
    """A single endpoint failed during dispatch. Never aborts sibling endpoints."""

    def __init__(self, endpoint: str, reason: str, response=None):
        super().__init__(f"{endpoint}: {reason}")
        self.endpoint = endpoint
        self.reason = reason
        self.response = response

    @property
    def status_code(self) -> int | None:
        return getattr(self.response, "status_code", None)


class PersistenceFailure(HookcastError):
    """Loading from or writing to a persistence store failed."""

    def __init__(self, message: str, path=None):
        super().__init__(message)
        self.path = path


class EngineClosed(HookcastError):
    """Raised by trigger() once the engine has been closed."""


class StreamClosed(HookcastError):
    """Raised when publishing to a closed response stream."""
