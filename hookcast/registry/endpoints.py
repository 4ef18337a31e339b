"""Endpoint set - ordered, duplicate-free collection of endpoint URLs for one topic."""
from typing import Iterable, Iterator
from urllib.parse import urlsplit, urlunsplit

from hookcast.errors import InvalidEndpoint

ALLOWED_SCHEMES = ("http", "https")


def normalize_endpoint(value: str) -> str:
    """Normalize an endpoint URL. Scheme and host are lower-cased, the rest is kept."""
    if not isinstance(value, str):
        raise InvalidEndpoint(f"Endpoint must be a string, got {type(value).__name__}")
    raw = value.strip()
    try:
        parts = urlsplit(raw)
    except ValueError as e:
        raise InvalidEndpoint(f"Invalid endpoint {value!r}: {e}") from e
    scheme = parts.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise InvalidEndpoint(f"Endpoint must be an http(s) URL: {value!r}")
    if not parts.hostname:
        raise InvalidEndpoint(f"Endpoint has no host: {value!r}")
    netloc = parts.netloc
    host = parts.hostname
    # hostname is already lower-cased by urlsplit; swap it back into the netloc
    idx = netloc.lower().rfind(host)
    if idx >= 0:
        netloc = netloc[:idx] + host + netloc[idx + len(host):]
    return urlunsplit((scheme, netloc, parts.path, parts.query, parts.fragment))


class EndpointSet:
    """Insertion-ordered set of normalized endpoints.

    Backed by a dict so membership checks stay O(1) while dispatch order
    follows registration order.
    """

    __slots__ = ("_items",)

    def __init__(self, endpoints: Iterable[str] = ()):
        self._items: dict[str, None] = {}
        self.merge(endpoints)

    def add(self, endpoint: str) -> bool:
        """Add one endpoint. Returns False if it was already present."""
        endpoint = normalize_endpoint(endpoint)
        if endpoint in self._items:
            return False
        self._items[endpoint] = None
        return True

    def merge(self, endpoints: Iterable[str]) -> int:
        """Add endpoints in order, skipping duplicates. Returns how many were new."""
        return sum(1 for e in endpoints if self.add(e))

    def remove(self, endpoint: str) -> bool:
        """Remove an endpoint if present. Returns True when something was removed."""
        endpoint = normalize_endpoint(endpoint)
        if endpoint not in self._items:
            return False
        del self._items[endpoint]
        return True

    def remove_all(self, endpoints: Iterable[str]) -> int:
        return sum(1 for e in endpoints if self.remove(e))

    def snapshot(self) -> tuple[str, ...]:
        return tuple(self._items)

    def __contains__(self, endpoint: object) -> bool:
        if not isinstance(endpoint, str):
            return False
        try:
            return normalize_endpoint(endpoint) in self._items
        except InvalidEndpoint:
            return False

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"EndpointSet({list(self._items)!r})"
