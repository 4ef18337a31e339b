"""Topic registry - topic name -> endpoint set, with optional persistence."""
import logging
import threading
from types import MappingProxyType
from typing import Iterable, Mapping

from hookcast.errors import PersistenceFailure, UnknownTopic
from hookcast.registry.endpoints import EndpointSet, normalize_endpoint
from hookcast.store.base import PersistenceStore

logger = logging.getLogger(__name__)


class TopicRegistry:
    """Owns every topic's endpoint set.

    Mutations are synchronous and hold the lock only for the dict/set
    operation. Reads hand out tuple copies, so a dispatch never holds the lock
    while it talks to the network.

    Topic lifecycle is explicit: removing the last endpoint leaves an empty
    topic behind, only remove_topic()/remove_all_topics() delete it.
    """

    def __init__(self, store: PersistenceStore | None = None):
        self.store = store
        self._topics: dict[str, EndpointSet] = {}
        self._lock = threading.Lock()
        if store is not None:
            self._hydrate(store.load())

    def _hydrate(self, webhooks: Mapping[str, Iterable[str]]) -> None:
        topics = {}
        for topic, urls in webhooks.items():
            try:
                topics[_check_topic(topic)] = EndpointSet(urls)
            except ValueError as e:
                raise PersistenceFailure(f"Stored topic {topic!r} is invalid: {e}") from e
        with self._lock:
            self._topics = topics
        logger.info("Registry hydrated with %d topics", len(topics))

    def add(self, topic: str, endpoint: str) -> bool:
        """Register an endpoint under a topic, creating the topic if needed.

        Returns True if the endpoint was new.
        """
        topic = _check_topic(topic)
        endpoint = normalize_endpoint(endpoint)
        with self._lock:
            endpoints = self._topics.setdefault(topic, EndpointSet())
            return endpoints.add(endpoint)

    def add_all(self, topic: str, endpoints: Iterable[str]) -> int:
        """Register several endpoints in order. Returns how many were new."""
        topic = _check_topic(topic)
        endpoints = list(endpoints)
        with self._lock:
            current = self._topics.get(topic)
            # validate everything before touching the registry
            staged = EndpointSet(current.snapshot() if current else ())
            added = staged.merge(endpoints)
            self._topics[topic] = staged
        return added

    def remove_endpoint(self, topic: str, endpoint: str) -> bool:
        with self._lock:
            endpoints = self._topics.get(topic)
            if endpoints is None:
                raise UnknownTopic(topic)
            return endpoints.remove(endpoint)

    def remove_all_endpoints(self, topic: str, endpoints: Iterable[str]) -> int:
        endpoints = list(endpoints)
        with self._lock:
            current = self._topics.get(topic)
            if current is None:
                raise UnknownTopic(topic)
            return current.remove_all(endpoints)

    def remove_topic(self, topic: str) -> None:
        """Delete a topic and its endpoints. Unknown topics are ignored."""
        with self._lock:
            self._topics.pop(topic, None)

    def remove_all_topics(self, topics: Iterable[str]) -> None:
        topics = list(topics)
        with self._lock:
            for topic in topics:
                self._topics.pop(topic, None)

    def get(self, topic: str) -> tuple[str, ...]:
        """Endpoints of a topic in registration order."""
        with self._lock:
            endpoints = self._topics.get(topic)
            if endpoints is None:
                raise UnknownTopic(topic)
            return endpoints.snapshot()

    # The engine reads through this name; it is the dispatch snapshot.
    snapshot = get

    def get_all(self) -> Mapping[str, tuple[str, ...]]:
        """Read-only copy of the whole registry."""
        with self._lock:
            return MappingProxyType({t: e.snapshot() for t, e in self._topics.items()})

    def topics(self) -> list[str]:
        with self._lock:
            return list(self._topics)

    def persist(self) -> None:
        """Flush to the store. A registry without a store has nothing to do."""
        if self.store is None:
            return
        self.store.persist({t: list(e) for t, e in self.get_all().items()})

    def reload(self) -> None:
        """Replace in-memory state with whatever the store holds."""
        if self.store is None:
            return
        self._hydrate(self.store.load())

    def __contains__(self, topic: object) -> bool:
        with self._lock:
            return topic in self._topics

    def __len__(self) -> int:
        with self._lock:
            return len(self._topics)

    def __repr__(self) -> str:
        return f"TopicRegistry(topics={len(self)})"


def _check_topic(topic: str) -> str:
    if not isinstance(topic, str) or not topic:
        raise ValueError(f"Topic must be a non-empty string, got {topic!r}")
    return topic
