"""Persistence store interface and the in-memory store."""
from typing import Mapping, Protocol, Sequence


class PersistenceStore(Protocol):
    """Durable home for the topic registry.

    `load` is called once when a registry is built; `persist` only when the
    owning process asks for it.
    """

    def load(self) -> dict[str, list[str]]:
        ...

    def persist(self, webhooks: Mapping[str, Sequence[str]]) -> None:
        ...


class MemoryStore:
    """Keeps the last persisted mapping in memory. Nothing survives the process."""

    def __init__(self, initial: Mapping[str, Sequence[str]] | None = None):
        self._data: dict[str, list[str]] = _copy(initial or {})
        self.persist_count = 0

    def load(self) -> dict[str, list[str]]:
        return _copy(self._data)

    def persist(self, webhooks: Mapping[str, Sequence[str]]) -> None:
        self._data = _copy(webhooks)
        self.persist_count += 1


def _copy(webhooks: Mapping[str, Sequence[str]]) -> dict[str, list[str]]:
    return {topic: list(urls) for topic, urls in webhooks.items()}
