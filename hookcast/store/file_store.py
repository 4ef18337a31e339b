"""JSON file store - persists the registry as {"topic": ["url", ...]}."""
import json
import logging
import os
from pathlib import Path
from typing import Mapping, Sequence

from pydantic import TypeAdapter, ValidationError

from hookcast.errors import PersistenceFailure

logger = logging.getLogger(__name__)

_WEBHOOKS = TypeAdapter(dict[str, list[str]])


class JsonFileStore:
    """Registry persistence in a single JSON file.

    A missing file loads as an empty registry. Writes go to a temp file that
    is renamed over the target, so a crash mid-write leaves the old file intact.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def load(self) -> dict[str, list[str]]:
        if not self.path.exists():
            logger.info("No webhook file at %s, starting empty", self.path)
            return {}
        try:
            raw = self.path.read_bytes()
        except OSError as e:
            raise PersistenceFailure(f"Failed to read {self.path}: {e}", path=self.path) from e
        if not raw.strip():
            return {}
        try:
            webhooks = _WEBHOOKS.validate_json(raw)
        except ValidationError as e:
            raise PersistenceFailure(f"Malformed webhook file {self.path}: {e}", path=self.path) from e
        logger.info("Loaded %d topics from %s", len(webhooks), self.path)
        return webhooks

    def persist(self, webhooks: Mapping[str, Sequence[str]]) -> None:
        data = {topic: list(urls) for topic, urls in webhooks.items()}
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path.exists():
                tmp_path.unlink()
            raise PersistenceFailure(f"Failed to write {self.path}: {e}", path=self.path) from e
        logger.info("Persisted %d topics to %s", len(data), self.path)
