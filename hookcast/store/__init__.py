from pathlib import Path

from hookcast.config import SettingsYaml, resolve_path

from .base import MemoryStore, PersistenceStore
from .file_store import JsonFileStore

__all__ = ["PersistenceStore", "MemoryStore", "JsonFileStore", "open_store"]


def open_store(settings: SettingsYaml, project_root: Path) -> PersistenceStore | None:
    """Build the configured store. The memory backend means no store at all."""
    if settings.store.backend == "file":
        return JsonFileStore(resolve_path(project_root, settings.store.path))
    return None
