"""JSON file store and store selection from config."""
import pytest

from helpers import read_json
from hookcast.config import SettingsYaml
from hookcast.errors import PersistenceFailure
from hookcast.registry.topics import TopicRegistry
from hookcast.store import JsonFileStore, open_store


def test_missing_file_loads_empty(tmp_path):
    store = JsonFileStore(tmp_path / "webhooks.json")
    assert store.load() == {}
    assert not store.path.exists()


def test_empty_file_loads_empty(tmp_path):
    path = tmp_path / "webhooks.json"
    path.write_text("  \n")
    assert JsonFileStore(path).load() == {}


def test_registry_persists_to_file(tmp_path):
    path = tmp_path / "nested" / "webhooks.json"
    registry = TopicRegistry(JsonFileStore(path))
    registry.add_all("orders", ["http://a", "http://b"])
    registry.add_all("empty", [])
    registry.persist()

    assert read_json(path) == {"orders": ["http://a", "http://b"], "empty": []}
    assert not (tmp_path / "nested" / "webhooks.json.tmp").exists()

    reopened = TopicRegistry(JsonFileStore(path))
    assert reopened.get("orders") == ("http://a", "http://b")


def test_malformed_json(tmp_path):
    path = tmp_path / "webhooks.json"
    path.write_text("{not json")
    with pytest.raises(PersistenceFailure) as exc:
        JsonFileStore(path).load()
    assert exc.value.path == path


def test_wrong_shape(tmp_path):
    path = tmp_path / "webhooks.json"
    path.write_text('{"orders": "http://a"}')
    with pytest.raises(PersistenceFailure):
        TopicRegistry(JsonFileStore(path))


def test_unreadable_path(tmp_path):
    with pytest.raises(PersistenceFailure):
        JsonFileStore(tmp_path).load()


def test_write_failure(tmp_path):
    target = tmp_path / "taken"
    target.mkdir()
    store = JsonFileStore(target)
    with pytest.raises(PersistenceFailure):
        store.persist({"t": ["http://a"]})
    assert not (tmp_path / "taken.tmp").exists()


def test_open_store(tmp_path):
    assert open_store(SettingsYaml(), tmp_path) is None
    settings = SettingsYaml(store={"backend": "file", "path": "data/hooks.json"})
    store = open_store(settings, tmp_path)
    assert isinstance(store, JsonFileStore)
    assert store.path == tmp_path / "data" / "hooks.json"


def test_invalid_stored_endpoint(tmp_path):
    path = tmp_path / "webhooks.json"
    path.write_text('{"orders": ["gopher://a"]}')
    with pytest.raises(PersistenceFailure):
        TopicRegistry(JsonFileStore(path))
