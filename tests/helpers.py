"""Test helpers shared across modules."""
import json

import yaml


def write_settings(root, data: dict) -> None:
    config_dir = root / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    with open(config_dir / "settings.yaml", "w", encoding="utf-8") as f:
        yaml.dump(data, f)


def read_json(path) -> dict:
    with open(path, encoding="utf-8") as f:
        return json.load(f)
