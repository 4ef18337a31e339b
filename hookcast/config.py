"""Configuration loader - reads config/settings.yaml under the project root."""
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field

CONFIG_ENV = "HOOKCAST_CONFIG"


class StoreConfig(BaseModel):
    backend: Literal["memory", "file"] = "memory"
    path: str = "./data/webhooks.json"


class StreamConfig(BaseModel):
    buffer_size: int = Field(default=100, ge=1)
    history_size: int = Field(default=0, ge=0)


class HttpConfig(BaseModel):
    timeout: float = 10.0
    raise_for_status: bool = True
    headers: dict[str, str] = {}


class DispatchLogConfig(BaseModel):
    enabled: bool = False
    path: str = "./data/dispatch_log.db"


class AutosaveConfig(BaseModel):
    enabled: bool = False
    interval_seconds: int = Field(default=300, ge=1)


class ApiConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8000


class SettingsYaml(BaseModel):
    model_config = ConfigDict(extra="ignore")
    log_level: str = "INFO"
    store: StoreConfig = StoreConfig()
    stream: StreamConfig = StreamConfig()
    http: HttpConfig = HttpConfig()
    dispatch_log: DispatchLogConfig = DispatchLogConfig()
    autosave: AutosaveConfig = AutosaveConfig()
    api: ApiConfig = ApiConfig()


def settings_path(project_root: Path | None = None) -> Path:
    """Path of the settings file. HOOKCAST_CONFIG wins over the project default."""
    override = os.getenv(CONFIG_ENV)
    if override:
        return Path(override)
    root = project_root or Path.cwd()
    return root / "config" / "settings.yaml"


def load_config(project_root: Path | None = None) -> SettingsYaml:
    """Load settings from YAML. Missing file means all defaults."""
    path = settings_path(project_root)
    data: dict = {}
    if path.exists():
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    return SettingsYaml(**data)


def resolve_path(project_root: Path, value: str) -> Path:
    """Resolve a configured path against the project root."""
    p = Path(value)
    if not p.is_absolute():
        p = project_root / p
    return p
