# settings.py
# JSON settings file: default identity, explicit volumes, log level

from __future__ import annotations
import os
import json
from dataclasses import asdict, dataclass, field
from typing import List, Optional

from errors import SettingsError

SETTINGS_FILE = "recyclebin.json"


@dataclass
class Settings:
    identity: Optional[str] = None
    volumes: List[str] = field(default_factory=list)  # empty: ask psutil
    log_level: str = "WARNING"


def load_settings(path: str = SETTINGS_FILE) -> Settings:
    """Read settings from `path`; a missing file yields the defaults."""
    if not os.path.exists(path):
        return Settings()
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise SettingsError(f"cannot read settings {path}: {e}") from e
    if not isinstance(data, dict):
        raise SettingsError(f"settings {path} must hold a JSON object")

    settings = Settings()
    if data.get('identity') is not None:
        settings.identity = str(data['identity'])
    volumes = data.get('volumes', [])
    if not isinstance(volumes, list):
        raise SettingsError(f"'volumes' in {path} must be a list")
    settings.volumes = [str(v) for v in volumes]
    settings.log_level = str(data.get('log_level', settings.log_level)).upper()
    return settings


def save_settings(settings: Settings, path: str = SETTINGS_FILE) -> None:
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(asdict(settings), f, indent=2)
