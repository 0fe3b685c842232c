"""Configuration loading helpers for swim-mirror."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from .models import MirrorConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
MIRROR_CONFIG_FILENAME = "mirror_config.yaml"
HOME_ENV_VAR = "SWIM_MIRROR_HOME"


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from the project home."""

    project_root: Path | None = None
    data_dir: Path | None = None
    history_dir: Path | None = None
    results_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get(HOME_ENV_VAR)
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path.cwd()).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.history_dir = (self.data_dir / "history").resolve()
        self.results_dir = (self.data_dir / "results").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.history_dir, self.results_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def config_path(self) -> Path:
        for extension in CONFIG_EXTENSIONS:
            candidate = self.data_dir / f"mirror_config{extension}"
            if candidate.exists():
                return candidate
        return self.data_dir / MIRROR_CONFIG_FILENAME


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._cache: MirrorConfig | None = None

    def load(self) -> MirrorConfig:
        if self._cache is not None:
            return self._cache
        path = self.locator.config_path()
        if path.exists():
            config = MirrorConfig.model_validate(_read_file(path))
        else:
            config = MirrorConfig()
            self.save(config)
        self._cache = config
        return config

    def save(self, config: MirrorConfig) -> Path:
        path = self.locator.config_path()
        _write_file(path, config.model_dump(mode="json"))
        self._cache = config
        return path

    def reload(self) -> MirrorConfig:
        self._cache = None
        return self.load()

    # ------------------------------------------------------------------
    def store_path(self) -> Path:
        config = self.load()
        return config.resolve_path(config.store_path, self.locator.project_root)

    def results_dir(self) -> Path:
        config = self.load()
        return config.resolve_path(config.results_dir, self.locator.project_root)


__all__ = [
    "CONFIG_EXTENSIONS",
    "ConfigLocator",
    "ConfigRepository",
    "HOME_ENV_VAR",
    "MIRROR_CONFIG_FILENAME",
]
