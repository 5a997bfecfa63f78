from __future__ import annotations

import json
import logging
from dataclasses import asdict, fields
from pathlib import Path
from typing import Optional

from .errors import ConfigError
from .paths import app_dir
from .settings import AppConfig, parse_level


logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "upx_gui_config.json"


def config_path() -> Path:
    return app_dir() / CONFIG_FILE_NAME


def load_config(path: Optional[Path] = None) -> AppConfig:
    """
    Read the saved defaults.

    A missing file gives AppConfig(); a broken one is an error, never
    silently replaced with defaults.
    """
    path = Path(path) if path is not None else config_path()

    if not path.exists():
        logger.debug("No config at %s, using defaults", path)
        return AppConfig()

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Failed to parse config file: {e}") from e

    return _from_dict(data)


def save_config(config: AppConfig, path: Optional[Path] = None) -> Path:
    path = Path(path) if path is not None else config_path()

    try:
        with path.open("w", encoding="utf-8") as f:
            json.dump(asdict(config), f, indent=2, ensure_ascii=False)
    except OSError as e:
        raise ConfigError(f"Failed to save config file: {e}") from e

    logger.debug("Saved config to %s", path)
    return path


def _from_dict(data: object) -> AppConfig:
    if not isinstance(data, dict):
        raise ConfigError("Failed to parse config file: expected a JSON object")

    names = {f.name for f in fields(AppConfig)}
    missing = names - data.keys()
    unknown = data.keys() - names
    if missing or unknown:
        raise ConfigError(
            "Failed to parse config file: "
            f"missing={sorted(missing)} unknown={sorted(unknown)}"
        )

    for name in names - {"compression_level"}:
        if not isinstance(data[name], bool):
            raise ConfigError(f"Failed to parse config file: {name} must be true or false")

    level = data["compression_level"]
    try:
        level = parse_level(level)
    except ValueError as e:
        raise ConfigError(f"Failed to parse config file: {e}") from e
    if level == "best":
        raise ConfigError("Failed to parse config file: compression_level must be 0-9")

    return AppConfig(**{**data, "compression_level": level})
