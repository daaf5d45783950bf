"""
Harness settings (utils/config.py).

Settings come from one YAML file, utils/config/harness.yaml unless the
PROPBENCH_CONFIG environment variable names another. The file is read once
per process; the sections are progress, trials, calibration and cache.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

BUNDLED_SETTINGS = Path(__file__).parent / "config" / "harness.yaml"

_settings: Optional[Dict[str, Any]] = None


def _settings_path(config_path: Optional[str]) -> Path:
    if config_path:
        return Path(config_path)
    return Path(os.environ.get("PROPBENCH_CONFIG", BUNDLED_SETTINGS))


def get_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    All harness settings as a nested dict.

    Passing `config_path` always rereads and replaces the settings in use;
    otherwise the first call reads the file and later calls reuse it. An
    empty file gives empty settings, so every lookup falls back to its
    default.
    """
    global _settings
    if _settings is not None and config_path is None:
        return _settings
    path = _settings_path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path) as f:
        _settings = yaml.safe_load(f) or {}
    logger.debug(f"Harness settings read from {path}")
    return _settings


def get(section: str, key: str, default: Any = None) -> Any:
    """One setting, e.g. get('trials', 'samples', 100); `default` if absent."""
    return (get_config().get(section) or {}).get(key, default)


def reset() -> None:
    """Forget the loaded settings; the next lookup reads the file again."""
    global _settings
    _settings = None
