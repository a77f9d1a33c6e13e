"""Configuration loading for pricewatch.

Configuration lives in ``~/.config/pricewatch/config.toml`` unless the
``PRICEWATCH_CONFIG`` environment variable points elsewhere.
"""

import logging
import os
from pathlib import Path
from typing import Optional

import toml

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "pricewatch"

DEFAULT_CONFIG = {
    "database": {
        "path": str(CONFIG_DIR / "pricewatch.db"),
    },
    "monitor": {
        "max_workers": 4,
    },
    "cleanup": {
        "retention_days": 30,
    },
    "logging": {
        "level": "INFO",
    },
}


def get_config_path() -> Path:
    """Get the configuration file path."""
    override = os.environ.get("PRICEWATCH_CONFIG")
    if override:
        return Path(override).expanduser()
    return CONFIG_DIR / "config.toml"


def load_config(config_path: Optional[Path] = None) -> dict:
    """Load configuration merged over the defaults.

    Args:
        config_path: Optional path. Uses :func:`get_config_path` if not provided.

    Returns:
        Config dict. Missing or unreadable files yield the defaults.
    """
    path = config_path or get_config_path()
    config = {section: dict(values) for section, values in DEFAULT_CONFIG.items()}

    if not path.exists():
        return config

    try:
        loaded = toml.load(path)
    except (toml.TomlDecodeError, OSError) as e:
        logger.warning("Ignoring unreadable config %s: %s", path, e)
        return config

    for section, values in loaded.items():
        if isinstance(values, dict):
            config.setdefault(section, {}).update(values)
    return config


def create_template_config(config_path: Optional[Path] = None) -> Path:
    """Write the default configuration file.

    Returns:
        Path of the written file.
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        toml.dump(DEFAULT_CONFIG, f)
    return path


def get_db_path(config: dict) -> Path:
    """Get the database path from config."""
    return Path(config["database"]["path"]).expanduser()


def get_max_workers(config: dict) -> int:
    return int(config["monitor"].get("max_workers", 1))


def get_retention_days(config: dict) -> int:
    return int(config["cleanup"].get("retention_days", 30))
