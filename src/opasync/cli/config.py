"""Persistent connection defaults for the opasync CLI.

Values saved by ``opasync configure`` live in ``config.json`` under the
config directory and are overridden by ``opasync run`` options.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

DEFAULT_OPA_URL = "http://localhost:8181"
DEFAULT_REPLICATE_PATH = "kubernetes"

CONFIG_DIR_ENV = "OPASYNC_CONFIG_DIR"

CONFIG_KEYS = ("kube_url", "kube_token", "opa_url", "opa_token", "replicate_path")


def get_config_dir() -> Path:
    """Directory holding opasync's config file.

    ``$OPASYNC_CONFIG_DIR`` wins over ``~/.opasync`` (useful when the home
    directory is read-only, as in most containers).
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".opasync"


def get_config_file() -> Path:
    return get_config_dir() / "config.json"


def load_config() -> dict[str, str]:
    """Saved defaults, restricted to known keys.

    Returns:
        Mapping of config key to value; empty if nothing was saved.
    """
    config_file = get_config_file()
    if not config_file.exists():
        return {}
    saved = json.loads(config_file.read_text())
    return {key: str(saved[key]) for key in CONFIG_KEYS if saved.get(key)}


def save_config(config: dict[str, str]) -> None:
    """Write defaults, creating the config directory if needed."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2, sort_keys=True))
