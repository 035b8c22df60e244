"""Settings for the duplo client.

Values are merged from, lowest to highest priority: built-in defaults,
the JSON config file, ``DUPLO_*`` environment variables, and command-line
flags.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import ConfigError


logger = logging.getLogger("duplo.config")


DEFAULT_HOST = "http://duplo.viberlab.com"
DEFAULT_STORAGE = "common"


@dataclass
class Settings:
    """Resolved settings for one invocation."""
    host: str = DEFAULT_HOST
    storage: str = DEFAULT_STORAGE
    permanent: bool = False
    timeout: Optional[float] = None


def default_config_path() -> Path:
    """Location of the config file, honouring ``DUPLO_CONFIG``."""
    override = os.environ.get("DUPLO_CONFIG")
    if override:
        return Path(override).expanduser()
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / "duplo" / "config.json"


def load_config_file(path: Path) -> Dict[str, Any]:
    """Read the JSON config file; a missing file yields an empty dict."""
    if not path.exists():
        logger.debug(f"No config file at {path}")
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Malformed config file {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Unable to read config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    logger.debug(f"Loaded config from {path}")
    return data


def normalize_host(host: str) -> str:
    """Prefix ``http://`` when the host carries no scheme."""
    host = host.strip()
    if host and "://" not in host:
        host = "http://" + host
    return host


def _parse_timeout(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid timeout value: {value!r}")
    if timeout <= 0:
        raise ConfigError(f"Timeout must be positive, got {value!r}")
    return timeout


def build_settings(
    host: Optional[str] = None,
    storage: Optional[str] = None,
    permanent: bool = False,
    config_path: Optional[Path] = None,
) -> Settings:
    """Merge defaults, config file, environment and flags into Settings."""
    file_values = load_config_file(config_path or default_config_path())

    merged: Dict[str, Any] = {
        "host": DEFAULT_HOST,
        "storage": DEFAULT_STORAGE,
        "timeout": None,
    }
    for key in merged:
        if key in file_values:
            merged[key] = file_values[key]

    if os.environ.get("DUPLO_HOST"):
        merged["host"] = os.environ["DUPLO_HOST"]
    if os.environ.get("DUPLO_STORAGE"):
        merged["storage"] = os.environ["DUPLO_STORAGE"]

    if host:
        merged["host"] = host
    if storage:
        merged["storage"] = storage

    if not isinstance(merged["host"], str) or not merged["host"].strip():
        raise ConfigError("Host is invalid")
    if not isinstance(merged["storage"], str) or not merged["storage"].strip("/ "):
        raise ConfigError("Storage name is invalid")

    return Settings(
        host=normalize_host(merged["host"]),
        storage=merged["storage"].strip("/ "),
        permanent=permanent,
        timeout=_parse_timeout(merged["timeout"]),
    )
