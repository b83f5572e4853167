from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import ValidationError

from kismetdata.errors import ConfigurationError
from kismetdata.models import ToolConfig

DEFAULT_CONFIG_PATH = Path("kismetdata.config.yaml")


def _validate_config(raw: Dict[str, Any], source: str) -> ToolConfig:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config {source} must be a dictionary")
    for section in ("rest", "snapshot"):
        if raw.get(section) is None:
            raw.pop(section, None)
        elif not isinstance(raw[section], dict):
            raise ConfigurationError(f"Config '{section}' must be a dictionary")
    try:
        return ToolConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config {source}: {e}") from e


def load_config(path: Path | None = None) -> ToolConfig:
    """
    Load tool configuration from YAML.

    Missing sections fall back to built-in defaults. When no path is given
    and the default file does not exist, the defaults are returned as-is.

    Args:
        path: Optional path to a config file. Defaults to kismetdata.config.yaml

    Returns:
        Validated ToolConfig

    Raises:
        FileNotFoundError: If an explicit config path doesn't exist
        ConfigurationError: If the config structure is invalid
    """
    cfg_path = path or DEFAULT_CONFIG_PATH
    if not cfg_path.exists():
        if path is not None:
            raise FileNotFoundError(f"Config file not found: {cfg_path}")
        return ToolConfig()

    with cfg_path.open("r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Config file {cfg_path} is not valid YAML: {e}") from e

    return _validate_config(raw, str(cfg_path))
