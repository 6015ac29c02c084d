"""YAML configuration loading for crawlr.

Uses ``yaml.safe_load`` so a config file can only contain plain data.
[BaseService.from_yaml()][crawlr.core.base_service.BaseService.from_yaml]
passes the result to the service's pydantic config model for validation.

Examples:
    ```python
    from crawlr.core.yaml import load_yaml

    config = load_yaml("config/crawler.yaml")
    ```
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError


def load_yaml(config_path: str | Path) -> dict[str, Any]:
    """Load and parse a YAML configuration file.

    Args:
        config_path: Path to the YAML file.

    Returns:
        Parsed mapping; an empty dict if the file holds no data.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the YAML is invalid or its top level is not
            a mapping.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config root must be a mapping in {config_path}, got {type(data).__name__}"
        )
    return data
