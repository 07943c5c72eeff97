"""Configuration loading utilities."""

from pathlib import Path
from typing import Any

import yaml

from monsync.config.models import Config


def read_yaml_mapping(path: Path, what: str = "config file") -> dict[str, Any]:
    """
    Read a YAML file whose root must be a mapping.

    Args:
        path: File to read.
        what: Description used in error messages.

    Returns:
        Parsed mapping; an empty file yields an empty mapping.

    Raises:
        FileNotFoundError: If path doesn't exist.
        ValueError: If YAML is invalid or the root is not a mapping.
    """
    if not path.exists():
        raise FileNotFoundError(f"{what.capitalize()} not found: {path}")

    try:
        with path.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {what}: {e}") from e

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ValueError(f"YAML root must be a mapping, not {type(data).__name__}")

    return data


def load_config(config_path: Path | None) -> Config:
    """
    Load configuration from YAML file or return defaults.

    Args:
        config_path: Path to YAML config file, or None for defaults.

    Returns:
        Validated Config object.

    Raises:
        FileNotFoundError: If config_path doesn't exist.
        ValueError: If YAML is invalid.
    """
    if config_path is None:
        return Config()

    return Config(**read_yaml_mapping(config_path))
