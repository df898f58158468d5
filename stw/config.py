"""Configuration loading for stw.

The site configuration is a single YAML document (``config.yaml`` by default)
read once at start-up and again by the development server whenever the file
changes. Every string in it is marked safe so that templates interpolate
configured markup verbatim.

Key functions:
- load_config: Read and convert the configuration document.
- mark_safe: Recursively convert a parsed YAML value into a ConfigValue.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Union

import yaml
from markupsafe import Markup

ConfigValue = Union[
    Markup,
    int,
    float,
    bool,
    None,
    list["ConfigValue"],
    dict[str, "ConfigValue"],
]

DEFAULT_CONFIG_FILE = "config.yaml"


class ConfigError(ValueError):
    """Raised when the configuration document cannot be used."""


def mark_safe(value: Any) -> ConfigValue:
    """Convert a value produced by ``yaml.safe_load`` into a ConfigValue.

    Strings become ``Markup``; lists and mappings are converted recursively
    and mapping keys are turned into strings. Scalars YAML resolves to other
    types (dates, timestamps) keep their string form.
    """
    if isinstance(value, str):
        return Markup(value)
    if isinstance(value, dict):
        return {str(key): mark_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [mark_safe(item) for item in value]
    if value is None or isinstance(value, (bool, int, float)):
        return value
    return Markup(str(value))


def load_config(path: Path) -> dict[str, ConfigValue]:
    """Load the site configuration document.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Mapping of configuration keys to values; empty when the file is
        missing or empty.

    Raises:
        ConfigError: If the file cannot be read, is not valid UTF-8 or YAML,
            or is not a mapping.
    """
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"{path}: invalid YAML: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ConfigError(f"{path}: not valid UTF-8: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"{path}: could not read: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(
            f"{path}: expected a mapping at the top level, got {type(loaded).__name__}"
        )
    return mark_safe(loaded)
