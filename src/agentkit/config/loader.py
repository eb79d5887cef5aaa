"""Configuration loading and validation."""

from pathlib import Path

import yaml
from pydantic import ValidationError

from agentkit.config.schema import PlatformConfig
from agentkit.errors import ConfigurationError

DEFAULT_CONFIG_PATH = Path.home() / ".agentkit" / "agentkit.yaml"


class ConfigError(ConfigurationError):
    """Configuration loading or validation error."""


def load_config(path: Path | str | None = None) -> PlatformConfig:
    """Load and validate agentkit configuration from a YAML file.

    Args:
        path: Path to config file. If None, tries the default location.
              If the file doesn't exist, returns the default config.

    Returns:
        Validated configuration object

    Raises:
        ConfigError: If the config file exists but is invalid
    """
    path = Path(path) if path is not None else DEFAULT_CONFIG_PATH

    # Zero-config mode: if file doesn't exist, use all defaults
    if not path.exists():
        return PlatformConfig()

    try:
        with open(path) as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config from {path}: {e}") from e

    # Handle empty file
    if config_data is None:
        return PlatformConfig()
    if not isinstance(config_data, dict):
        raise ConfigError(f"Config root in {path} must be a mapping")

    try:
        return PlatformConfig(**config_data)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e


def save_config(config: PlatformConfig, path: Path | str | None = None) -> None:
    """Save configuration to a YAML file.

    Args:
        config: Configuration object to save
        path: Destination path. If None, uses the default location.
    """
    path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        yaml.safe_dump(config.model_dump(), f, default_flow_style=False, sort_keys=False)
