"""
Configuration Loader - Load YAML configuration files
"""

import logging
from pathlib import Path
from typing import Any, Dict

import yaml

from relay.config.settings import RelaySettings

logger = logging.getLogger(__name__)


def load_yaml_config(file_path: str) -> Dict[str, Any]:
    """
    Load YAML configuration file

    Args:
        file_path: Path to YAML file

    Returns:
        Dictionary containing configuration

    Raises:
        FileNotFoundError: If configuration file doesn't exist
        yaml.YAMLError: If YAML parsing fails
    """
    path = Path(file_path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)

        if config is None:
            logger.warning(f"Empty configuration file: {file_path}")
            return {}

        logger.info(f"Loaded configuration from {file_path}")
        return config

    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML file {file_path}: {e}")
        raise


def load_config(config_path: str | None = None) -> RelaySettings:
    """
    Load relay configuration from a YAML file and/or environment variables.

    YAML sections (redis, stream, worker, observability) seed the nested
    settings groups; any group missing from the file is read from the
    environment.

    Args:
        config_path: Optional path to YAML config file. If None, uses environment variables.

    Returns:
        RelaySettings: Validated configuration object

    Raises:
        FileNotFoundError: If config file specified but not found
        yaml.YAMLError: If YAML parsing fails
        pydantic.ValidationError: If required settings (REDIS_URL, REDIS_PASSWORD) are missing

    Examples:
        >>> config = load_config()
        >>> config = load_config("config/relay.yaml")
    """
    if config_path:
        yaml_config = load_yaml_config(config_path)
        config = RelaySettings(**yaml_config)
    else:
        config = RelaySettings()
        logger.info("Loaded configuration from environment variables")

    logger.debug("Configuration loaded successfully")
    return config
