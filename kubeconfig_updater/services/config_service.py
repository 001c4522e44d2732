"""
Configuration Management Service

Centralized fleet config loading and validation.
"""

import tomllib
from pathlib import Path
from typing import Optional, Union

from kubeconfig_updater.constants import DEFAULT_CONFIG_PATH
from kubeconfig_updater.exceptions import ConfigurationError
from kubeconfig_updater.models.config import FleetConfig


class ConfigService:
    """
    Loads the fleet configuration from a TOML file.

    Responsibilities:
    - Resolve the config path (explicit or well-known default)
    - Parse and validate the TOML document
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        Initialize config service.

        Args:
            config_path: Path to the config file, default location when None
        """
        self.config_path = Path(config_path or DEFAULT_CONFIG_PATH).expanduser()

    def load(self) -> FleetConfig:
        """
        Load fleet configuration from disk.

        Returns:
            FleetConfig object

        Raises:
            ConfigurationError: If the file is missing, malformed or incomplete
        """
        if not self.config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found at '{self.config_path}'",
                context="Please create it, see README for the format",
            )

        try:
            with open(self.config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(
                f"Could not parse configuration file '{self.config_path}'",
                context=str(e),
            )

        return FleetConfig.from_dict(data)
