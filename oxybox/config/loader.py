"""Configuration loader with YAML parsing and environment variable substitution."""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import ProbeConfig


class ConfigError(Exception):
    """Raised when the probe configuration cannot be loaded or validated."""


class ConfigLoader:
    """Load and validate probe configuration."""

    @staticmethod
    def load_from_file(config_path: str) -> ProbeConfig:
        """
        Load configuration from YAML file with environment variable substitution.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            ProbeConfig: Validated configuration object

        Raises:
            FileNotFoundError: If config file doesn't exist
            ConfigError: If YAML parsing or validation fails
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_file, 'r') as f:
            return ConfigLoader.load_from_string(f.read())

    @staticmethod
    def load_from_string(content: str) -> ProbeConfig:
        """
        Parse and validate configuration from a YAML document.

        Args:
            content: YAML text

        Returns:
            ProbeConfig: Validated configuration object

        Raises:
            ConfigError: If YAML parsing or validation fails
        """
        try:
            raw_config = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}") from e

        # An empty file means no organisations
        if raw_config is None:
            raw_config = {}
        if not isinstance(raw_config, dict):
            raise ConfigError("Configuration root must be a mapping of organisations")

        raw_config = ConfigLoader._substitute_env_vars(raw_config)

        try:
            return ProbeConfig.model_validate(raw_config)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    @staticmethod
    def _substitute_env_vars(obj: Any) -> Any:
        """
        Recursively substitute ${ENV_VAR} placeholders with environment values.

        Args:
            obj: Object to process (str, dict, list, or primitive)

        Returns:
            Object with environment variables substituted
        """
        if isinstance(obj, str):
            pattern = r'\$\{(\w+)\}'
            return re.sub(pattern, lambda m: os.getenv(m.group(1), ''), obj)

        elif isinstance(obj, dict):
            return {k: ConfigLoader._substitute_env_vars(v) for k, v in obj.items()}

        elif isinstance(obj, list):
            return [ConfigLoader._substitute_env_vars(item) for item in obj]

        return obj
