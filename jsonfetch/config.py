"""
load the config from config.yaml and environment variables
"""

import os
from pathlib import Path
from typing import Any, Dict

import yaml

from .logging_setup import configure_logging
from .parsers import parser_from_name, set_default_parser


class Config:
    """Configuration loader that reads from config.yaml and environment variables."""

    env_mappings = {
        'JSONFETCH_USER_AGENT': ('fetcher', 'user_agent'),
        'JSONFETCH_TIMEOUT': ('fetcher', 'timeout'),
        'JSONFETCH_MAX_REDIRECTS': ('fetcher', 'max_redirects'),
        'JSONFETCH_MAX_RESPONSE_SIZE': ('fetcher', 'max_response_size'),
        'JSONFETCH_DEFAULT_PARSER': ('parser', 'default'),
        'LOG_LEVEL': ('logging', 'level'),
        'LOG_FORMAT': ('logging', 'format'),
        'LOG_STREAM': ('logging', 'stream'),
    }

    def __init__(self, config_path: str = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to config.yaml file. If None, looks for config.yaml
                        in the same directory as this module.
        """
        if config_path is None:
            config_path = Path(__file__).parent / "config.yaml"

        self.config_path = Path(config_path)
        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file and override with environment variables."""
        try:
            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if not isinstance(config, dict):
            raise ValueError(f"Configuration file {self.config_path} must contain a mapping")

        return self._apply_env_overrides(config)

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration."""
        for env_var, config_path in self.env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                # Navigate to the nested config location
                current = config
                for key in config_path[:-1]:
                    if not isinstance(current.get(key), dict):
                        current[key] = {}
                    current = current[key]

                current[config_path[-1]] = self._convert_env_value(env_value)

        return config

    def _convert_env_value(self, value: str):
        """Convert environment variable string to appropriate Python type."""
        if value.lower() in ('true', 'false'):
            return value.lower() == 'true'

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def get(self, *keys, default=None):
        """Get configuration value by nested keys.

        Args:
            *keys: Configuration keys (e.g., 'fetcher', 'timeout')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        current = self._config
        for key in keys:
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default
        return current

    @property
    def fetcher(self) -> Dict[str, Any]:
        """Get HTTP fetcher configuration."""
        return self.get('fetcher', default={}) or {}

    @property
    def parser(self) -> Dict[str, Any]:
        """Get parser configuration."""
        return self.get('parser', default={}) or {}

    @property
    def logging(self) -> Dict[str, Any]:
        """Get logging configuration."""
        return self.get('logging', default={}) or {}


def configure(config: Config = None) -> Config:
    """Apply a Config: set up logging and bind the default parser."""
    config = config or Config()
    log_config = config.logging
    configure_logging(
        log_config.get('level', 'INFO'),
        log_config.get('format', 'json'),
        log_config.get('stream', 'stdout'),
    )
    set_default_parser(parser_from_name(config.parser.get('default', 'json')))
    return config
