"""Configuration loader for the ticket synchronizer."""

import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
import yaml
from pydantic import ValidationError

from ticketsync.models.config import AppConfig

log = structlog.stdlib.get_logger()

# The YAML files ship inside the package as package data.
CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


class ConfigLoader:
    """Loads application configuration from YAML with environment variable substitution."""

    def __init__(self, config_dir: Path | None = None) -> None:
        self.config_dir = config_dir or CONFIG_DIR
        self.env_var_pattern = re.compile(r"\$\{([^}]+)\}")

    def load_config(
        self, config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None
    ) -> AppConfig:
        """Load configuration from YAML and apply command line overrides.

        Args:
            config_path: Path to a YAML file. If None, ``<APP_ENV>.yaml`` in ``config_dir``
                is used, falling back to ``default.yaml`` there. When neither
                exists the built in defaults apply.
            overrides: Nested mapping merged over the file contents,
                e.g. ``{"registration": {"url": "https://..."}}``

        Returns:
            AppConfig: Validated application configuration

        Raises:
            ConfigurationError: If the file is unreadable or the values are invalid
        """
        if config_path is None:
            config_path = self._get_default_config_path()

        config_dict: Dict[str, Any] = {}
        if config_path is not None:
            log.info("loading_configuration", config_path=config_path)
            config_dict = self._substitute_env_vars(self._load_yaml_file(config_path))

        if overrides:
            config_dict = self._merge(config_dict, overrides)

        try:
            app_config = AppConfig(**config_dict)
        except ValidationError as e:
            log.error("configuration_validation_failed", error=str(e))
            raise ConfigurationError(f"Configuration validation failed: {e}") from e

        log.info("configuration_loaded", data_dir=app_config.storage.data_dir)
        return app_config

    def _get_default_config_path(self) -> str | None:
        env = os.getenv("APP_ENV", "default")
        for name in (f"{env}.yaml", "default.yaml"):
            candidate = self.config_dir / name
            if candidate.exists():
                return str(candidate)
        log.debug("no_configuration_file", config_dir=str(self.config_dir))
        return None

    def _load_yaml_file(self, config_path: str) -> Dict[str, Any]:
        try:
            with open(config_path, "r") as f:
                config_dict = yaml.safe_load(f)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {config_path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML file {config_path}: {e}")
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration file {config_path}: {e}")

        if config_dict is None:
            return {}
        if not isinstance(config_dict, dict):
            raise ConfigurationError(f"Configuration file must hold a mapping: {config_path}")
        return config_dict

    def _merge(self, base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        merged = dict(base)
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = self._merge(merged[key], value)
            else:
                merged[key] = value
        return merged

    def _substitute_env_vars(self, config: Any) -> Any:
        """Recursively substitute ``${VAR_NAME}`` references.

        Raises:
            ConfigurationError: If a referenced environment variable is not set
        """
        if isinstance(config, dict):
            return {key: self._substitute_env_vars(value) for key, value in config.items()}
        elif isinstance(config, list):
            return [self._substitute_env_vars(item) for item in config]
        elif isinstance(config, str):
            return self.env_var_pattern.sub(self._env_value, config)
        else:
            return config

    def _env_value(self, match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.getenv(var_name)
        if env_value is None:
            raise ConfigurationError(
                f"Required environment variable not set: {var_name}. "
                f"Please set {var_name} in your environment."
            )
        return env_value
