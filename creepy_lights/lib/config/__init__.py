"""Configuration management library with YAML support.

This library loads the controller configuration from three layers, each
overriding the one before:

- YAML configuration file (defaults fill anything it leaves out)
- Environment variables (``CREEPY_LIGHTS_*``)
- Command-line overrides

Usage:
    from creepy_lights.lib.config import ConfigManager

    config_manager = ConfigManager("config.yaml")
    config = config_manager.load_config(overrides={"serial": {"testmode": True}})
"""

import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ...models.light_configuration import LightConfiguration
from .validation import (
    ConfigValidationError,
    ConfigValidator,
    ValidationResult,
    generate_example_config,
    validate_config_dict,
    validate_config_file,
)

DEFAULT_CONFIG_FILE = "config.yaml"
ENV_PREFIX = "CREEPY_LIGHTS_"


class ConfigurationError(Exception):
    """Exception raised for configuration-related errors."""
    pass


class ConfigManager:
    """Configuration manager with YAML support, overrides and validation."""

    def __init__(
        self,
        config_path: Optional[Union[str, Path]] = None,
        validate: bool = True,
        strict_validation: bool = False,
        create_if_missing: bool = False
    ):
        self.config_path = Path(config_path) if config_path else None
        self.validate = validate
        self.strict_validation = strict_validation
        self.create_if_missing = create_if_missing

        # State
        self._current_config: Optional[LightConfiguration] = None

        # Environment variable prefix for overrides
        self.env_prefix = ENV_PREFIX

        if self.create_if_missing and self.config_path and not self.config_path.exists():
            self._create_default_config()

    def load_config(self, overrides: Optional[Dict[str, Any]] = None) -> LightConfiguration:
        """
        Load and return the configuration.

        With no config path, defaults are used. A config path that does not
        exist is an error.
        """
        config_data = self._load_yaml_file() if self.config_path else {}
        config_data = self._apply_env_overrides(config_data)
        if overrides:
            config_data = self._deep_merge(config_data, overrides)

        if self.validate:
            validation_result = self._validate_config(config_data)

            if not validation_result.is_valid:
                raise ConfigurationError(
                    f"Configuration validation failed: {validation_result.errors[0]}"
                )
            self._current_config = validation_result.config
        else:
            try:
                self._current_config = LightConfiguration(**config_data)
            except ValueError as e:
                raise ConfigurationError(f"Invalid configuration: {e}") from e

        return self._current_config

    def save_config(self, config: LightConfiguration) -> None:
        """Save configuration to the YAML file."""
        if not self.config_path:
            raise ConfigurationError("No configuration path set")

        self._save_yaml_file(config.export_dict())
        self._current_config = config

    def export_config_yaml(self, output_path: Optional[Path] = None) -> str:
        """Export current configuration to YAML string or file."""
        if not self._current_config:
            raise ConfigurationError("No configuration loaded")

        yaml_content = self._dict_to_yaml(self._current_config.export_dict())

        if output_path:
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(yaml_content)

        return yaml_content

    def _load_yaml_file(self) -> Dict[str, Any]:
        """Load YAML configuration file."""
        if not self.config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {self.config_path}. "
                f"Create one with --export-config {self.config_path} and edit it."
            )

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"YAML parsing error: {e}")
        except OSError as e:
            raise ConfigurationError(f"Error reading config file: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file must contain a mapping: {self.config_path}")
        return data

    def _save_yaml_file(self, config_data: Dict[str, Any]) -> None:
        """Save configuration data to YAML file."""
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, 'w', encoding='utf-8') as f:
                f.write(self._dict_to_yaml(config_data))
        except OSError as e:
            raise ConfigurationError(f"Error writing config file: {e}")

    def _dict_to_yaml(self, data: Dict[str, Any]) -> str:
        """Convert dictionary to formatted YAML string."""
        header = f"""# Creepy Lights Configuration
# Generated: {datetime.now().isoformat()}
#
# trigger.min_distance: tenths of a millimeter; 0 calibrates for
#   {data.get('trigger', {}).get('calibration_ms', 5000)}ms after every rangefinder (re)connect
# bridge.ip / bridge.mac: leave empty to discover the bridge by broadcast

"""

        yaml_content = yaml.dump(
            data,
            default_flow_style=False,
            indent=2,
            sort_keys=False,
            allow_unicode=True
        )

        return header + yaml_content

    def _validate_config(self, config_data: Dict[str, Any]) -> ValidationResult:
        """Validate configuration data."""
        validator = ConfigValidator(strict_mode=self.strict_validation)
        return validator.validate_config(config_data)

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration."""
        env_mappings = {
            "SERIALPORT": ["serial", "port"],
            "TESTMODE": ["serial", "testmode"],
            f"{self.env_prefix}SERIAL_PORT": ["serial", "port"],
            f"{self.env_prefix}TESTMODE": ["serial", "testmode"],
            f"{self.env_prefix}BRIDGE_IP": ["bridge", "ip"],
            f"{self.env_prefix}BRIDGE_MAC": ["bridge", "mac"],
            f"{self.env_prefix}MIN_DISTANCE": ["trigger", "min_distance"],
            f"{self.env_prefix}RESET_TIME_MS": ["trigger", "reset_time_ms"],
            f"{self.env_prefix}DEBUG": ["enable_debug_logging"],
        }

        modified_data = self._deep_merge({}, config_data)

        for env_var, path in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                try:
                    converted_value = self._convert_env_value(env_value, path)
                except ValueError:
                    raise ConfigurationError(
                        f"Invalid value for {env_var}: {env_value!r}"
                    ) from None
                self._set_nested_value(modified_data, path, converted_value)

        return modified_data

    def _convert_env_value(self, value: str, path: list) -> Any:
        """Convert environment variable string to appropriate type."""
        if path[-1] in ["testmode", "enable_debug_logging"]:
            return value.lower() in ('true', '1', 'yes', 'on')

        if path[-1] in ["reset_time_ms"]:
            return int(value)

        if path[-1] in ["min_distance"]:
            return float(value)

        return value

    def _set_nested_value(self, data: Dict[str, Any], path: list, value: Any) -> None:
        """Set nested dictionary value using path list."""
        current = data
        for key in path[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]
        current[path[-1]] = value

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            elif isinstance(value, dict):
                result[key] = self._deep_merge({}, value)
            else:
                result[key] = value

        return result

    def _create_default_config(self) -> None:
        """Create default configuration file."""
        self._save_yaml_file(generate_example_config())


# Convenience functions
def load_configuration(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None
) -> LightConfiguration:
    """Load configuration from a YAML file, the environment and overrides."""
    manager = ConfigManager(config_path)
    return manager.load_config(overrides=overrides)


def load_default_configuration() -> LightConfiguration:
    """Built-in defaults, without validation of startup requirements."""
    return LightConfiguration()


def export_configuration(config: LightConfiguration, config_path: Union[str, Path]) -> None:
    """Save configuration to YAML file (convenience function)."""
    manager = ConfigManager(config_path, validate=False)
    manager.save_config(config)


__all__ = [
    "ConfigManager",
    "ConfigurationError",
    "ConfigValidationError",
    "ConfigValidator",
    "ValidationResult",
    "DEFAULT_CONFIG_FILE",
    "generate_example_config",
    "load_configuration",
    "load_default_configuration",
    "export_configuration",
    "validate_config_dict",
    "validate_config_file",
]
