"""Configuration validation utilities for YAML config files.

This module validates controller configuration files: schema validation
through the pydantic model, plus the startup checks that make a
configuration unusable (no serial port outside test mode, a bridge MAC
without an address) and warnings for settings that are legal but unlikely
to work well.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import ValidationError

from ...models.light_configuration import LightConfiguration


KNOWN_SECTIONS = {"serial", "bridge", "trigger", "scene", "enable_debug_logging"}


class ConfigValidationError(Exception):
    """Custom exception for configuration validation errors."""

    def __init__(self, message: str, path: str = "", details: Optional[Dict] = None):
        self.message = message
        self.path = path
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.path:
            return f"Config validation error at '{self.path}': {self.message}"
        return f"Config validation error: {self.message}"


class ValidationResult:
    """Result of configuration validation."""

    def __init__(self):
        self.is_valid = True
        self.errors: List[ConfigValidationError] = []
        self.warnings: List[str] = []
        self.info: List[str] = []
        self.config: Optional[LightConfiguration] = None

    def add_error(self, error: ConfigValidationError) -> None:
        """Add validation error."""
        self.errors.append(error)
        self.is_valid = False

    def add_warning(self, message: str, path: str = "") -> None:
        """Add validation warning."""
        warning_msg = f"Warning at '{path}': {message}" if path else f"Warning: {message}"
        self.warnings.append(warning_msg)

    def add_info(self, message: str) -> None:
        """Add informational message."""
        self.info.append(message)

    def get_summary(self) -> Dict[str, Any]:
        """Get validation summary."""
        return {
            "valid": self.is_valid,
            "error_count": len(self.errors),
            "warning_count": len(self.warnings),
            "info_count": len(self.info),
            "errors": [str(error) for error in self.errors],
            "warnings": self.warnings,
            "info": self.info
        }

    def print_results(self, verbose: bool = True) -> None:
        """Print validation results to console."""
        if self.is_valid:
            print("✓ Configuration validation passed")
        else:
            print("✗ Configuration validation failed")

        if self.errors:
            print(f"\nErrors ({len(self.errors)}):")
            for error in self.errors:
                print(f"  • {error}")

        if self.warnings and verbose:
            print(f"\nWarnings ({len(self.warnings)}):")
            for warning in self.warnings:
                print(f"  • {warning}")

        if self.info and verbose:
            print(f"\nInfo ({len(self.info)}):")
            for info in self.info:
                print(f"  • {info}")


class ConfigValidator:
    """Configuration validator."""

    def __init__(self, strict_mode: bool = False):
        self.strict_mode = strict_mode
        self.result = ValidationResult()

    def validate_config(self, config_data: Dict[str, Any]) -> ValidationResult:
        """Validate complete configuration dictionary."""
        self.result = ValidationResult()

        self._validate_structure(config_data)
        config_obj = self._validate_pydantic_model(config_data)

        if config_obj:
            self._validate_startup_requirements(config_obj)
            self._validate_timing_settings(config_obj)
            self._validate_scene(config_obj)
            self.result.config = config_obj

        return self.result

    def validate_yaml_file(self, file_path: Union[str, Path]) -> ValidationResult:
        """Validate YAML configuration file."""
        self.result = ValidationResult()
        file_path = Path(file_path)

        if not file_path.is_file():
            self.result.add_error(ConfigValidationError(
                f"Configuration file does not exist: {file_path}"
            ))
            return self.result

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            self.result.add_error(ConfigValidationError(f"YAML parsing error: {e}"))
            return self.result
        except OSError as e:
            self.result.add_error(ConfigValidationError(f"File validation error: {e}"))
            return self.result

        if not isinstance(config_data, dict):
            self.result.add_error(ConfigValidationError("Configuration must be a mapping"))
            return self.result

        return self.validate_config(config_data)

    def _validate_structure(self, config: Dict[str, Any]) -> None:
        """Report unknown top-level keys."""
        unknown_keys = set(config.keys()) - KNOWN_SECTIONS

        if unknown_keys and self.strict_mode:
            for key in sorted(unknown_keys):
                self.result.add_error(ConfigValidationError(
                    f"Unknown configuration key: {key}",
                    path=key
                ))

    def _validate_pydantic_model(self, config: Dict[str, Any]) -> Optional[LightConfiguration]:
        """Validate using Pydantic model."""
        try:
            config_obj = LightConfiguration(**config)
            self.result.add_info("Pydantic model validation passed")
            return config_obj

        except ValidationError as e:
            for error in e.errors():
                field_path = ".".join(str(x) for x in error['loc'])
                self.result.add_error(ConfigValidationError(
                    error['msg'],
                    path=field_path,
                    details={"type": error['type'], "input": error.get('input')}
                ))
            return None

    def _validate_startup_requirements(self, config: LightConfiguration) -> None:
        """Checks that make a configuration unusable at startup."""
        if not config.serial.testmode and not config.serial.port:
            self.result.add_error(ConfigValidationError(
                "No serial port configured; set serial.port or enable testmode",
                path="serial.port"
            ))

        if config.bridge.mac and not config.bridge.is_static:
            self.result.add_error(ConfigValidationError(
                "Bridge MAC given without a bridge IP",
                path="bridge.ip"
            ))

        if config.bridge.is_static and not config.bridge.mac:
            self.result.add_warning(
                "Bridge IP given without a MAC; the bridge will be logged without one",
                path="bridge.mac"
            )

        if config.trigger.min_distance:
            self.result.add_info(
                f"Fixed trigger distance {config.trigger.min_distance:g}; calibration is skipped"
            )

    def _validate_timing_settings(self, config: LightConfiguration) -> None:
        """Warn about timing combinations that behave oddly."""
        trigger = config.trigger

        if trigger.reset_time_ms < 1000:
            self.result.add_warning(
                f"Very short reset time ({trigger.reset_time_ms}ms) may make the lights flicker",
                path="trigger.reset_time_ms"
            )

        if not trigger.min_distance and trigger.calibration_ms < 1000:
            self.result.add_warning(
                f"Short calibration window ({trigger.calibration_ms}ms) may learn a noisy threshold",
                path="trigger.calibration_ms"
            )

        if config.serial.reconnect_delay_ms < 500:
            self.result.add_warning(
                "Reconnect delay under 500ms will retry a missing port very aggressively",
                path="serial.reconnect_delay_ms"
            )

    def _validate_scene(self, config: LightConfiguration) -> None:
        scene = config.scene
        if scene.primary.zone == scene.secondary.zone:
            self.result.add_warning(
                f"Primary and secondary groups share zone {scene.primary.zone}",
                path="scene"
            )
        if 0 in (scene.primary.zone, scene.secondary.zone):
            self.result.add_info("Zone 0 addresses every zone on the bridge")


def validate_config_dict(config_data: Dict[str, Any], strict: bool = False) -> ValidationResult:
    """Validate configuration dictionary (convenience function)."""
    validator = ConfigValidator(strict_mode=strict)
    return validator.validate_config(config_data)


def validate_config_file(file_path: Union[str, Path], strict: bool = False) -> ValidationResult:
    """Validate configuration YAML file (convenience function)."""
    validator = ConfigValidator(strict_mode=strict)
    return validator.validate_yaml_file(file_path)


def generate_example_config() -> Dict[str, Any]:
    """Generate example configuration dictionary."""
    return {
        "serial": {
            "port": "/dev/ttyS0",
            "baud_rate": 9600,
            "reconnect_delay_ms": 2000,
            "testmode": False
        },
        "bridge": {
            "ip": None,
            "mac": None,
            "command_delay_ms": 100,
            "discovery_retry_ms": 100,
            "rediscover_on_error": False
        },
        "trigger": {
            "min_distance": 0,
            "reset_time_ms": 10000,
            "calibration_ms": 5000,
            "window_size": 10,
            "out_of_range_floor": 100,
            "out_of_range_factor": 1.25
        },
        "scene": {
            "primary": {"name": "door", "zone": 1, "bulb_type": "rgbw"},
            "secondary": {"name": "porch", "zone": 2, "bulb_type": "rgbcct"},
            "primary_alert_color": [235, 200, 0],
            "secondary_alert_color": [190, 0, 255],
            "neutral_color": [200, 200, 200]
        },
        "enable_debug_logging": False
    }
