"""Configuration validation using JSON Schema."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Union

import jsonschema
import yaml
from jsonschema import Draft7Validator, validators

from exceptions import ConfigValidationError
from log_config.logger import get_logger

logger = get_logger(__name__)

# JSON Schema for default.yaml configuration
CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "registration": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "method": {"type": "string", "enum": ["feature_homography", "feature", "surf"]},
                "contrast_threshold": {"type": "number", "exclusiveMinimum": 0.0, "maximum": 1.0},
                "min_response": {"type": "number", "minimum": 0.0},
                "max_features": {"type": "integer", "minimum": 0, "maximum": 100000},
                "good_match_factor": {"type": "number", "minimum": 1.0, "maximum": 100.0},
                "min_distance_floor": {"type": "number", "minimum": 0.0},
                "min_good_matches": {"type": "integer", "minimum": 4, "maximum": 10000},
                "ransac_reproj_threshold": {"type": "number", "exclusiveMinimum": 0.0, "maximum": 100.0},
                "min_scale": {"type": "number", "exclusiveMinimum": 0.0, "maximum": 1.0},
                "max_scale": {"type": "number", "minimum": 1.0, "maximum": 1000.0},
                "max_canvas_factor": {"type": "number", "minimum": 1.0, "maximum": 32.0},
                "color_composite": {"type": "boolean"},
                "draw_matches": {"type": "boolean"},
                "draw_matches_limit": {"type": "integer", "minimum": 1, "maximum": 1000},
                "fallback_policy": {"type": "string", "enum": ["passthrough", "skip"]},
                "runtime_budget_ms": {"type": "number", "minimum": 0.1, "maximum": 10000},
            },
        },
        "sync": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "output_buffer_size": {"type": "integer", "minimum": 1, "maximum": 10000},
                "feeder_join_timeout_s": {"type": "number", "minimum": 0.0, "maximum": 60.0},
            },
        },
        "source": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "width": {"type": "integer", "minimum": 16, "maximum": 7680},
                "height": {"type": "integer", "minimum": 16, "maximum": 4320},
                "pixfmt": {"type": "string", "enum": ["GRAY8", "RGB", "BGR"]},
                "fps": {"type": "integer", "minimum": 0, "maximum": 240},
            },
        },
        "logging": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "level": {"type": "string", "enum": ["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"]},
                "log_dir": {"type": ["string", "null"]},
            },
        },
    },
}


def extend_with_default(validator_class):
    """Extend JSON Schema validator to set default values."""
    validate_properties = validator_class.VALIDATORS["properties"]

    def set_defaults(validator, properties, instance, schema):
        for prop, subschema in properties.items():
            if "default" in subschema:
                instance.setdefault(prop, subschema["default"])

        for error in validate_properties(validator, properties, instance, schema):
            yield error

    return validators.extend(validator_class, {"properties": set_defaults})


DefaultValidatingValidator = extend_with_default(Draft7Validator)


def validate_config(config: Dict[str, Any]) -> None:
    """Validate configuration against JSON Schema.

    Args:
        config: Configuration dictionary

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    try:
        validator = DefaultValidatingValidator(CONFIG_SCHEMA)
        errors = list(validator.iter_errors(config))

        if errors:
            error_messages = []
            for error in errors:
                path = " -> ".join(str(p) for p in error.path) if error.path else "root"
                error_messages.append(f"{path}: {error.message}")

            logger.error(f"Configuration validation failed with {len(errors)} errors")
            for msg in error_messages:
                logger.error(f"  - {msg}")

            raise ConfigValidationError(
                f"Configuration validation failed with {len(errors)} error(s). See logs for details.",
                validation_errors=error_messages,
            )

        logger.debug("Configuration validation passed")

    except jsonschema.exceptions.SchemaError as e:
        logger.error(f"Invalid schema: {e}")
        raise ConfigValidationError(f"Invalid schema definition: {e}")


def validate_config_file(config_path: Union[str, Path]) -> None:
    """Validate a YAML configuration file.

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigValidationError(f"Configuration file not found: {config_path}")

    try:
        config = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML: {e}")
        raise ConfigValidationError(f"Failed to parse configuration file: {e}")

    validate_config(config)


__all__ = ["validate_config", "validate_config_file", "CONFIG_SCHEMA"]
