"""Unit tests for JSON Schema configuration validation."""

import unittest
from pathlib import Path

import yaml

from configs.validator import validate_config, validate_config_file
from exceptions import ConfigValidationError


class TestConfigValidator(unittest.TestCase):
    """Test configuration validator."""

    def setUp(self):
        self.config = yaml.safe_load(Path("configs/default.yaml").read_text())

    def test_valid_config_passes(self):
        validate_config(self.config)

    def test_empty_config_passes(self):
        validate_config({})

    def test_unknown_section_rejected(self):
        self.config["camera"] = {"width": 640}
        with self.assertRaises(ConfigValidationError):
            validate_config(self.config)

    def test_unknown_key_rejected(self):
        self.config["registration"]["hessian"] = 400
        with self.assertRaises(ConfigValidationError):
            validate_config(self.config)

    def test_invalid_fallback_policy(self):
        self.config["registration"]["fallback_policy"] = "retry"
        with self.assertRaises(ConfigValidationError) as ctx:
            validate_config(self.config)
        self.assertTrue(any("fallback_policy" in e for e in ctx.exception.validation_errors))

    def test_invalid_method(self):
        self.config["registration"]["method"] = "optical_flow"
        with self.assertRaises(ConfigValidationError):
            validate_config(self.config)

    def test_method_alias_accepted(self):
        self.config["registration"]["method"] = "surf"
        validate_config(self.config)

    def test_non_positive_ransac_threshold(self):
        self.config["registration"]["ransac_reproj_threshold"] = 0
        with self.assertRaises(ConfigValidationError):
            validate_config(self.config)

    def test_invalid_pixfmt(self):
        self.config["source"]["pixfmt"] = "YUY2"
        with self.assertRaises(ConfigValidationError):
            validate_config(self.config)

    def test_wrong_type(self):
        self.config["sync"]["output_buffer_size"] = "many"
        with self.assertRaises(ConfigValidationError):
            validate_config(self.config)

    def test_multiple_errors_collected(self):
        self.config["registration"]["good_match_factor"] = 0.5
        self.config["source"]["width"] = 4
        self.config["sync"]["feeder_join_timeout_s"] = -1

        with self.assertRaises(ConfigValidationError) as ctx:
            validate_config(self.config)

        self.assertEqual(len(ctx.exception.validation_errors), 3)
        self.assertTrue(any(e.startswith("source -> width") for e in ctx.exception.validation_errors))


class TestConfigFileValidation(unittest.TestCase):
    """Test validation of YAML files."""

    def test_default_file_is_valid(self):
        validate_config_file(Path("configs/default.yaml"))

    def test_missing_file(self):
        with self.assertRaises(ConfigValidationError):
            validate_config_file(Path("does/not/exist.yaml"))


if __name__ == "__main__":
    unittest.main()
