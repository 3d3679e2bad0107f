from pathlib import Path

import pytest

from configs.settings import DEFAULT_CONFIG_PATH, AppConfig, load_config
from exceptions import ConfigError, ConfigValidationError, InvalidConfigError
from register.config import FallbackPolicy


def test_load_config() -> None:
    config = load_config(Path("configs/default.yaml"))

    assert config.registration.method == "feature_homography"
    assert config.registration.good_match_factor == 3.0
    assert config.registration.fallback_policy is FallbackPolicy.PASSTHROUGH
    assert config.sync.output_buffer_size == 64
    assert config.source.pixfmt == "RGB"


def test_default_file_matches_builtin_defaults() -> None:
    assert load_config(DEFAULT_CONFIG_PATH) == AppConfig()


def test_load_config_none_returns_defaults() -> None:
    assert load_config(None) == AppConfig()


def test_missing_sections_fall_back_to_defaults(tmp_path) -> None:
    path = tmp_path / "partial.yaml"
    path.write_text("registration:\n  fallback_policy: skip\n  min_good_matches: 12\n")

    config = load_config(path)

    assert config.registration.fallback_policy is FallbackPolicy.SKIP
    assert config.registration.min_good_matches == 12
    assert config.registration.ransac_reproj_threshold == 3.0
    assert config.sync == AppConfig().sync


def test_empty_file_gives_defaults(tmp_path) -> None:
    path = tmp_path / "empty.yaml"
    path.write_text("")

    assert load_config(path) == AppConfig()


def test_missing_file_raises(tmp_path) -> None:
    with pytest.raises(InvalidConfigError):
        load_config(tmp_path / "nope.yaml")


def test_malformed_yaml_raises(tmp_path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("registration: [unclosed\n")

    with pytest.raises(InvalidConfigError):
        load_config(path)


def test_non_mapping_root_raises(tmp_path) -> None:
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n")

    with pytest.raises(InvalidConfigError):
        load_config(path)


def test_out_of_range_value_is_rejected(tmp_path) -> None:
    path = tmp_path / "range.yaml"
    path.write_text("registration:\n  min_good_matches: 2\n")

    with pytest.raises(ConfigValidationError) as excinfo:
        load_config(path)

    assert isinstance(excinfo.value, ConfigError)
    assert any("min_good_matches" in msg for msg in excinfo.value.validation_errors)
