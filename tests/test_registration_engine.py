"""Tests for the registration engine and its fallback policy."""

import dataclasses
from unittest import mock

import cv2
import numpy as np
import pytest

from app.events import ErrorCategory, ErrorEventBus
from capture import SimulatedSource
from contracts import FramePair
from exceptions import ConfigError, DegenerateHomographyError, FrameFormatError
from register import FallbackPolicy, RegistrationConfig, RegistrationEngine
from register.homography import translation

WIDTH, HEIGHT = 320, 240


def make_pair(shift=(0, 0), pixfmt="RGB", right_blank=False, sequence=1):
    left = SimulatedSource("left", WIDTH, HEIGHT, pixfmt=pixfmt).read()
    right = SimulatedSource("right", WIDTH, HEIGHT, pixfmt=pixfmt, shift=shift, blank=right_blank).read()
    return FramePair(left=left, right=right, sequence=sequence)


@pytest.fixture
def bus():
    return ErrorEventBus()


@pytest.fixture
def engine(bus):
    return RegistrationEngine(RegistrationConfig(), error_bus=bus)


def test_identical_frames_reproduce_input(engine) -> None:
    pair = make_pair()

    output = engine.process(pair)

    assert output is not None
    assert not output.degraded
    assert output.image.shape == (HEIGHT, WIDTH, 3)
    assert np.array_equal(output.image, pair.right.image)
    np.testing.assert_allclose(output.homography, np.eye(3), atol=1e-2)


def test_translation_is_recovered(engine) -> None:
    dx, dy = 12, 5
    pair = make_pair(shift=(dx, dy))

    output = engine.process(pair)

    assert output is not None and not output.degraded
    est_dx, est_dy = translation(output.homography)
    assert abs(est_dx - dx) <= 1.0
    assert abs(est_dy - dy) <= 1.0
    assert engine.get_stats()["last_good_matches"] >= 10
    # Output keeps the session geometry
    assert output.image.shape == (HEIGHT, WIDTH, 3)
    assert (output.width, output.height, output.pixfmt) == (WIDTH, HEIGHT, "RGB")


def test_output_metadata_follows_pair(engine) -> None:
    pair = make_pair(sequence=7)

    output = engine.process(pair)

    assert output.sequence == 7
    assert output.left_index == pair.left.frame_index
    assert output.right_index == pair.right.frame_index
    assert output.t_capture_monotonic_ns == pair.right.t_capture_monotonic_ns


def test_gray_frames(engine) -> None:
    pair = make_pair(shift=(6, 3), pixfmt="GRAY8")

    output = engine.process(pair)

    assert not output.degraded
    assert output.image.shape == (HEIGHT, WIDTH)
    assert output.pixfmt == "GRAY8"


def test_featureless_frame_falls_back_to_passthrough(engine, bus) -> None:
    pair = make_pair(right_blank=True)

    output = engine.process(pair)

    assert output is not None
    assert output.degraded
    assert output.failure_reason == "insufficient_matches"
    assert output.homography is None
    assert np.array_equal(output.image, pair.right.image)
    assert output.image is not pair.right.image

    stats = engine.get_stats()
    assert stats["failures"] == 1
    assert stats["degraded"] == 1
    assert stats["failures_by_reason"] == {"insufficient_matches": 1}

    events = bus.get_history(category=ErrorCategory.REGISTRATION)
    assert len(events) == 1
    assert events[0].metadata["reason"] == "insufficient_matches"
    assert events[0].metadata["policy"] == "passthrough"


def test_blank_left_frame_falls_back(engine) -> None:
    left = SimulatedSource("left", WIDTH, HEIGHT, blank=True).read()
    right = SimulatedSource("right", WIDTH, HEIGHT).read()

    output = engine.process(FramePair(left=left, right=right, sequence=1))

    assert output.degraded
    assert output.failure_reason == "insufficient_matches"
    assert np.array_equal(output.image, right.image)


def test_skip_policy_emits_nothing(bus) -> None:
    engine = RegistrationEngine(RegistrationConfig(fallback_policy=FallbackPolicy.SKIP), error_bus=bus)

    assert engine.process(make_pair(right_blank=True)) is None
    assert engine.get_stats()["skipped"] == 1
    assert bus.count(ErrorCategory.REGISTRATION) == 1


def test_set_fallback_policy(engine) -> None:
    engine.set_fallback_policy(FallbackPolicy.SKIP)

    assert engine.config.fallback_policy is FallbackPolicy.SKIP
    assert engine.process(make_pair(right_blank=True)) is None


def test_degenerate_homography_falls_back(engine) -> None:
    pair = make_pair()
    error = DegenerateHomographyError("singular")

    with mock.patch("register.feature_homography.estimate_homography", side_effect=error):
        output = engine.process(pair)

    assert output.degraded
    assert output.failure_reason == "degenerate_homography"


def test_opencv_error_falls_back(engine) -> None:
    with mock.patch("register.feature_homography.estimate_homography", side_effect=cv2.error("boom")):
        output = engine.process(make_pair())

    assert output.degraded
    assert output.failure_reason == "numeric_error"


def test_engine_recovers_after_failure(engine) -> None:
    assert engine.process(make_pair(right_blank=True)).degraded
    assert not engine.process(make_pair(shift=(4, 2), sequence=2)).degraded

    stats = engine.get_stats()
    assert stats["pairs"] == 2
    assert stats["registered"] == 1


def test_format_mismatch_propagates(engine) -> None:
    left = SimulatedSource("left", WIDTH, HEIGHT).read()
    right = SimulatedSource("right", WIDTH // 2, HEIGHT // 2).read()

    with pytest.raises(FrameFormatError) as excinfo:
        engine.process(FramePair(left=left, right=right, sequence=1))

    assert excinfo.value.expected.width == WIDTH
    assert excinfo.value.actual.width == WIDTH // 2
    assert engine.get_stats()["failures"] == 0


def test_gray_label_on_color_buffer_is_format_error(engine) -> None:
    pair = make_pair()
    left = dataclasses.replace(pair.left, pixfmt="GRAY8")
    right = dataclasses.replace(pair.right, pixfmt="GRAY8")
    engine.reconfigure(WIDTH, HEIGHT, 1, "GRAY8")

    with pytest.raises(FrameFormatError) as excinfo:
        engine.process(FramePair(left=left, right=right, sequence=1))

    assert excinfo.value.actual.channels == 3
    assert engine.get_stats()["failures"] == 0


def test_color_label_on_gray_buffer_is_format_error(engine) -> None:
    pair = make_pair()
    gray = cv2.cvtColor(pair.right.image, cv2.COLOR_RGB2GRAY)
    right = dataclasses.replace(pair.right, image=gray)

    with pytest.raises(FrameFormatError) as excinfo:
        engine.process(FramePair(left=pair.left, right=right, sequence=1))

    assert excinfo.value.expected.channels == 3
    assert excinfo.value.actual.channels == 1


def test_first_pair_configures_buffers(engine) -> None:
    assert engine.frame_format is None

    engine.process(make_pair())

    assert engine.frame_format.size == (WIDTH, HEIGHT)
    assert engine.epoch == 1


def test_reconfigure_bumps_epoch(engine) -> None:
    fmt = engine.reconfigure(WIDTH, HEIGHT, 3, "RGB")
    assert engine.epoch == 1
    assert fmt.pixfmt == "RGB"

    engine.reconfigure(160, 120, 1)
    assert engine.epoch == 2
    assert engine.frame_format.pixfmt == "GRAY8"


@pytest.mark.parametrize(
    "width, height, channels, pixfmt",
    [(0, 240, 3, "RGB"), (320, -1, 3, "RGB"), (320, 240, 3, "GRAY8"), (320, 240, 4, None)],
)
def test_reconfigure_rejects_invalid_format(engine, width, height, channels, pixfmt) -> None:
    with pytest.raises(FrameFormatError):
        engine.reconfigure(width, height, channels, pixfmt)


def test_set_method_aliases(engine) -> None:
    engine.set_method("SURF")
    assert engine.method_name == "feature_homography"
    assert engine.config.method == "feature_homography"


def test_set_unknown_method(engine) -> None:
    with pytest.raises(ConfigError):
        engine.set_method("optical_flow")


def test_draw_matches_output_keeps_frame_geometry(bus) -> None:
    engine = RegistrationEngine(RegistrationConfig(draw_matches=True), error_bus=bus)

    output = engine.process(make_pair(shift=(10, 0)))

    assert not output.degraded
    assert output.image.shape == (HEIGHT, WIDTH, 3)


def test_gray_composite_for_color_frames(bus) -> None:
    engine = RegistrationEngine(RegistrationConfig(color_composite=False), error_bus=bus)
    pair = make_pair()

    output = engine.process(pair)

    assert output.image.shape == (HEIGHT, WIDTH, 3)
    # Gray composite replicated into the three channels
    assert np.array_equal(output.image[:, :, 0], output.image[:, :, 1])


def test_callable_and_stats_reset(engine) -> None:
    engine(make_pair())
    assert engine.get_stats()["pairs"] == 1
    assert engine.get_stats()["avg_elapsed_ms"] > 0

    engine.reset_stats()
    stats = engine.get_stats()
    assert stats["pairs"] == 0
    assert stats["avg_elapsed_ms"] == 0.0
