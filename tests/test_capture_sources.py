"""Tests for simulated and file-backed frame sources."""

import cv2
import numpy as np
import pytest

from capture import ImageFileSource, SimulatedSource, make_textured_scene
from exceptions import SourceError


def test_textured_scene_is_deterministic() -> None:
    first = make_textured_scene(160, 120, seed=3)
    second = make_textured_scene(160, 120, seed=3)

    assert first.shape == (120, 160, 3)
    assert np.array_equal(first, second)
    assert not np.array_equal(first, make_textured_scene(160, 120, seed=4))


def test_simulated_shift_moves_scene() -> None:
    base = SimulatedSource("left", 160, 120, pixfmt="BGR").read()
    shifted = SimulatedSource("right", 160, 120, pixfmt="BGR", shift=(10, 4)).read()

    # Scene point (x, y) appears at (x + dx, y + dy)
    assert np.array_equal(shifted.image[4 + 20, 10 + 30], base.image[20, 30])


def test_simulated_source_respects_max_frames() -> None:
    source = SimulatedSource(max_frames=2, pixfmt="GRAY8")

    frames = [source.read(), source.read(), source.read()]

    assert [f.frame_index for f in frames[:2]] == [1, 2]
    assert frames[2] is None
    assert frames[0].image.ndim == 2
    assert source.get_stats().exhausted
    assert source.get_stats().frames_read == 2


def test_simulated_frames_are_independent_copies() -> None:
    source = SimulatedSource()
    frame = source.read()
    frame.image[:] = 0

    assert source.read().image.any()


def test_closed_source_returns_none() -> None:
    with SimulatedSource() as source:
        assert source.read() is not None
    assert source.read() is None


def test_still_image_is_repeated(tmp_path) -> None:
    path = tmp_path / "scene.png"
    bgr = make_textured_scene(80, 60)
    cv2.imwrite(str(path), bgr)

    source = ImageFileSource(path, pixfmt="BGR", repeat=2)

    assert (source.width, source.height) == (80, 60)
    first = source.read()
    assert first.camera_id == "scene"
    assert np.array_equal(first.image, bgr)
    assert source.read().frame_index == 2
    assert source.read() is None
    assert source.get_stats().exhausted


def test_still_image_resize_and_convert(tmp_path) -> None:
    path = tmp_path / "scene.png"
    cv2.imwrite(str(path), make_textured_scene(80, 60))

    frame = ImageFileSource(path, camera_id="left", pixfmt="GRAY8", size=(40, 30)).read()

    assert frame.image.shape == (30, 40)
    assert (frame.width, frame.height, frame.pixfmt) == (40, 30, "GRAY8")


def test_missing_file_raises(tmp_path) -> None:
    with pytest.raises(SourceError) as excinfo:
        ImageFileSource(tmp_path / "missing.png", camera_id="left")
    assert excinfo.value.source_id == "left"


def test_undecodable_image_raises(tmp_path) -> None:
    path = tmp_path / "broken.png"
    path.write_bytes(b"not an image")

    with pytest.raises(SourceError):
        ImageFileSource(path)
