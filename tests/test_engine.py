"""Tests for the ImageSimilarity engine and the similarity assertion."""

import os

import cv2
import numpy as np
import pytest

from visual_regression.codec import read_image, write_image, write_uncompressed_image
from visual_regression.engine import (
    EXCEEDED, MISSING_REFERENCE, PASSED, ImageSimilarity, actual_output_path,
)
from visual_regression.errors import (
    InvalidSampleSizeError, MissingReferenceError, SimilarityExceededError,
)


@pytest.fixture
def altered_map_image(map_image):
    """The map image with the lake redrawn in a different color."""
    img = map_image.copy()
    cv2.circle(img, (280, 200), 50, (200, 80, 40), -1)
    return img


class TestConstruction:
    """Tests for engine construction and sample size handling."""

    def test_minimal_image_with_derived_sample_size(self, red_image):
        engine = ImageSimilarity(red_image)
        assert engine.sample_size == 1
        assert engine.signature.shape == (50, 50, 3)

    def test_sample_size_at_margin(self, red_image):
        engine = ImageSimilarity(red_image, sample_size=2)
        assert engine.max_sample_size == 2.0

    def test_hundred_pixel_image(self):
        engine = ImageSimilarity(np.zeros((100, 100, 3), dtype=np.uint8))
        assert engine.sample_size == 1

    def test_small_image_rejected_with_derived_sample_size(self):
        small = np.zeros((60, 80, 3), dtype=np.uint8)
        with pytest.raises(InvalidSampleSizeError) as exc:
            ImageSimilarity(small)
        assert exc.value.sample_size == 1
        assert exc.value.dimension == 80

    def test_image_too_small_for_sample_size(self):
        tiny = np.zeros((10, 10, 3), dtype=np.uint8)
        with pytest.raises(InvalidSampleSizeError):
            ImageSimilarity(tiny, sample_size=50)

    def test_invalid_sample_size_is_value_error(self):
        tiny = np.zeros((10, 10, 3), dtype=np.uint8)
        with pytest.raises(ValueError):
            ImageSimilarity(tiny, sample_size=50)

    def test_explicit_sample_size(self, map_image):
        engine = ImageSimilarity(map_image, sample_size=2)
        assert engine.sample_size == 2

    def test_max_sample_size(self, map_image):
        engine = ImageSimilarity(map_image)
        assert engine.max_sample_size == pytest.approx(3.0)

    def test_from_file(self, tmp_path, map_image):
        path = write_image(map_image, tmp_path / "map.png")
        engine = ImageSimilarity.from_file(path)
        assert np.array_equal(engine.reference_image, map_image)

    def test_custom_grid(self, map_image):
        engine = ImageSimilarity(map_image, grid_size=20)
        assert engine.signature.shape == (20, 20, 3)


class TestCalcDistance:
    """Tests for distances against the reference signature."""

    def test_identical_image(self, map_image):
        engine = ImageSimilarity(map_image)
        assert engine.calc_distance(map_image.copy()) == 0

    def test_different_image(self, map_image, altered_map_image):
        engine = ImageSimilarity(map_image)
        assert engine.calc_distance(altered_map_image) > 0

    def test_other_image_uses_reference_sample_size(self, map_image):
        engine = ImageSimilarity(map_image, sample_size=2)
        sig = engine.calc_signature(map_image)
        assert np.array_equal(sig, engine.signature)


class TestActualOutputPath:
    """Tests for the diagnostic path naming."""

    def test_marker_removed_and_png_extension(self):
        path = actual_output_path(os.path.join("a", "b", "expectedSimpleImage.tiff"))
        assert path == os.path.join("a", "b", "actualSimpleImage.png")

    def test_without_marker(self):
        assert actual_output_path("map.png") == "actualmap.png"

    def test_custom_marker(self):
        assert actual_output_path("golden-map.tif", marker="golden", prefix="out") == "out-map.png"


class TestCompare:
    """Tests for the side-effect free comparison."""

    def test_passed(self, tmp_path, map_image):
        expected = write_image(map_image, tmp_path / "expectedMap.png")
        result = ImageSimilarity(map_image).compare(expected, 0)
        assert result.status == PASSED
        assert result.passed
        assert result.distance == 0

    def test_exceeded_writes_nothing(self, tmp_path, map_image, altered_map_image):
        expected = write_image(altered_map_image, tmp_path / "expectedMap.png")
        result = ImageSimilarity(map_image).compare(expected, 0)
        assert result.status == EXCEEDED
        assert not result.passed
        assert not os.path.exists(result.actual_path)

    def test_missing_writes_nothing(self, tmp_path, map_image):
        result = ImageSimilarity(map_image).compare(tmp_path / "expectedMap.tiff", 10)
        assert result.status == MISSING_REFERENCE
        assert result.distance is None
        assert result.actual_path == str(tmp_path / "actualMap.png")
        assert not os.path.exists(result.actual_path)

    def test_write_diagnostic(self, tmp_path, map_image):
        engine = ImageSimilarity(map_image)
        result = engine.compare(tmp_path / "expectedMap.tiff", 10)
        path = engine.write_diagnostic(result)
        assert np.array_equal(read_image(path), map_image)


class TestAssertSimilarity:
    """Tests for the similarity assertion."""

    def test_threshold_boundary(self, tmp_path, map_image, altered_map_image):
        engine = ImageSimilarity(map_image)
        expected = write_image(altered_map_image, tmp_path / "expectedMap.png")
        distance = engine.calc_distance(altered_map_image)
        assert distance > 0

        result = engine.assert_similarity(expected, distance)
        assert result.distance == distance
        assert not os.path.exists(tmp_path / "actualMap.png")

        with pytest.raises(SimilarityExceededError) as exc:
            engine.assert_similarity(expected, distance - 1e-6)
        assert exc.value.distance == distance
        assert exc.value.max_distance == distance - 1e-6
        assert exc.value.expected_path == os.path.abspath(expected)

    def test_exceeded_writes_reference_as_actual(self, tmp_path, map_image,
                                                 altered_map_image):
        engine = ImageSimilarity(map_image)
        expected = write_image(altered_map_image, tmp_path / "expectedMap.png")
        with pytest.raises(SimilarityExceededError) as exc:
            engine.assert_similarity(expected, 0)
        actual = tmp_path / "actualMap.png"
        assert exc.value.actual_path == str(actual)
        assert np.array_equal(read_image(actual), map_image)

    def test_exceeded_is_assertion_error(self, tmp_path, map_image, altered_map_image):
        expected = write_image(altered_map_image, tmp_path / "expectedMap.png")
        with pytest.raises(AssertionError, match="greater than the max distance"):
            ImageSimilarity(map_image).assert_similarity(expected, 0)

    def test_missing_reference(self, tmp_path, map_image):
        engine = ImageSimilarity(map_image)
        expected = tmp_path / "expectedMap.tiff"
        with pytest.raises(MissingReferenceError) as exc:
            engine.assert_similarity(expected, 10)
        actual = tmp_path / "actualMap.png"
        assert exc.value.actual_path == str(actual)
        assert np.array_equal(read_image(actual), map_image)
        assert not expected.exists()

    def test_uncompressed_tiff_fixture(self, tmp_path, map_image):
        expected = write_uncompressed_image(map_image, tmp_path / "expectedMap.png")
        assert expected.endswith(".tiff")
        ImageSimilarity(map_image).assert_similarity(expected, 0)

    def test_small_rendering_noise_tolerated(self, tmp_path, map_image):
        noisy = map_image.copy()
        noisy[::7, ::7] = np.clip(noisy[::7, ::7].astype(int) + 3, 0, 255)
        expected = write_image(noisy, tmp_path / "expectedMap.png")
        engine = ImageSimilarity(map_image)
        red = np.zeros_like(map_image)
        red[:, :] = [255, 0, 0]
        assert engine.calc_distance(noisy) < engine.calc_distance(red) / 100
        engine.assert_similarity(expected, engine.calc_distance(noisy))
