"""
Image similarity engine.

Holds the signature of one reference image (typically the freshly rendered
output of a test) and compares it against expected images on disk:

    1. Derive or validate the sample window, compute the reference signature
    2. Read the expected image and compute its signature
    3. Sum the per-cell color distances and compare against a threshold

The decision (compare) and its side effect (write_diagnostic) are separate
steps; assert_similarity combines them for use in tests. The engine is
read-only after construction and may be shared between threads. Failing
comparisons that target the same diagnostic path overwrite each other;
the last writer wins.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from .codec import DIAGNOSTIC_EXTENSION, read_image, write_image
from .errors import MissingReferenceError, SimilarityExceededError
from .signature import (
    COMPARE_SIZE, DISTANCE_SCALE, compute_signature, derive_sample_size,
    edge_margin, signature_distance, validate_sample_size,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

# Expected fixtures are named e.g. "expectedMap.tiff"; the diagnostic
# written next to them on failure is then "actualMap.png".
EXPECTED_MARKER = os.environ.get("VISUAL_REGRESSION_EXPECTED_MARKER", "expected")
ACTUAL_PREFIX = os.environ.get("VISUAL_REGRESSION_ACTUAL_PREFIX", "actual")

PASSED = "passed"
MISSING_REFERENCE = "missing_reference"
EXCEEDED = "exceeded"


def actual_output_path(expected_path: PathLike,
                       marker: str = EXPECTED_MARKER,
                       prefix: str = ACTUAL_PREFIX) -> str:
    """Diagnostic image path that sits next to ``expected_path``."""
    expected_path = os.fspath(expected_path)
    parent, name = os.path.split(expected_path)
    stem = os.path.splitext(name)[0].replace(marker, "")
    return os.path.join(parent, prefix + stem + DIAGNOSTIC_EXTENSION)


@dataclass(frozen=True)
class ComparisonResult:
    """Outcome of comparing the reference against one expected image."""

    status: str  # "passed" | "missing_reference" | "exceeded"
    distance: Optional[float]  # None if the expected image is missing
    max_distance: float
    expected_path: str
    actual_path: str

    @property
    def passed(self) -> bool:
        return self.status == PASSED


class ImageSimilarity:
    """
    Compares images against a reference image using perceptual signatures.
    """

    def __init__(self,
                 reference_image: np.ndarray,
                 sample_size: Optional[int] = None,
                 grid_size: int = COMPARE_SIZE,
                 distance_scale: float = DISTANCE_SCALE):
        """
        Compute the reference signature.

        Args:
            reference_image: RGB uint8 image, shape (H, W, C).
            sample_size: Half-width of the averaging window in pixels.
                Derived from the image size when omitted.
            grid_size: Signature cells along each axis.
            distance_scale: Scale factor applied to summed cell distances.

        Raises:
            InvalidSampleSizeError: If the image is too small for the
                sample window.
        """
        if sample_size is None:
            sample_size = derive_sample_size(reference_image, grid_size)
        validate_sample_size(reference_image, sample_size, grid_size)

        self._reference_image = reference_image
        self.sample_size = sample_size
        self.grid_size = grid_size
        self.distance_scale = distance_scale
        self._signature = compute_signature(reference_image, sample_size, grid_size)

        h, w = reference_image.shape[:2]
        logger.debug(
            f"Reference signature computed: {w}x{h} image, "
            f"sample size {sample_size}, grid {grid_size}"
        )

    @classmethod
    def from_file(cls, path: PathLike, sample_size: Optional[int] = None,
                  **kwargs) -> "ImageSimilarity":
        return cls(read_image(path), sample_size=sample_size, **kwargs)

    @property
    def reference_image(self) -> np.ndarray:
        return self._reference_image

    @property
    def signature(self) -> np.ndarray:
        return self._signature

    @property
    def max_sample_size(self) -> float:
        """Largest sample size the reference image would have accepted."""
        h, w = self._reference_image.shape[:2]
        return edge_margin(min(w, h), self.grid_size)

    def calc_signature(self, image: np.ndarray) -> np.ndarray:
        """Signature of ``image`` using this engine's window and grid."""
        return compute_signature(image, self.sample_size, self.grid_size)

    def calc_distance(self, other: np.ndarray) -> float:
        """Distance between the reference signature and ``other``'s."""
        distance = signature_distance(self._signature,
                                      self.calc_signature(other),
                                      self.distance_scale)
        logger.info(f"Current distance: {distance}")
        return distance

    def compare(self, expected_path: PathLike, max_distance: float) -> ComparisonResult:
        """
        Compare the reference against the image stored at ``expected_path``.

        Reads the expected image but writes nothing; see write_diagnostic.
        """
        expected_path = os.fspath(expected_path)
        actual_path = actual_output_path(expected_path)

        if not os.path.exists(expected_path):
            logger.warning(f"Expected image missing: {expected_path}")
            return ComparisonResult(MISSING_REFERENCE, None, max_distance,
                                    expected_path, actual_path)

        distance = self.calc_distance(read_image(expected_path))
        status = PASSED if distance <= max_distance else EXCEEDED
        if status == EXCEEDED:
            logger.warning(
                f"Distance {distance} exceeds {max_distance} for {expected_path}"
            )
        return ComparisonResult(status, distance, max_distance,
                                expected_path, actual_path)

    def write_diagnostic(self, result: ComparisonResult) -> str:
        """Write the reference image to the result's diagnostic path."""
        path = write_image(self._reference_image, result.actual_path)
        logger.info(f"Wrote diagnostic image: {path}")
        return path

    def assert_similarity(self, expected_path: PathLike,
                          max_distance: float) -> ComparisonResult:
        """
        Check that the expected image is within ``max_distance`` of the
        reference image.

        On failure the reference image is written next to the expected one
        (see actual_output_path) for inspection or promotion.

        Raises:
            MissingReferenceError: The expected image does not exist.
            SimilarityExceededError: The distance is above ``max_distance``.
        """
        result = self.compare(expected_path, max_distance)
        if result.status == MISSING_REFERENCE:
            self.write_diagnostic(result)
            raise MissingReferenceError(result.expected_path,
                                        os.path.abspath(result.actual_path))
        if result.status == EXCEEDED:
            self.write_diagnostic(result)
            raise SimilarityExceededError(result.distance, max_distance,
                                          os.path.abspath(result.expected_path),
                                          os.path.abspath(result.actual_path))
        return result
