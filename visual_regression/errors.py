"""
Exception types raised by the similarity engine and its collaborators.

Assertion outcomes (missing reference, distance over threshold) derive from
AssertionError so that test runners report them as failures rather than
errors. Input validation problems derive from ValueError.
"""


class ImageSimilarityError(Exception):
    """Base class for all visual_regression errors."""


class InvalidSampleSizeError(ImageSimilarityError, ValueError):
    """The sample window does not fit the reference image."""

    def __init__(self, message: str, dimension: int, sample_size: int):
        super().__init__(message)
        self.dimension = dimension
        self.sample_size = sample_size


class MissingReferenceError(ImageSimilarityError, AssertionError):
    """
    The expected image does not exist yet.

    The rendered image has been written to ``actual_path`` so it can be
    reviewed and promoted to the new reference.
    """

    def __init__(self, expected_path, actual_path):
        super().__init__(
            f"The expected file was missing and has been generated: {actual_path}"
        )
        self.expected_path = expected_path
        self.actual_path = actual_path


class SimilarityExceededError(ImageSimilarityError, AssertionError):
    """The signature distance is above the allowed maximum."""

    def __init__(self, distance: float, max_distance: float,
                 expected_path, actual_path):
        super().__init__(
            f"similarity difference between images is: {distance} which is "
            f"greater than the max distance of {max_distance}\n"
            f"actual={actual_path}\nexpected={expected_path}"
        )
        self.distance = distance
        self.max_distance = max_distance
        self.expected_path = expected_path
        self.actual_path = actual_path


class EmptySourceListError(ImageSimilarityError, ValueError):
    """No graphic sources were given to merge."""


class UnsupportedSourceError(ImageSimilarityError, ValueError):
    """A graphic source could not be classified or rasterized."""

    def __init__(self, message: str, source=None):
        super().__init__(message)
        self.source = source


class VectorRasterizationError(ImageSimilarityError):
    """The vector transcoder rejected the markup."""

    def __init__(self, source, diagnostic: str):
        super().__init__(f"Could not rasterize vector graphic {source}: {diagnostic}")
        self.source = source
        self.diagnostic = diagnostic


class ImageDecodeError(ImageSimilarityError, ValueError):
    """Raster bytes could not be decoded."""

    def __init__(self, source, detail: str = "unrecognized or corrupt image data"):
        super().__init__(f"Could not decode image {source}: {detail}")
        self.source = source
