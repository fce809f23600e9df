"""
Perceptual image signatures and the distance between them.

A signature is a fixed COMPARE_SIZE x COMPARE_SIZE grid of RGB triples.
Each cell averages a small square window of source pixels around an evenly
spaced sample point, so the signature has the same shape whatever the
source resolution. Comparing averaged regions rather than individual pixels
absorbs anti-aliasing, font hinting and mild compression differences.

Grid size is configurable via the SIGNATURE_GRID_SIZE environment variable
or per engine, but every distance threshold ever recorded assumes the
default of 50 together with DISTANCE_SCALE.
"""

import os
import math
import logging

import numpy as np

from .errors import InvalidSampleSizeError

logger = logging.getLogger(__name__)

COMPARE_SIZE = int(os.environ.get("SIGNATURE_GRID_SIZE", "50"))

# Derived window half-width is 1/(grid * divisor) of the smaller side.
SAMPLE_SIZE_DIVISOR = 4

# Fixed scale applied to the summed cell distances (100 for a 50x50 grid).
# Not a tuning knob: it keeps historical thresholds meaningful.
DISTANCE_SCALE = COMPARE_SIZE * COMPARE_SIZE / 25


def proportion(n: int, grid_size: int = COMPARE_SIZE) -> float:
    """Proportional position of the centre of cell ``n`` along one axis."""
    # Single precision, so cell centres match historical signatures.
    return float(np.float32((0.5 + n) / grid_size))


def _round_half_up(values):
    return np.floor(np.asarray(values, dtype=np.float64) + 0.5)


def _rgb_channels(image: np.ndarray) -> np.ndarray:
    """
    Return an (H, W, 3) int64 view of the first three channels.

    Single-channel and two-channel images are padded with zero channels
    rather than rejected.
    """
    if image.ndim == 2:
        image = image[:, :, np.newaxis]
    channels = image.shape[2]
    if channels >= 3:
        return image[:, :, :3].astype(np.int64)
    padded = np.zeros(image.shape[:2] + (3,), dtype=np.int64)
    padded[:, :, :channels] = image
    return padded


def derive_sample_size(image: np.ndarray, grid_size: int = COMPARE_SIZE) -> int:
    """
    Derive the sample window half-width from the image dimensions.

    Roughly 1/200th of the smaller dimension for the default grid, never
    less than one pixel.
    """
    h, w = image.shape[:2]
    return max(1, math.floor(min(w, h) / grid_size / SAMPLE_SIZE_DIVISOR))


def edge_margin(dimension: int, grid_size: int = COMPARE_SIZE) -> float:
    """Pixels between the image edge and the first cell centre along one axis."""
    # Single precision, like the proportions themselves.
    return float(np.float32(dimension) * np.float32(proportion(0, grid_size)))


def validate_sample_size(image: np.ndarray,
                         sample_size: int,
                         grid_size: int = COMPARE_SIZE) -> None:
    """
    Check that the sample window fits around the cells nearest the edges.

    Both axes are checked against the margin before the first cell centre;
    the margin after the last cell is the same size by symmetry of the grid.

    Raises:
        InvalidSampleSizeError: If ``sample_size`` is below one or larger
            than the margin on either axis.
    """
    h, w = image.shape[:2]
    if sample_size < 1:
        raise InvalidSampleSizeError(
            f"sample size must be at least 1 (sampleSize: {sample_size}).",
            dimension=min(w, h), sample_size=sample_size,
        )

    for axis, dimension in (("width", w), ("height", h)):
        max_sample = edge_margin(dimension, grid_size)
        if max_sample < sample_size:
            logger.warning(f"Max: {max_sample}")
            raise InvalidSampleSizeError(
                f"sample {axis} is too big for the image "
                f"({axis}: {dimension}, sampleSize: {sample_size}).",
                dimension=dimension, sample_size=sample_size,
            )


def compute_signature(image: np.ndarray,
                      sample_size: int,
                      grid_size: int = COMPARE_SIZE) -> np.ndarray:
    """
    Compute the signature of an image.

    For cell (x, y) the window is [cx - s, cx + s) x [cy - s, cy + s) where
    (cx, cy) is the proportional cell centre scaled to pixels and rounded
    half up. Pixels outside the image are skipped; the mean is taken over
    in-bounds pixels only. A window with no in-bounds pixel is black.

    Args:
        image: RGB(A) uint8 image, shape (H, W, C).
        sample_size: Window half-width in pixels.
        grid_size: Number of cells along each axis.

    Returns:
        Read-only uint8 array of shape (grid_size, grid_size, 3), indexed
        [row, column].
    """
    rgb = _rgb_channels(image)
    h, w = rgb.shape[:2]

    # Summed-area table with a zero row and column in front.
    table = np.zeros((h + 1, w + 1, 3), dtype=np.int64)
    table[1:, 1:] = rgb.cumsum(axis=0).cumsum(axis=1)

    props = np.array([proportion(n, grid_size) for n in range(grid_size)])
    cx = _round_half_up(props * w).astype(np.int64)
    cy = _round_half_up(props * h).astype(np.int64)

    x0 = np.clip(cx - sample_size, 0, w)
    x1 = np.clip(cx + sample_size, 0, w)
    y0 = np.clip(cy - sample_size, 0, h)
    y1 = np.clip(cy + sample_size, 0, h)

    # Broadcast rows (y) against columns (x).
    y0, y1 = y0[:, np.newaxis], y1[:, np.newaxis]
    sums = (table[y1, x1[np.newaxis, :]]
            - table[y0, x1[np.newaxis, :]]
            - table[y1, x0[np.newaxis, :]]
            + table[y0, x0[np.newaxis, :]])
    counts = (y1 - y0) * (x1 - x0)[np.newaxis, :]

    means = np.zeros((grid_size, grid_size, 3), dtype=np.float64)
    np.divide(sums, counts[:, :, np.newaxis], out=means,
              where=counts[:, :, np.newaxis] > 0)

    signature = np.clip(_round_half_up(means), 0, 255).astype(np.uint8)
    signature.setflags(write=False)
    return signature


def signature_distance(sig_a: np.ndarray,
                       sig_b: np.ndarray,
                       distance_scale: float = DISTANCE_SCALE) -> float:
    """
    Distance between two signatures.

    Sum of the Euclidean RGB distances of corresponding cells, multiplied
    by ``distance_scale``. Zero means identical signatures.

    Raises:
        ValueError: If the signatures do not have the same grid shape.
    """
    if sig_a.shape != sig_b.shape:
        raise ValueError(
            f"Signature dimension {sig_a.shape} doesn't match "
            f"signature dimension {sig_b.shape}"
        )
    diff = sig_a.astype(np.int64) - sig_b.astype(np.int64)
    cell_distances = np.sqrt(np.sum(diff * diff, axis=-1))
    return float(np.sum(cell_distances)) * distance_scale
