"""
Raster decoding and encoding on top of OpenCV.

Images inside the package are RGB (or RGBA) uint8 numpy arrays; OpenCV's
BGR channel order never leaks out of this module. Fixtures are stored as
uncompressed TIFF so that repeated test runs never add compression
artifacts of their own.
"""

import os
import logging
from typing import List, Optional, Union

import cv2
import numpy as np

from .errors import ImageDecodeError

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

# libtiff COMPRESSION_NONE
TIFF_COMPRESSION_NONE = 1

DIAGNOSTIC_EXTENSION = ".png"
FIXTURE_EXTENSION = ".tiff"


def normalize_image(image_np: np.ndarray) -> np.ndarray:
    """Ensure image is uint8, scaling down float and 16-bit inputs."""
    if image_np.dtype == np.uint8:
        return image_np
    if image_np.dtype == np.uint16:
        return (image_np // 257).astype(np.uint8)
    if np.issubdtype(image_np.dtype, np.floating) and image_np.max() <= 1.0:
        return np.clip(np.rint(image_np * 255), 0, 255).astype(np.uint8)
    return np.clip(image_np, 0, 255).astype(np.uint8)


def _to_rgb(image: np.ndarray, keep_alpha: bool) -> np.ndarray:
    """Convert an OpenCV-decoded array to RGB or RGBA channel order."""
    image = normalize_image(image)
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    channels = image.shape[2]
    if channels == 1:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    if channels == 4:
        if keep_alpha:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
        return cv2.cvtColor(image, cv2.COLOR_BGRA2RGB)
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def _from_rgb(image: np.ndarray) -> np.ndarray:
    image = normalize_image(image)
    if image.ndim == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_RGBA2BGRA)
    return cv2.cvtColor(image, cv2.COLOR_RGB2BGR)


def decode(data: Union[bytes, bytearray, PathLike],
           name: Optional[str] = None,
           keep_alpha: bool = False) -> np.ndarray:
    """
    Decode raster data into an RGB uint8 image.

    Args:
        data: Encoded image bytes, or a path to an image file.
        name: Source identifier used in error messages. Defaults to the
            path when ``data`` is a path.
        keep_alpha: Return RGBA when the source carries an alpha channel.

    Returns:
        Array of shape (H, W, 3), or (H, W, 4) with ``keep_alpha``.

    Raises:
        ImageDecodeError: If the data is not a decodable image.
    """
    if isinstance(data, (bytes, bytearray)):
        name = name or "<bytes>"
        buffer = np.frombuffer(bytes(data), dtype=np.uint8)
    else:
        name = name or os.fspath(data)
        try:
            with open(data, "rb") as f:
                buffer = np.frombuffer(f.read(), dtype=np.uint8)
        except OSError as e:
            raise ImageDecodeError(name, str(e)) from e

    if buffer.size == 0:
        raise ImageDecodeError(name, "empty input")

    image = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ImageDecodeError(name)

    return _to_rgb(image, keep_alpha)


def read_image(path: PathLike, keep_alpha: bool = False) -> np.ndarray:
    """Read an image file as RGB (or RGBA) uint8."""
    return decode(path, keep_alpha=keep_alpha)


def encode(image: np.ndarray, fmt: str = DIAGNOSTIC_EXTENSION) -> bytes:
    """
    Encode an RGB/RGBA image into the given format.

    ``fmt`` is a file extension such as ".png" or ".tiff". TIFF output is
    always written without compression.
    """
    if not fmt.startswith("."):
        fmt = "." + fmt
    params = []
    if fmt.lower() in (".tif", ".tiff"):
        params = [cv2.IMWRITE_TIFF_COMPRESSION, TIFF_COMPRESSION_NONE]

    ok, buffer = cv2.imencode(fmt, _from_rgb(image), params)
    if not ok:
        raise ValueError(f"OpenCV could not encode image as {fmt}")
    return buffer.tobytes()


def write_image(image: np.ndarray, path: PathLike) -> str:
    """Write an image, choosing the format from the file extension."""
    path = os.fspath(path)
    ext = os.path.splitext(path)[1] or DIAGNOSTIC_EXTENSION
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "wb") as f:
        f.write(encode(image, ext))
    return path


def write_uncompressed_image(image: np.ndarray, path: PathLike) -> str:
    """
    Write the image to a file in uncompressed TIFF format.

    The extension of ``path`` is ignored and replaced with ``.tiff``.

    Returns:
        The path that was written.
    """
    stem = os.path.splitext(os.fspath(path))[0]
    return write_image(image, stem + FIXTURE_EXTENSION)


def convert_fixtures(root: PathLike) -> List[str]:
    """
    Rewrite every PNG under ``root`` as an uncompressed TIFF next to it.

    Returns:
        Paths of the TIFF files that were written.
    """
    written = []
    for folder, _, files in os.walk(os.fspath(root)):
        for name in sorted(files):
            if os.path.splitext(name)[1].lower() != ".png":
                continue
            src = os.path.join(folder, name)
            image = read_image(src, keep_alpha=True)
            written.append(write_uncompressed_image(image, src))

    logger.info(f"Converted {len(written)} PNG fixtures under {root}")
    return written
