"""
SVG rasterization via CairoSVG.

The markup is rendered directly at the requested size (no resampling of a
bitmap), then decoded with the package codec so the result has the same
RGBA uint8 layout as any other loaded graphic.
"""

import os
import logging
from typing import Optional, Union

import numpy as np

from .codec import decode
from .errors import ImageDecodeError, VectorRasterizationError

logger = logging.getLogger(__name__)


def rasterize_vector(markup: Union[bytes, str, os.PathLike],
                     width: int,
                     height: int,
                     name: Optional[str] = None) -> np.ndarray:
    """
    Render SVG markup into an RGBA image of exactly ``width`` x ``height``.

    Args:
        markup: SVG document as bytes, as a str of markup, or a path to an
            ``.svg`` file.
        width: Output width in pixels.
        height: Output height in pixels.
        name: Source identifier for error messages.

    Returns:
        RGBA uint8 array of shape (height, width, 4).

    Raises:
        VectorRasterizationError: If the transcoder rejects the markup.
    """
    if isinstance(markup, os.PathLike):
        name = name or os.fspath(markup)
        with open(markup, "rb") as f:
            raw = f.read()
    elif isinstance(markup, str):
        raw = markup.encode("utf-8")
    else:
        raw = bytes(markup)
    name = name or "<svg>"

    # cairosvg loads the Cairo shared library on import.
    import cairosvg

    try:
        png_data = cairosvg.svg2png(bytestring=raw,
                                    output_width=width,
                                    output_height=height)
    except Exception as e:
        raise VectorRasterizationError(name, f"{type(e).__name__}: {e}") from e

    if not png_data:
        raise VectorRasterizationError(name, "transcoder produced no output")

    try:
        image = decode(png_data, name=name, keep_alpha=True)
    except ImageDecodeError as e:
        raise VectorRasterizationError(name, str(e)) from e

    logger.debug(f"Rasterized {name} at {width}x{height}")
    return image
