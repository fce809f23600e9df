"""
Assembly of one comparison bitmap from several graphic sources.

Each source (raster file, SVG, or report page) is brought to the exact
target size, then the sources are layered in order, later ones drawn on
top of earlier ones. Typical use is a base map with overlay layers.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import cv2
import numpy as np

from .codec import decode
from .document import render_document_page
from .errors import EmptySourceListError, ImageDecodeError, UnsupportedSourceError
from .vector import rasterize_vector

logger = logging.getLogger(__name__)

RASTER = "raster"
VECTOR = "vector"
DOCUMENT = "document"
KINDS = (RASTER, VECTOR, DOCUMENT)

RASTER_EXTENSIONS = {'.png', '.jpg', '.jpeg', '.bmp', '.webp', '.tif', '.tiff', '.gif'}
VECTOR_EXTENSIONS = {'.svg'}
DOCUMENT_EXTENSIONS = {'.pdf'}


@dataclass(frozen=True)
class GraphicSource:
    """One input graphic: its kind and either its bytes or its file path."""

    kind: str
    data: Union[bytes, str, os.PathLike]
    name: Optional[str] = None
    page_index: int = 0

    @property
    def label(self) -> str:
        if self.name:
            return self.name
        if isinstance(self.data, (bytes, bytearray)):
            return f"<{self.kind} bytes>"
        return os.fspath(self.data)

    def read_bytes(self) -> bytes:
        if isinstance(self.data, (bytes, bytearray)):
            return bytes(self.data)
        try:
            with open(self.data, "rb") as f:
                return f.read()
        except OSError as e:
            raise ImageDecodeError(self.label, str(e)) from e


SourceLike = Union[GraphicSource, str, os.PathLike]


def classify_source(source: SourceLike) -> GraphicSource:
    """
    Turn a path into a GraphicSource based on its extension.

    GraphicSource instances are returned unchanged after checking their kind.

    Raises:
        UnsupportedSourceError: If the kind or extension is not recognized.
    """
    if isinstance(source, GraphicSource):
        if source.kind not in KINDS:
            raise UnsupportedSourceError(
                f"Unknown graphic kind {source.kind!r} for {source.label}",
                source=source.label,
            )
        return source

    try:
        path = os.fspath(source)
    except TypeError:
        raise UnsupportedSourceError(
            f"Cannot use {type(source).__name__} as a graphic source",
            source=source,
        ) from None

    ext = os.path.splitext(path)[1].lower()
    if ext in VECTOR_EXTENSIONS:
        return GraphicSource(VECTOR, path)
    if ext in DOCUMENT_EXTENSIONS:
        return GraphicSource(DOCUMENT, path)
    if ext in RASTER_EXTENSIONS:
        return GraphicSource(RASTER, path)
    raise UnsupportedSourceError(f"Unsupported graphic file type: {path}", source=path)


def resize_image(image: np.ndarray, width: int, height: int) -> np.ndarray:
    """Resize with smoothing; returns the input unchanged if it already fits."""
    h, w = image.shape[:2]
    if (w, h) == (width, height):
        return image
    shrinking = width < w or height < h
    interpolation = cv2.INTER_AREA if shrinking else cv2.INTER_LINEAR
    return cv2.resize(image, (width, height), interpolation=interpolation)


def load_graphic(source: SourceLike, width: int, height: int) -> np.ndarray:
    """
    Load one graphic at exactly ``width`` x ``height``.

    Vector sources are rasterized at the target size. Raster sources and
    document pages are resized to it.

    Returns:
        RGB or RGBA uint8 array of shape (height, width, C).
    """
    source = classify_source(source)
    label = source.label
    logger.debug(f"Loading {source.kind} graphic {label}")

    if source.kind == VECTOR:
        return rasterize_vector(source.read_bytes(), width, height, name=label)

    if source.kind == DOCUMENT:
        document = source.data
        if not isinstance(document, (bytes, bytearray)):
            document = os.fspath(document)
        try:
            page = render_document_page(document, source.page_index,
                                        width=width, height=height)
        except Exception as e:
            raise ImageDecodeError(label, f"{type(e).__name__}: {e}") from e
        return resize_image(page, width, height)

    image = decode(source.read_bytes(), name=label, keep_alpha=True)
    return resize_image(image, width, height)


def overlay(base: np.ndarray, layer: np.ndarray) -> np.ndarray:
    """
    Draw ``layer`` over ``base`` (source-over compositing).

    Opaque layer pixels replace base pixels exactly. The result has an
    alpha channel only if ``base`` has one.

    Raises:
        ValueError: If the two images differ in size.
    """
    if base.shape[:2] != layer.shape[:2]:
        raise ValueError(
            f"Layer size {layer.shape[1]}x{layer.shape[0]} doesn't match "
            f"base size {base.shape[1]}x{base.shape[0]}"
        )

    if layer.shape[2] < 4:
        if base.shape[2] == 4:
            result = base.copy()
            result[:, :, :3] = layer[:, :, :3]
            result[:, :, 3] = 255
            return result
        return layer[:, :, :3].copy()

    src_rgb = layer[:, :, :3].astype(np.float64)
    src_a = layer[:, :, 3:4].astype(np.float64) / 255.0
    dst_rgb = base[:, :, :3].astype(np.float64)

    if base.shape[2] < 4:
        out_rgb = src_rgb * src_a + dst_rgb * (1.0 - src_a)
        return np.clip(np.rint(out_rgb), 0, 255).astype(np.uint8)

    dst_a = base[:, :, 3:4].astype(np.float64) / 255.0
    out_a = src_a + dst_a * (1.0 - src_a)
    premultiplied = src_rgb * src_a + dst_rgb * dst_a * (1.0 - src_a)
    out_rgb = np.zeros_like(premultiplied)
    np.divide(premultiplied, out_a, out=out_rgb,
              where=np.broadcast_to(out_a > 0, premultiplied.shape))

    result = np.empty(base.shape, dtype=np.uint8)
    result[:, :, :3] = np.clip(np.rint(out_rgb), 0, 255)
    result[:, :, 3] = np.clip(np.rint(out_a[:, :, 0] * 255.0), 0, 255)
    return result


def merge_images(sources: Sequence[SourceLike], width: int, height: int) -> np.ndarray:
    """
    Merge a list of graphics into a single image.

    The first source is loaded at the target size; each following source
    is loaded at the same size and drawn on top.

    Args:
        sources: Ordered graphic sources (paths or GraphicSource).
        width: Target width, also used to rasterize vector sources.
        height: Target height.

    Returns:
        Merged RGB (or RGBA, when the first source has alpha) uint8 image.

    Raises:
        EmptySourceListError: If ``sources`` is empty.
        UnsupportedSourceError: If a source cannot be classified.
        ImageDecodeError: If a source cannot be read or rendered; the
            message names the source.
    """
    if not sources:
        raise EmptySourceListError("no graphics given")

    merged = load_graphic(sources[0], width, height)
    for source in sources[1:]:
        merged = overlay(merged, load_graphic(source, width, height))

    logger.info(f"Merged {len(sources)} graphics at {width}x{height}")
    return merged
