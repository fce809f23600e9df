"""
Rendering of report document pages (PDF) to raster images with PyMuPDF.
"""

import os
import logging
from typing import Optional, Union

import fitz
import numpy as np

from .codec import write_image

logger = logging.getLogger(__name__)

DocumentLike = Union[str, os.PathLike, bytes, fitz.Document]


def _open_document(document: DocumentLike):
    """Return (doc, owned) where ``owned`` means the caller must close it."""
    if isinstance(document, fitz.Document):
        return document, False
    if isinstance(document, (bytes, bytearray)):
        return fitz.open(stream=bytes(document), filetype="pdf"), True
    return fitz.open(os.fspath(document)), True


def render_document_page(document: DocumentLike,
                         page_index: int = 0,
                         width: Optional[int] = None,
                         height: Optional[int] = None,
                         zoom: float = 1.0) -> np.ndarray:
    """
    Render one page of a document into an RGB uint8 image.

    By default the page is rendered at its natural size (one pixel per
    point, times ``zoom``). When ``width`` and/or ``height`` are given the
    page is scaled so that the pixmap has that size along the given axis.

    Args:
        document: Path, PDF bytes, or an already opened ``fitz.Document``.
        page_index: Zero-based page number.
        width: Optional target pixel width.
        height: Optional target pixel height.
        zoom: Uniform scale applied when no target size is given.

    Returns:
        Array of shape (H, W, 3).

    Raises:
        IndexError: If ``page_index`` is outside the document.
    """
    doc, owned = _open_document(document)
    try:
        if not 0 <= page_index < doc.page_count:
            raise IndexError(
                f"Page {page_index} out of range for document with "
                f"{doc.page_count} pages"
            )
        page = doc[page_index]
        rect = page.rect

        scale_x = scale_y = zoom
        if width is not None:
            scale_x = width / rect.width
        if height is not None:
            scale_y = height / rect.height
        if width is not None and height is None:
            scale_y = scale_x
        if height is not None and width is None:
            scale_x = scale_y

        pix = page.get_pixmap(matrix=fitz.Matrix(scale_x, scale_y),
                              colorspace=fitz.csRGB, alpha=False)
        array = np.frombuffer(pix.samples, dtype=np.uint8)
        array = array.reshape(pix.height, pix.stride)[:, :pix.width * pix.n]
        image = array.reshape(pix.height, pix.width, pix.n).copy()
    finally:
        if owned:
            doc.close()

    logger.debug(f"Rendered page {page_index} at {image.shape[1]}x{image.shape[0]}")
    return image


def export_page_to_file(document: DocumentLike,
                        filename: Union[str, os.PathLike],
                        page_index: int = 0) -> str:
    """Render a page and write it in the format implied by the file extension."""
    image = render_document_page(document, page_index)
    return write_image(image, filename)
