"""
visual_regression — Perceptual image similarity for rendering regression tests.

Compares a rendered image against an accepted reference using a coarse
50x50 grid of averaged colors, tolerating anti-aliasing, font hinting and
compression noise that an exact pixel diff would flag.

Modules:
    engine      ImageSimilarity engine and the similarity assertion
    signature   Signature computation and distance metric
    normalizer  Merging raster, SVG and PDF sources into one bitmap
    codec       Raster decode/encode and uncompressed TIFF fixtures
    vector      SVG rasterization
    document    PDF page rendering
    errors      Exception types
    cli         Command-line entry point
"""

from .engine import ComparisonResult, ImageSimilarity
from .errors import (
    EmptySourceListError, ImageDecodeError, ImageSimilarityError,
    InvalidSampleSizeError, MissingReferenceError, SimilarityExceededError,
    UnsupportedSourceError, VectorRasterizationError,
)
from .normalizer import GraphicSource, merge_images

__version__ = "1.0.0"
