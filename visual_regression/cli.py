"""
Command-line entry point.

Examples
--------
python -m visual_regression compare out/map.png expected/expectedMap.tiff --max-distance 50
python -m visual_regression merge merged.png base.png roads.svg --width 800 --height 600
python -m visual_regression convert-fixtures tests/resources
"""

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from .codec import convert_fixtures, read_image, write_image
from .engine import ImageSimilarity
from .errors import ImageSimilarityError
from .normalizer import merge_images

logger = logging.getLogger(__name__)


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    p = argparse.ArgumentParser(
        prog="visual_regression",
        description="Perceptual image comparison for rendering regression tests.",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    sub = p.add_subparsers(dest="command", required=True)

    compare = sub.add_parser(
        "compare",
        help="Compare a rendered image against an expected image.",
    )
    compare.add_argument("reference", type=Path, help="Freshly rendered image.")
    compare.add_argument("expected", type=Path, help="Accepted expected image.")
    compare.add_argument(
        "--max-distance",
        type=float,
        required=True,
        help="Maximum signature distance for the images to be considered similar.",
    )
    compare.add_argument(
        "--sample-size",
        type=int,
        default=None,
        help="Sample window half-width in pixels (default: derived from image size).",
    )

    merge = sub.add_parser("merge", help="Merge graphics into one image, later ones on top.")
    merge.add_argument("output", type=Path, help="Output image path.")
    merge.add_argument("sources", type=Path, nargs="+", help="Raster, SVG or PDF files.")
    merge.add_argument("--width", type=int, required=True)
    merge.add_argument("--height", type=int, required=True)

    convert = sub.add_parser(
        "convert-fixtures",
        help="Rewrite every PNG under a folder as uncompressed TIFF.",
    )
    convert.add_argument("root", type=Path, help="Folder scanned recursively.")

    return p.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Run the CLI.

    Returns
    -------
    int
        0 on success, 1 when a comparison fails or an input is invalid.
    """
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "compare":
            engine = ImageSimilarity(read_image(args.reference), sample_size=args.sample_size)
            result = engine.assert_similarity(args.expected, args.max_distance)
            print(f"OK: distance {result.distance} <= {args.max_distance}")
        elif args.command == "merge":
            merged = merge_images(args.sources, args.width, args.height)
            print(f"Wrote {write_image(merged, args.output)}")
        elif args.command == "convert-fixtures":
            written = convert_fixtures(args.root)
            print(f"Converted {len(written)} fixtures")
    except (ImageSimilarityError, IndexError) as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
