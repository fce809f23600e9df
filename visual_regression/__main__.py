"""Allow running the package with: `python -m visual_regression`."""

from .cli import main


if __name__ == "__main__":
    raise SystemExit(main())
