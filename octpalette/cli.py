"""Command-line interface for octpalette."""

import argparse
import logging
import sys
from typing import Optional

from .pipeline import PaletteExtractor, save_swatch
from .types import PaletteConfig, PaletteResult


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="octpalette",
        description="Octree palette and dominant color extraction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  octpalette -i photo.jpg
  octpalette -i photo.jpg --colors 32 --format rgba
  octpalette -i photo.jpg --dominant-only
  octpalette -i photo.jpg --swatch photo_palette.png
        """,
    )

    parser.add_argument("-i", "--input", required=True, help="Input image file path")

    parser.add_argument(
        "--colors",
        "-c",
        type=int,
        default=16,
        help="Maximum number of palette colors, at least 8 (default: 16)",
    )

    parser.add_argument(
        "--max-size",
        type=int,
        default=256,
        help="Downsample so the longest side is at most this many pixels; "
        "0 keeps full resolution (default: 256)",
    )

    parser.add_argument(
        "--dominant-only",
        action="store_true",
        help="Only print the dominant color",
    )

    parser.add_argument(
        "--format",
        choices=["hex", "rgba"],
        default="hex",
        help="Color output format (default: hex)",
    )

    parser.add_argument(
        "--swatch",
        default=None,
        help="Write a PNG swatch strip of the dominant color and palette",
    )

    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )

    return parser


def format_color(color, fmt: str) -> str:
    """Render a color quad for terminal output."""
    if fmt == "rgba":
        return "rgba({}, {}, {}, {})".format(*color)
    return "#{:02x}{:02x}{:02x}".format(*color[:3])


def print_result(result: PaletteResult, fmt: str, dominant_only: bool) -> None:
    if dominant_only:
        print(format_color(result.dominant, fmt) if result.dominant else "none")
        return

    print(f"  Size: {result.width}x{result.height} ({result.pixel_count} pixels)")
    print(f"  Colors: {len(result.colors)}")
    for color in result.colors:
        print(f"    {format_color(color, fmt)}")
    if result.dominant is not None:
        print(f"  Dominant: {format_color(result.dominant, fmt)}")


def main(args: Optional[list] = None) -> int:
    """Main entry point for CLI.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, 1 for error)
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.verbose:
        logging.basicConfig(
            level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s"
        )

    try:
        config = PaletteConfig(
            n_colors=parsed.colors,
            max_dimension=parsed.max_size or None,
        )

        if not parsed.dominant_only:
            print(f"Processing: {parsed.input}")

        result = PaletteExtractor(config).process(parsed.input)
        print_result(result, parsed.format, parsed.dominant_only)

        if parsed.swatch:
            swatch_path = save_swatch(result, parsed.swatch)
            if not parsed.dominant_only:
                print(f"  Swatch saved: {swatch_path}")

        return 0

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error processing image: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
