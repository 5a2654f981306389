"""Command-line interface for layertrace."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .pipeline import convert
from .svg import save_svg
from .types import MODES, PRESETS, TURN_POLICIES, ConvertOptions


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="layertrace",
        description="Convert raster images to layered SVG",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Full color (default)
  layertrace logo.png -o logo.svg --colors 6

  # Black and white, inverted
  layertrace scan.jpg --mode bw --threshold 140 --invert

  # Posterized greyscale bands
  layertrace photo.jpg --mode posterize --colors 4 --preset speed
        """,
    )

    parser.add_argument("input", help="Input image file path")

    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Output SVG file path (default: input name with .svg extension)",
    )

    parser.add_argument(
        "-m",
        "--mode",
        choices=MODES,
        default="color",
        help="Tracing mode (default: color)",
    )

    parser.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        default="balanced",
        help="Quality preset: speed (1024px), balanced (2048px), quality (4096px)",
    )

    parser.add_argument(
        "--colors",
        "-c",
        type=int,
        default=None,
        help="Number of colors for color/posterize mode, 2-32 (default: 8)",
    )

    parser.add_argument(
        "--threshold",
        type=int,
        default=None,
        help="Black/white threshold 0-255 for bw mode (default: 128)",
    )

    parser.add_argument(
        "--invert",
        action="store_true",
        help="bw mode: white ink on black background",
    )

    parser.add_argument(
        "--turn-policy",
        choices=TURN_POLICIES,
        default=None,
        help="Potrace turn policy (default: minority)",
    )

    parser.add_argument(
        "--min-feature-size",
        type=int,
        default=None,
        help="Suppress speckles smaller than this many px^2 (default: 2)",
    )

    parser.add_argument(
        "--curve-tolerance",
        type=float,
        default=None,
        help="Curve optimization tolerance (default: 0.2)",
    )

    parser.add_argument(
        "--resolution",
        type=int,
        default=None,
        help="Maximum processed dimension in pixels (default: from preset)",
    )

    parser.add_argument(
        "--min-layer-pixels",
        type=int,
        default=None,
        help="Drop colors covering fewer pixels than this (default: 10)",
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Parallel layer tracing workers (default: CPU count)",
    )

    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducible palettes",
    )

    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log pipeline progress"
    )

    return parser


def options_from_args(parsed: argparse.Namespace) -> ConvertOptions:
    """Build ConvertOptions from parsed arguments, preset first."""
    overrides = {
        "mode": parsed.mode,
        "palette_size": parsed.colors,
        "threshold": parsed.threshold,
        "turn_policy": parsed.turn_policy,
        "min_feature_size": parsed.min_feature_size,
        "curve_tolerance": parsed.curve_tolerance,
        "max_dimension": parsed.resolution,
        "min_layer_pixels": parsed.min_layer_pixels,
        "workers": parsed.workers,
        "seed": parsed.seed,
    }
    options = ConvertOptions.from_preset(
        parsed.preset, **{k: v for k, v in overrides.items() if v is not None}
    )
    options.invert = parsed.invert
    return options


def main(args: Optional[list] = None) -> int:
    """Main entry point for CLI.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, 1 for error)
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    logging.basicConfig(
        level=logging.INFO if parsed.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    input_path = Path(parsed.input)
    output_path = Path(parsed.output) if parsed.output else input_path.with_suffix(".svg")

    options = options_from_args(parsed)

    print(f"Processing: {input_path}")
    print(f"  Mode: {options.mode}")
    if options.mode != "bw":
        print(f"  Colors: {options.palette_size}")
    print(f"  Resolution: {options.max_dimension}")

    result = convert(input_path, options)
    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1

    output_path.parent.mkdir(parents=True, exist_ok=True)
    save_svg(result.svg, output_path)

    if result.layers:
        print(f"  Layers: {len(result.layers)}")
    print(f"  Output saved: {output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
