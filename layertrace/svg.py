"""SVG document assembly for layered color output."""

import re
from pathlib import Path
from typing import Iterable, List, Union

from .types import Color, PathFragment

SVG_NS = "http://www.w3.org/2000/svg"

_PATH_ELEMENT = re.compile(r"<path\b.*?/>", re.IGNORECASE | re.DOTALL)


def color_to_hex(color: Color) -> str:
    """Convert an RGB(A) tuple to a #RRGGBB string (alpha ignored)."""
    r, g, b = (int(c) for c in color[:3])
    return f"#{r:02X}{g:02X}{b:02X}"


def extract_path_fragments(document: str) -> List[PathFragment]:
    """Return the self-closing <path .../> elements of an SVG document.

    Wrapper markup (svg, rect, groups) is discarded.
    """
    return _PATH_ELEMENT.findall(document)


def background_rect(width: int, height: int, color: Color) -> str:
    return f'<rect x="0" y="0" width="{width}" height="{height}" fill="{color_to_hex(color)}"/>'


def compose_document(
    width: int,
    height: int,
    background: Color,
    fragments: Iterable[PathFragment],
) -> str:
    """Assemble the layered document.

    Args:
        width: Canvas width in pixels
        height: Canvas height in pixels
        background: Fill of the canvas-sized background rectangle
        fragments: Path elements in drawing order

    Returns:
        SVG string: background rectangle first, then the fragments
    """
    lines = [
        f'<svg xmlns="{SVG_NS}" viewBox="0 0 {width} {height}" '
        f'width="{width}" height="{height}">',
        background_rect(width, height, background),
    ]
    lines.extend(fragments)
    lines.append("</svg>")
    return "\n".join(lines) + "\n"


def save_svg(svg_string: str, output_path: Union[str, Path]) -> None:
    """
    Save SVG string to file.

    Args:
        svg_string: SVG content
        output_path: Output file path
    """
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(svg_string)
