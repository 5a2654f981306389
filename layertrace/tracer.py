"""Monochrome vectorizer backed by Potrace."""

import logging
from dataclasses import dataclass, field
from typing import List, Tuple

import cv2
import numpy as np
import potrace
from skimage.filters import threshold_multiotsu

from .types import TraceParams, VectorizeError

logger = logging.getLogger(__name__)

TURN_POLICY_CODES = {
    "black": potrace.POTRACE_TURNPOLICY_BLACK,
    "white": potrace.POTRACE_TURNPOLICY_WHITE,
    "left": potrace.POTRACE_TURNPOLICY_LEFT,
    "right": potrace.POTRACE_TURNPOLICY_RIGHT,
    "minority": potrace.POTRACE_TURNPOLICY_MINORITY,
    "majority": potrace.POTRACE_TURNPOLICY_MAJORITY,
    "random": potrace.POTRACE_TURNPOLICY_RANDOM,
}

TRANSPARENT = "transparent"

# Multi-Otsu is exhaustive over the histogram; beyond this many classes it is
# too slow and evenly spaced thresholds are used instead
MAX_OTSU_CLASSES = 5


@dataclass(frozen=True)
class TraceRequest:
    """Parameters for a single monochrome trace."""

    threshold: int = 128
    params: TraceParams = field(default_factory=TraceParams)
    color: str = "#000000"
    background: str = TRANSPARENT


@dataclass(frozen=True)
class PosterizeRequest:
    """Parameters for a multi-level posterize trace."""

    levels: int = 4
    params: TraceParams = field(default_factory=TraceParams)


def decode_bitmap(data: bytes) -> np.ndarray:
    """Decode encoded image bytes to a (H, W) uint8 greyscale array.

    Raises:
        VectorizeError: If the bytes are not a decodable image
    """
    if not data:
        raise VectorizeError("Empty bitmap")
    grey = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_GRAYSCALE)
    if grey is None:
        raise VectorizeError("Bitmap could not be decoded")
    return grey


def format_number(x: float) -> str:
    formatted = f"{x:.3f}"
    if "." in formatted:
        formatted = formatted.rstrip("0").rstrip(".")
    return formatted


def _point(p) -> str:
    return f"{format_number(p.x)} {format_number(p.y)}"


def curves_to_path_data(curves) -> str:
    """Render Potrace curves as SVG path data.

    Corner segments become two line-tos, Bezier segments a cubic curve-to.
    """
    parts: List[str] = []
    for curve in curves:
        cmds = [f"M {_point(curve.start_point)}"]
        for segment in curve.segments:
            if segment.is_corner:
                cmds.append(f"L {_point(segment.c)} L {_point(segment.end_point)}")
            else:
                cmds.append(
                    f"C {_point(segment.c1)}, {_point(segment.c2)}, {_point(segment.end_point)}"
                )
        cmds.append("Z")
        parts.append(" ".join(cmds))
    return " ".join(parts)


def path_element(path_data: str, fill: str) -> str:
    return f'<path d="{path_data}" stroke="none" fill="{fill}" fill-rule="evenodd"/>'


def svg_document(width: int, height: int, body: List[str], background: str = TRANSPARENT) -> str:
    lines = [
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" '
        f'viewBox="0 0 {width} {height}" version="1.1">'
    ]
    if background != TRANSPARENT:
        lines.append(f'<rect x="0" y="0" width="100%" height="100%" fill="{background}"/>')
    lines.extend(body)
    lines.append("</svg>")
    return "\n".join(lines)


def dominant_value(values: np.ndarray) -> int:
    """Most frequent 8-bit value; ties go to the darker value."""
    return int(np.argmax(np.bincount(values.ravel(), minlength=256)))


def grey_hex(value: int) -> str:
    return f"#{value:02X}{value:02X}{value:02X}"


class PotraceTracer:
    """Vectorizer for single-channel bitmaps.

    Pixels darker than the threshold are ink and get traced into closed
    even-odd paths.
    """

    def trace_ink(self, ink: np.ndarray, params: TraceParams) -> str:
        """Trace a boolean ink mask and return SVG path data ('' if empty)."""
        if not ink.any():
            return ""

        policy = TURN_POLICY_CODES.get(params.turn_policy)
        if policy is None:
            raise VectorizeError(f"Unknown turn policy: {params.turn_policy}")

        try:
            bitmap = potrace.Bitmap(np.where(ink, 0, 255).astype(np.uint8))
            path = bitmap.trace(
                turdsize=params.min_feature_size,
                turnpolicy=policy,
                alphamax=params.alpha_max,
                opticurve=params.optimize_curves,
                opttolerance=params.curve_tolerance,
            )
        except Exception as e:
            raise VectorizeError(f"Tracing failed: {e}") from e

        logger.debug(f"Traced {int(ink.sum())} ink pixels into {len(path.curves)} curves")
        return curves_to_path_data(path.curves)

    def trace(self, data: bytes, request: TraceRequest) -> str:
        """Trace an encoded bitmap into an SVG document.

        Args:
            data: Encoded image bytes (PNG)
            request: Threshold, tracing parameters and colors

        Returns:
            SVG document text

        Raises:
            VectorizeError: If the bitmap is malformed or tracing fails
        """
        grey = decode_bitmap(data)
        height, width = grey.shape

        path_data = self.trace_ink(grey < request.threshold, request.params)
        body = [path_element(path_data, request.color)] if path_data else []

        return svg_document(width, height, body, request.background)

    def posterize(self, data: bytes, request: PosterizeRequest) -> str:
        """Trace an image as stacked luminance bands.

        Each band is traced as "darker than its upper threshold" and filled
        with the band's dominant grey. Bands are drawn lightest first so
        darker bands land on top. Pixels above the last threshold are left
        as background.

        Raises:
            VectorizeError: If the bitmap is malformed or tracing fails
        """
        grey = decode_bitmap(data)
        height, width = grey.shape
        thresholds = posterize_thresholds(grey, max(1, request.levels))

        body = []
        for lower, upper in reversed(_bands(thresholds)):
            band = (grey > lower) & (grey <= upper)
            if not band.any():
                continue
            path_data = self.trace_ink(grey <= upper, request.params)
            if path_data:
                body.append(path_element(path_data, grey_hex(dominant_value(grey[band]))))

        logger.info(f"Posterized into {len(body)} of {len(thresholds)} bands")
        return svg_document(width, height, body)


def posterize_thresholds(grey: np.ndarray, levels: int) -> np.ndarray:
    """Pick `levels` ascending luminance thresholds for posterization."""
    classes = levels + 1
    if classes <= MAX_OTSU_CLASSES and len(np.unique(grey)) > classes:
        return threshold_multiotsu(grey, classes=classes).astype(np.float64)

    lo, hi = float(grey.min()), float(grey.max())
    return np.linspace(lo, hi, levels + 2)[1:-1]


def _bands(thresholds: np.ndarray) -> List[Tuple[float, float]]:
    """(lower, upper] luminance interval for each threshold."""
    lowers = [-1.0] + [float(t) for t in thresholds[:-1]]
    return list(zip(lowers, [float(t) for t in thresholds]))
