"""Layer extraction: per-pixel palette assignment and layer planning."""

import logging
from typing import List

import numpy as np

from .quantize import nearest_centroid
from .types import TRANSPARENT, Classification, Layer, LayerPlan, Palette, PixelBuffer

logger = logging.getLogger(__name__)

INK = 0
PAPER = 255


def classify_pixels(buffer: PixelBuffer, palette: Palette) -> Classification:
    """Assign every pixel to its nearest palette color.

    Unlike quantization this visits every pixel, so each opaque pixel ends up
    in exactly one layer.

    Args:
        buffer: Full pixel buffer
        palette: (K, 3) palette

    Returns:
        Classification with one label per pixel (TRANSPARENT for alpha < 128)
        and the pixel count of every palette entry
    """
    opaque = buffer.opaque
    labels = np.full(buffer.pixel_count, TRANSPARENT, dtype=np.int32)
    labels[opaque] = nearest_centroid(buffer.rgb[opaque], palette)

    counts = np.bincount(labels[opaque], minlength=len(palette)).astype(np.int64)

    labels.setflags(write=False)
    counts.setflags(write=False)
    return Classification(labels=labels, counts=counts)


def elect_background(counts: np.ndarray) -> int:
    """Index of the most frequent color; ties go to the lowest index."""
    return int(np.argmax(counts))


def plan_layers(
    classification: Classification,
    palette: Palette,
    min_pixels: int = 10,
) -> LayerPlan:
    """Order palette colors for rendering.

    Phase one elects the background. Phase two sorts the remaining colors by
    descending pixel count (ascending index on ties) and drops those with
    fewer than min_pixels pixels. The background is always kept.

    Args:
        classification: Output of classify_pixels
        palette: (K, 3) palette
        min_pixels: Minimum pixel support for a non-background layer

    Returns:
        List of layers, background first
    """
    counts = classification.counts
    background = elect_background(counts)

    def layer(index: int) -> Layer:
        color = tuple(int(c) for c in palette[index][:3])
        return Layer(index=index, color=color, pixel_count=int(counts[index]))

    others = sorted(
        (i for i in range(len(palette)) if i != background),
        key=lambda i: (-int(counts[i]), i),
    )
    kept: List[Layer] = [layer(i) for i in others if counts[i] >= min_pixels]
    dropped = len(others) - len(kept)

    if dropped:
        logger.debug(f"Dropped {dropped} colors with fewer than {min_pixels} pixels")

    return [layer(background)] + kept


def layer_bitmap(classification: Classification, index: int) -> np.ndarray:
    """Single-channel bitmap of one layer.

    Returns:
        (N,) uint8 array, INK where the pixel belongs to the layer and PAPER
        everywhere else (other layers and transparent pixels)
    """
    return np.where(classification.labels == index, INK, PAPER).astype(np.uint8)
