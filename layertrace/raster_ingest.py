"""Raster image ingestion: decode, orient, downscale, sharpen and re-encode."""
import io
import logging
from pathlib import Path
from typing import Tuple, Union

import numpy as np
from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError

from .types import DecodeError, PixelBuffer

logger = logging.getLogger(__name__)

# Unsharp mask applied before every mode; tuned for crisp logo edges
SHARPEN_RADIUS = 1.2
SHARPEN_PERCENT = 100
SHARPEN_THRESHOLD = 0

PAPER = (255, 255, 255)


def read_size(path: Union[str, Path]) -> Tuple[int, int]:
    """
    Read image dimensions without decoding pixel data.

    Args:
        path: Path to image file

    Returns:
        (width, height) after EXIF orientation is taken into account

    Raises:
        DecodeError: If the file is missing or not an image
    """
    path = Path(path)
    try:
        with Image.open(path) as img:
            width, height = img.size
            orientation = img.getexif().get(0x0112, 1)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise DecodeError(f"Failed to read image {path}: {e}") from e

    # Orientations 5-8 swap the axes
    if orientation in (5, 6, 7, 8):
        return height, width
    return width, height


def fit_inside(width: int, height: int, max_dimension: int) -> Tuple[int, int]:
    """
    Compute target size so the longer side is at most max_dimension.

    Never enlarges; preserves aspect ratio.
    """
    longest = max(width, height)
    if longest <= max_dimension:
        return width, height
    scale = max_dimension / longest
    return max(1, round(width * scale)), max(1, round(height * scale))


def decode_and_prepare(path: Union[str, Path], max_dimension: int = 2048) -> PixelBuffer:
    """
    Decode an image file into a sharpened, size-capped pixel buffer.

    Args:
        path: Path to image file
        max_dimension: Cap for the longer side in pixels

    Returns:
        PixelBuffer with 3 channels, or 4 when the source carries alpha

    Raises:
        DecodeError: If the file is missing or cannot be decoded
    """
    path = Path(path)
    src_w, src_h = read_size(path)
    target = fit_inside(src_w, src_h, max_dimension)

    try:
        with Image.open(path) as img:
            img.load()
            img = ImageOps.exif_transpose(img)
            img = _normalize_mode(img)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise DecodeError(f"Failed to decode image {path}: {e}") from e

    if target != img.size:
        logger.info(f"Downscaling {img.size[0]}x{img.size[1]} -> {target[0]}x{target[1]}")
        img = img.resize(target, Image.Resampling.LANCZOS)

    img = img.filter(
        ImageFilter.UnsharpMask(
            radius=SHARPEN_RADIUS, percent=SHARPEN_PERCENT, threshold=SHARPEN_THRESHOLD
        )
    )

    return PixelBuffer(np.array(img, dtype=np.uint8))


def _normalize_mode(img: Image.Image) -> Image.Image:
    """Convert to RGB, or RGBA when the image carries transparency."""
    has_alpha = img.mode in ("RGBA", "LA", "PA") or (
        img.mode == "P" and "transparency" in img.info
    )
    if has_alpha:
        return img.convert("RGBA") if img.mode != "RGBA" else img
    return img.convert("RGB") if img.mode != "RGB" else img


def _to_png(img: Image.Image) -> bytes:
    out = io.BytesIO()
    img.save(out, format="PNG")
    return out.getvalue()


def encode_single_channel_bitmap(mask: np.ndarray, width: int, height: int) -> bytes:
    """
    Losslessly encode a single-channel 8-bit mask as PNG.

    Args:
        mask: (H*W,) or (H, W) uint8 samples
        width: Bitmap width
        height: Bitmap height

    Returns:
        PNG bytes
    """
    samples = np.asarray(mask, dtype=np.uint8).reshape(height, width)
    return _to_png(Image.fromarray(samples))


def flatten_on_paper(buffer: PixelBuffer) -> Image.Image:
    """Composite the buffer on a white background, dropping alpha."""
    if buffer.channels == 3:
        return Image.fromarray(buffer.data)

    rgba = Image.fromarray(buffer.data)
    background = Image.new("RGB", rgba.size, PAPER)
    background.paste(rgba, mask=rgba.split()[3])
    return background


def encode_greyscale(buffer: PixelBuffer) -> bytes:
    """Encode the buffer as a greyscale PNG (transparent areas become white)."""
    return _to_png(flatten_on_paper(buffer).convert("L"))


def encode_rgb(buffer: PixelBuffer) -> bytes:
    """Encode the buffer as an RGB PNG (transparent areas become white)."""
    return _to_png(flatten_on_paper(buffer))
