"""layertrace: raster to layered SVG via color quantization and Potrace.

Reduces an image to a small palette, traces each color as its own
monochrome layer and stacks the traced layers over a background fill.
"""

from layertrace.pipeline import Pipeline, convert, convert_async
from layertrace.types import (
    ConversionResult,
    ConvertOptions,
    DecodeError,
    PixelBuffer,
    TraceParams,
    VectorizationError,
    VectorizeError,
)

__version__ = "0.1.0"
__all__ = [
    "Pipeline",
    "convert",
    "convert_async",
    "ConversionResult",
    "ConvertOptions",
    "DecodeError",
    "PixelBuffer",
    "TraceParams",
    "VectorizationError",
    "VectorizeError",
]
