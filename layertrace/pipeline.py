"""Main pipeline orchestrator for layertrace."""

import asyncio
import logging
import time
from pathlib import Path
from typing import Optional, Union

from .extract import classify_pixels, plan_layers
from .quantize import ColorQuantizer
from .raster_ingest import decode_and_prepare, encode_greyscale, encode_rgb
from .render import LayerRenderer
from .tracer import TRANSPARENT, PosterizeRequest, PotraceTracer, TraceRequest
from .types import (
    ConversionResult,
    ConvertOptions,
    LayerPlan,
    Palette,
    PixelBuffer,
    VectorizationError,
    clamp_palette_size,
)

logger = logging.getLogger(__name__)

# (ink, background) for monochrome output
BW_SCHEME = ("#000000", TRANSPARENT)
BW_INVERTED_SCHEME = ("#FFFFFF", "#000000")


class Pipeline:
    """Raster-to-SVG conversion in one of three modes.

    bw traces a greyscale bitmap once, posterize hands the image to the
    tracer's multi-level mode, and color runs quantize -> classify -> plan ->
    per-layer trace -> composite.
    """

    def __init__(self, options: Optional[ConvertOptions] = None, tracer=None):
        """Initialize pipeline with configuration.

        Args:
            options: Conversion options. Uses defaults if None.
            tracer: Vectorizer with trace() and posterize(). Uses Potrace if None.
        """
        self.options = options or ConvertOptions()
        self.tracer = tracer or PotraceTracer()
        self.palette: Optional[Palette] = None
        self.layer_plan: LayerPlan = []

    def process(self, image_path: Union[str, Path]) -> str:
        """Convert an image file to an SVG document.

        Args:
            image_path: Path to input image

        Returns:
            SVG string

        Raises:
            ValueError: If the options are invalid
            DecodeError: If the image cannot be read
            VectorizeError: If tracing fails
        """
        opts = self.options
        opts.validate()
        start_time = time.time()

        self.palette = None
        self.layer_plan = []

        buffer = decode_and_prepare(image_path, opts.max_dimension)
        logger.info(
            f"Loaded {image_path}: {buffer.width}x{buffer.height}, "
            f"{buffer.channels} channels, mode={opts.mode}"
        )

        if opts.mode == "bw":
            svg = self._trace_bw(buffer)
        elif opts.mode == "posterize":
            svg = self._trace_posterize(buffer)
        else:
            svg = self._trace_color(buffer)

        logger.info(f"Conversion finished in {time.time() - start_time:.2f}s")
        return svg

    def _trace_bw(self, buffer: PixelBuffer) -> str:
        opts = self.options
        color, background = BW_INVERTED_SCHEME if opts.invert else BW_SCHEME
        request = TraceRequest(
            threshold=opts.threshold,
            params=opts.trace_params,
            color=color,
            background=background,
        )
        return self.tracer.trace(encode_greyscale(buffer), request)

    def _trace_posterize(self, buffer: PixelBuffer) -> str:
        opts = self.options
        levels = clamp_palette_size(opts.palette_size)
        request = PosterizeRequest(levels=levels, params=opts.trace_params)
        return self.tracer.posterize(encode_rgb(buffer), request)

    def _trace_color(self, buffer: PixelBuffer) -> str:
        opts = self.options

        quantizer = ColorQuantizer(
            palette_size=opts.palette_size,
            sample_target=opts.sample_target,
            max_iterations=opts.max_iterations,
            random_state=opts.seed,
        )
        self.palette = quantizer.fit(buffer)

        classification = classify_pixels(buffer, self.palette)
        self.layer_plan = plan_layers(classification, self.palette, opts.min_layer_pixels)
        logger.info(
            f"Palette of {len(self.palette)} colors, "
            f"{len(self.layer_plan)} layers after filtering"
        )

        renderer = LayerRenderer(self.tracer, opts.trace_params, opts.workers)
        return renderer.render(classification, self.layer_plan, buffer.width, buffer.height)


def convert(
    image_path: Union[str, Path],
    options: Optional[ConvertOptions] = None,
    tracer=None,
) -> ConversionResult:
    """Convert an image and report the outcome as a tagged result.

    Convenience function for callers that prefer a result object to
    exceptions.

    Example:
        >>> result = convert("logo.png", ConvertOptions(palette_size=4))
        >>> if result.success:
        ...     save_svg(result.svg, "logo.svg")
    """
    pipeline = Pipeline(options, tracer)
    try:
        svg = pipeline.process(image_path)
    except (VectorizationError, ValueError) as e:
        logger.error(f"Conversion of {image_path} failed: {e}")
        return ConversionResult(success=False, error=str(e))
    return ConversionResult(success=True, svg=svg, layers=list(pipeline.layer_plan))


async def convert_async(
    image_path: Union[str, Path],
    options: Optional[ConvertOptions] = None,
    tracer=None,
) -> ConversionResult:
    """Run convert() in the event loop's default executor.

    Cancelling before the work is dispatched raises CancelledError; once
    started the conversion runs to completion or failure.
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, convert, image_path, options, tracer)
