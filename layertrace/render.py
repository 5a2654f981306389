"""Per-layer tracing and compositing."""
import logging
import os
import pickle
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from typing import List, Optional, Type

from .extract import layer_bitmap
from .raster_ingest import encode_single_channel_bitmap
from .svg import color_to_hex, compose_document, extract_path_fragments
from .tracer import TRANSPARENT, TraceRequest
from .types import Classification, Layer, LayerPlan, PathFragment, TraceParams

logger = logging.getLogger(__name__)

# Layer bitmaps are already binary; the threshold only has to separate 0 from 255
LAYER_THRESHOLD = 128


def trace_layer(tracer, bitmap: bytes, request: TraceRequest) -> List[PathFragment]:
    """Trace one encoded layer bitmap and keep only its path elements.

    Module-level so it can run in a worker process.
    """
    return extract_path_fragments(tracer.trace(bitmap, request))


def is_picklable(obj) -> bool:
    try:
        pickle.dumps(obj)
    except (pickle.PicklingError, TypeError, AttributeError):
        return False
    return True


class LayerRenderer:
    """Trace each planned layer and composite the results.

    Args:
        tracer: Object with a trace(bytes, TraceRequest) -> str method
        params: Tracing-quality parameters for every layer
        workers: Worker count; None = min(cpu_count, layers)
    """

    def __init__(self, tracer, params: Optional[TraceParams] = None, workers: Optional[int] = None):
        self.tracer = tracer
        self.params = params or TraceParams()
        self.workers = workers

    @property
    def executor_class(self) -> Type[Executor]:
        """Process pool for picklable tracers, threads otherwise."""
        if is_picklable(self.tracer):
            return ProcessPoolExecutor
        return ThreadPoolExecutor

    def layer_request(self, layer: Layer) -> TraceRequest:
        return TraceRequest(
            threshold=LAYER_THRESHOLD,
            params=self.params,
            color=color_to_hex(layer.color),
            background=TRANSPARENT,
        )

    def render_layer(
        self, classification: Classification, layer: Layer, width: int, height: int
    ) -> List[PathFragment]:
        """Trace one layer and return its path fragments."""
        bitmap = layer_bitmap(classification, layer.index)
        png = encode_single_channel_bitmap(bitmap, width, height)
        fragments = trace_layer(self.tracer, png, self.layer_request(layer))
        logger.debug(
            f"Layer {layer.index} {color_to_hex(layer.color)}: "
            f"{layer.pixel_count} px -> {len(fragments)} paths"
        )
        return fragments

    def render(
        self, classification: Classification, plan: LayerPlan, width: int, height: int
    ) -> str:
        """Build the final document.

        The first plan entry is the background and is drawn as the canvas
        rectangle; every other entry is traced and appended in plan order.
        The first tracing failure aborts the whole render.
        """
        background, layers = plan[0], plan[1:]
        traced = self._trace_all(classification, layers, width, height)

        fragments = [fragment for layer_fragments in traced for fragment in layer_fragments]
        logger.info(f"Composited {len(layers)} layers, {len(fragments)} paths")
        return compose_document(width, height, background.color, fragments)

    def _trace_all(
        self, classification: Classification, layers: LayerPlan, width: int, height: int
    ) -> List[List[PathFragment]]:
        if not layers:
            return []

        workers = self.workers or min(os.cpu_count() or 1, len(layers))
        workers = max(1, min(workers, len(layers)))

        if workers == 1:
            return [self.render_layer(classification, layer, width, height) for layer in layers]

        executor_class = self.executor_class
        logger.info(
            f"Tracing {len(layers)} layers using {workers} workers "
            f"({executor_class.__name__})..."
        )

        executor = executor_class(max_workers=workers)
        try:
            futures = [
                executor.submit(
                    trace_layer,
                    self.tracer,
                    encode_single_channel_bitmap(
                        layer_bitmap(classification, layer.index), width, height
                    ),
                    self.layer_request(layer),
                )
                for layer in layers
            ]
            # Collected in submission order, independent of completion order
            results = [future.result() for future in futures]
        except BaseException:
            # Queued layers are dropped; the error surfaces without waiting
            executor.shutdown(wait=False, cancel_futures=True)
            raise

        executor.shutdown()
        return results
