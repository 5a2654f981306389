"""Common types, configuration and exceptions for layertrace."""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

import numpy as np

# Type aliases
Color = Tuple[int, int, int]
Palette = np.ndarray
PathFragment = str

# Label written for pixels with alpha below OPAQUE_ALPHA
TRANSPARENT = -1
OPAQUE_ALPHA = 128

MIN_PALETTE_SIZE = 2
MAX_PALETTE_SIZE = 32


def clamp_palette_size(n: int) -> int:
    """Clamp a requested color or band count into 2..32."""
    return int(min(max(n, MIN_PALETTE_SIZE), MAX_PALETTE_SIZE))


MODES = ("bw", "color", "posterize")
TURN_POLICIES = ("black", "white", "left", "right", "minority", "majority", "random")


class VectorizationError(Exception):
    """Base exception for vectorization errors."""

    pass


class DecodeError(VectorizationError):
    """Raised when the source image cannot be read."""

    pass


class VectorizeError(VectorizationError):
    """Raised when a bitmap cannot be traced."""

    pass


@dataclass(frozen=True)
class PixelBuffer:
    """Decoded raster, row-major interleaved 8-bit samples of shape (H, W, C).

    The array is marked read-only on construction; every stage receives the
    same buffer by reference.
    """

    data: np.ndarray

    def __post_init__(self):
        if self.data.ndim != 3 or self.data.shape[2] not in (3, 4):
            raise ValueError(
                f"Expected (H, W, 3) or (H, W, 4) array, got shape {self.data.shape}"
            )
        if self.data.dtype != np.uint8:
            raise ValueError(f"Expected uint8 samples, got {self.data.dtype}")
        data = np.ascontiguousarray(self.data)
        data.setflags(write=False)
        object.__setattr__(self, "data", data)

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def channels(self) -> int:
        return int(self.data.shape[2])

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def rgb(self) -> np.ndarray:
        """(N, 3) view of the color samples."""
        return self.data.reshape(-1, self.channels)[:, :3]

    @property
    def opaque(self) -> np.ndarray:
        """(N,) boolean mask of pixels with alpha >= 128."""
        if self.channels == 3:
            return np.ones(self.pixel_count, dtype=bool)
        return self.data.reshape(-1, 4)[:, 3] >= OPAQUE_ALPHA


@dataclass(frozen=True)
class Classification:
    """Per-pixel palette assignment and per-color pixel counts."""

    labels: np.ndarray  # (N,) int32, palette index or TRANSPARENT
    counts: np.ndarray  # (K,) int64

    @property
    def transparent(self) -> np.ndarray:
        return self.labels == TRANSPARENT


@dataclass(frozen=True)
class Layer:
    """One palette color scheduled for rendering."""

    index: int
    color: Color
    pixel_count: int


LayerPlan = List[Layer]


@dataclass(frozen=True)
class TraceParams:
    """Tracing-quality parameters handed to the vectorizer."""

    turn_policy: str = "minority"
    min_feature_size: int = 2  # speckles smaller than this (px^2) are dropped
    curve_tolerance: float = 0.2
    alpha_max: float = 1.0
    optimize_curves: bool = True


@dataclass
class ConvertOptions:
    """Configuration for one conversion."""

    mode: str = "color"
    palette_size: int = 8

    # Monochrome mode
    threshold: int = 128
    invert: bool = False

    # Tracing
    turn_policy: str = "minority"
    min_feature_size: int = 2
    curve_tolerance: float = 0.2

    # Preprocessing
    max_dimension: int = 2048

    # Quantization
    sample_target: int = 20000
    max_iterations: int = 15
    seed: Optional[int] = None

    # Layer planning / rendering
    min_layer_pixels: int = 10
    workers: Optional[int] = None  # None = min(cpu_count, layers)

    @classmethod
    def from_preset(cls, preset: str = "balanced", **overrides) -> "ConvertOptions":
        """Build options from a named quality preset.

        Args:
            preset: One of "speed", "balanced", "quality"
            **overrides: Field values that take precedence over the preset

        Raises:
            ValueError: If the preset is unknown
        """
        if preset not in PRESETS:
            raise ValueError(
                f"Unknown preset {preset!r}, expected one of {sorted(PRESETS)}"
            )
        return replace(PRESETS[preset], **overrides)

    @property
    def trace_params(self) -> TraceParams:
        return TraceParams(
            turn_policy=self.turn_policy,
            min_feature_size=self.min_feature_size,
            curve_tolerance=self.curve_tolerance,
        )

    def validate(self) -> None:
        """Reject options the pipeline cannot honour.

        Raises:
            ValueError: On an unknown mode or turn policy, or a bad threshold
        """
        if self.mode not in MODES:
            raise ValueError(f"Unknown mode {self.mode!r}, expected one of {MODES}")
        if self.turn_policy not in TURN_POLICIES:
            raise ValueError(
                f"Unknown turn policy {self.turn_policy!r}, expected one of {TURN_POLICIES}"
            )
        if not 0 <= self.threshold <= 255:
            raise ValueError(f"threshold must be in 0..255, got {self.threshold}")
        if self.max_dimension < 1:
            raise ValueError(f"max_dimension must be >= 1, got {self.max_dimension}")


PRESETS: Dict[str, ConvertOptions] = {
    "speed": ConvertOptions(max_dimension=1024, sample_target=10000, max_iterations=10),
    "balanced": ConvertOptions(),
    "quality": ConvertOptions(max_dimension=4096, sample_target=50000, max_iterations=30),
}


@dataclass
class ConversionResult:
    """Tagged outcome of a conversion: the SVG document or an error message."""

    success: bool
    svg: Optional[str] = None
    error: Optional[str] = None
    layers: List[Layer] = field(default_factory=list)
