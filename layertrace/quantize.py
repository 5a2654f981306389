"""Color quantization module using K-means clustering."""

import logging

import numpy as np
from sklearn.cluster import kmeans_plusplus
from sklearn.utils import check_random_state

from .types import Palette, PixelBuffer, clamp_palette_size

logger = logging.getLogger(__name__)

# Pixels per chunk when computing nearest centroids; bounds the (n, K) matrix
CHUNK_SIZE = 1 << 16


def nearest_centroid(colors: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """Index of the nearest centroid for each color.

    Squared Euclidean distance in RGB space, computed exactly in integers so
    that ties always resolve to the lowest centroid index.

    Args:
        colors: (n, 3) array of RGB values
        centroids: (K, 3) array of RGB values

    Returns:
        (n,) int32 array of centroid indices
    """
    c = centroids.astype(np.int64)
    c_norm = np.einsum("ij,ij->i", c, c)
    labels = np.empty(len(colors), dtype=np.int32)

    for start in range(0, len(colors), CHUNK_SIZE):
        chunk = colors[start:start + CHUNK_SIZE].astype(np.int64)
        # |x|^2 is constant per row and does not affect the argmin
        dist = c_norm[None, :] - 2 * (chunk @ c.T)
        labels[start:start + CHUNK_SIZE] = np.argmin(dist, axis=1)

    return labels


def lloyd_step(samples: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """One Lloyd iteration.

    Every non-empty cluster moves to the integer-rounded mean of its members
    (halves round up); empty clusters keep their centroid.

    Returns:
        New (K, 3) int64 centroid array
    """
    k = len(centroids)
    labels = nearest_centroid(samples, centroids)
    sizes = np.bincount(labels, minlength=k)
    updated = centroids.astype(np.int64).copy()

    for channel in range(3):
        sums = np.bincount(labels, weights=samples[:, channel], minlength=k)
        populated = sizes > 0
        updated[populated, channel] = np.floor(
            sums[populated] / sizes[populated] + 0.5
        ).astype(np.int64)

    return updated


class ColorQuantizer:
    """K-means palette extraction over a sample of opaque pixels.

    Args:
        palette_size: Requested number of colors, clamped into 2..32
        sample_target: Approximate number of pixels to cluster
        max_iterations: Cap on Lloyd iterations
        random_state: Seed, RandomState instance or None
    """

    def __init__(
        self,
        palette_size: int = 8,
        sample_target: int = 20000,
        max_iterations: int = 15,
        random_state=None,
    ):
        self.palette_size = clamp_palette_size(palette_size)
        self.sample_target = max(1, int(sample_target))
        self.max_iterations = max(0, int(max_iterations))
        self.random_state = check_random_state(random_state)
        self.n_iter_ = 0
        self.converged_ = False

    def sample(self, buffer: PixelBuffer) -> np.ndarray:
        """Stratified sample of opaque RGB colors.

        Takes every stride-th opaque pixel in row-major order, with
        stride = opaque_count // sample_target (at least 1).
        """
        opaque = buffer.rgb[buffer.opaque]
        stride = max(1, len(opaque) // self.sample_target)
        return np.ascontiguousarray(opaque[::stride])

    def init_centroids(self, samples: np.ndarray) -> np.ndarray:
        """Choose initial centroids with k-means++ seeding.

        One candidate per step, so each next centroid is drawn with
        probability proportional to its squared distance from the nearest
        centroid already chosen. Centroids are copies of sample rows.
        """
        k = min(self.palette_size, len(samples))
        _, indices = kmeans_plusplus(
            samples.astype(np.float64),
            k,
            random_state=self.random_state,
            n_local_trials=1,
        )
        return samples[indices].astype(np.int64)

    def refine(self, samples: np.ndarray, centroids: np.ndarray) -> np.ndarray:
        """Run Lloyd iterations until a fixed point or the iteration cap."""
        self.converged_ = False
        self.n_iter_ = 0
        for _ in range(self.max_iterations):
            updated = lloyd_step(samples, centroids)
            self.n_iter_ += 1
            if np.array_equal(updated, centroids):
                self.converged_ = True
                break
            centroids = updated
        logger.debug(
            f"K-means stopped after {self.n_iter_} iterations (converged={self.converged_})"
        )
        return centroids

    def fit(self, buffer: PixelBuffer) -> Palette:
        """Compute the palette for a pixel buffer.

        Returns:
            Read-only (K, 3) uint8 array. Fewer than K rows only when fewer than
            K opaque samples exist; a single black row when there are none.
        """
        samples = self.sample(buffer)

        if len(samples) == 0:
            logger.warning("No opaque pixels found, using single black palette entry")
            palette = np.zeros((1, 3), dtype=np.uint8)
            palette.setflags(write=False)
            return palette

        centroids = self.init_centroids(samples)
        centroids = self.refine(samples, centroids)

        palette = np.clip(centroids, 0, 255).astype(np.uint8)
        palette.setflags(write=False)
        logger.info(f"Quantized {len(samples)} samples to {len(palette)} colors")
        return palette


def quantize_colors(
    buffer: PixelBuffer,
    n_colors: int,
    random_state=None,
    sample_target: int = 20000,
    max_iterations: int = 15,
) -> Palette:
    """Quantize a pixel buffer to a palette of n_colors.

    Convenience wrapper around ColorQuantizer.
    """
    quantizer = ColorQuantizer(n_colors, sample_target, max_iterations, random_state)
    return quantizer.fit(buffer)
