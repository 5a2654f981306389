"""Tests for pixel classification and layer planning."""

import numpy as np

from conftest import BLUE, RED, checkerboard, make_buffer
from layertrace.extract import (
    INK,
    PAPER,
    classify_pixels,
    elect_background,
    layer_bitmap,
    plan_layers,
)
from layertrace.types import TRANSPARENT, Classification, PixelBuffer


def classification_from_counts(counts) -> Classification:
    labels = np.concatenate(
        [np.full(n, i, dtype=np.int32) for i, n in enumerate(counts)]
    )
    return Classification(labels=labels, counts=np.array(counts, dtype=np.int64))


def grey_palette(k: int) -> np.ndarray:
    return np.array([[i * 10, i * 10, i * 10] for i in range(k)], dtype=np.uint8)


class TestClassifyPixels:
    """Test cases for classify_pixels."""

    def test_assigns_every_opaque_pixel(self):
        image = np.zeros((10, 10, 3), dtype=np.uint8)
        image[:6, :] = [250, 5, 5]
        image[6:, :] = [5, 5, 250]
        palette = np.array([[255, 0, 0], [0, 0, 255]], dtype=np.uint8)

        result = classify_pixels(PixelBuffer(image), palette)

        assert result.labels.shape == (100,)
        assert np.all(result.labels[:60] == 0)
        assert np.all(result.labels[60:] == 1)
        np.testing.assert_array_equal(result.counts, [60, 40])

    def test_transparent_sentinel(self):
        data = np.zeros((4, 4, 4), dtype=np.uint8)
        data[..., :3] = RED
        data[:2, :, 3] = 255
        data[2:, :, 3] = 127

        result = classify_pixels(PixelBuffer(data), np.array([RED, BLUE], dtype=np.uint8))

        assert np.all(result.labels[:8] == 0)
        assert np.all(result.labels[8:] == TRANSPARENT)
        np.testing.assert_array_equal(result.counts, [8, 0])

    def test_fully_transparent(self):
        buffer = make_buffer(10, 10, RED, alpha=0)

        result = classify_pixels(buffer, np.zeros((1, 3), dtype=np.uint8))

        assert np.all(result.transparent)
        np.testing.assert_array_equal(result.counts, [0])

    def test_counts_match_labels(self):
        rng = np.random.RandomState(0)
        buffer = PixelBuffer(rng.randint(0, 256, (30, 30, 3)).astype(np.uint8))
        palette = rng.randint(0, 256, (6, 3)).astype(np.uint8)

        result = classify_pixels(buffer, palette)

        assert result.counts.sum() == buffer.pixel_count
        np.testing.assert_array_equal(result.counts, np.bincount(result.labels, minlength=6))

    def test_duplicate_palette_entries(self):
        """Identical centroids all resolve to the first one."""
        palette = np.array([RED, RED, RED, RED], dtype=np.uint8)

        result = classify_pixels(make_buffer(10, 10, RED), palette)

        np.testing.assert_array_equal(result.counts, [100, 0, 0, 0])


class TestPlanLayers:
    """Test cases for plan_layers."""

    def test_background_is_most_frequent(self):
        plan = plan_layers(classification_from_counts([30, 500, 80]), grey_palette(3))

        assert plan[0].index == 1
        assert plan[0].pixel_count == 500

    def test_remaining_sorted_by_descending_count(self):
        plan = plan_layers(
            classification_from_counts([40, 500, 80, 60, 80]), grey_palette(5)
        )

        # 80/80 tie resolved by ascending index
        assert [layer.index for layer in plan] == [1, 2, 4, 3, 0]

    def test_background_tie_lowest_index(self):
        assert elect_background(np.array([50, 50])) == 0
        assert elect_background(np.array([10, 70, 70])) == 1

    def test_threshold_filtering(self):
        plan = plan_layers(
            classification_from_counts([500, 9, 10, 3]), grey_palette(4), min_pixels=10
        )

        assert [layer.index for layer in plan] == [0, 2]
        assert all(layer.pixel_count >= 10 for layer in plan[1:])

    def test_background_kept_with_zero_count(self):
        classification = Classification(
            labels=np.full(100, TRANSPARENT, dtype=np.int32),
            counts=np.zeros(1, dtype=np.int64),
        )

        plan = plan_layers(classification, np.zeros((1, 3), dtype=np.uint8))

        assert len(plan) == 1
        assert plan[0].index == 0
        assert plan[0].color == (0, 0, 0)
        assert plan[0].pixel_count == 0

    def test_background_dominance(self):
        rng = np.random.RandomState(4)
        counts = rng.randint(0, 200, 12)

        plan = plan_layers(classification_from_counts(list(counts)), grey_palette(12))

        assert all(plan[0].pixel_count >= layer.pixel_count for layer in plan[1:])

    def test_layer_colors_are_palette_tuples(self):
        palette = np.array([RED, BLUE], dtype=np.uint8)

        plan = plan_layers(classification_from_counts([20, 70]), palette)

        assert plan[0].color == BLUE
        assert plan[1].color == RED
        assert all(isinstance(c, int) for c in plan[0].color)


class TestLayerBitmap:
    """Test cases for layer_bitmap and the coverage invariant."""

    def test_bitmap_marks_only_layer_pixels(self):
        labels = np.array([0, 1, TRANSPARENT, 1, 0], dtype=np.int32)
        classification = Classification(labels=labels, counts=np.array([2, 2]))

        bitmap = layer_bitmap(classification, 1)

        np.testing.assert_array_equal(bitmap, [PAPER, INK, PAPER, INK, PAPER])
        assert bitmap.dtype == np.uint8

    def test_layers_cover_every_opaque_pixel_once(self):
        data = np.zeros((20, 20, 4), dtype=np.uint8)
        data[..., :3] = checkerboard(20, 20)
        data[..., 3] = 255
        data[15:, :, 3] = 0
        buffer = PixelBuffer(data)
        palette = np.array([RED, BLUE, (0, 255, 0)], dtype=np.uint8)

        classification = classify_pixels(buffer, palette)
        plan = plan_layers(classification, palette, min_pixels=0)

        ink = np.stack([layer_bitmap(classification, layer.index) == INK for layer in plan])
        coverage = ink.sum(axis=0)
        assert np.all(coverage[buffer.opaque] == 1)
        assert np.all(coverage[~buffer.opaque] == 0)
