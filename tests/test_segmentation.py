"""Tests for segmentation adapters and image preprocessing."""

import numpy as np
import pytest

from superpixel_search.preprocessing import normalize_image, to_lab
from superpixel_search.segmentation import (
    SlicSegmenter, count_region_pixels, densify_labels,
)


class TestDensifyLabels:
    """Tests for dense relabelling."""

    def test_gaps_removed(self):
        labels = np.array([[5, 9], [9, 2]])
        assert densify_labels(labels).tolist() == [[1, 2], [2, 0]]

    def test_already_dense_unchanged(self):
        labels = np.array([[0, 1], [2, 1]])
        assert densify_labels(labels).tolist() == labels.tolist()


class TestCountRegionPixels:
    """Tests for per-region pixel counting."""

    def test_counts(self):
        labels = np.array([[0, 0, 1], [2, 2, 2]])
        assert count_region_pixels(labels, 4).tolist() == [2, 1, 3, 0]


class TestSlicSegmenter:
    """Tests for the SLIC segmenter adapter."""

    def test_segmenter_contract(self, striped_image):
        labels, region_count, pixel_counts = SlicSegmenter(region_size=400).segment(
            striped_image)
        assert labels.shape == striped_image.shape[:2]
        assert region_count > 1
        assert set(np.unique(labels)) == set(range(region_count))
        assert len(pixel_counts) == region_count
        assert pixel_counts.sum() == labels.size
        assert np.array_equal(pixel_counts,
                              np.bincount(labels.ravel(), minlength=region_count))

    def test_deterministic(self, striped_image):
        segmenter = SlicSegmenter(region_size=400)
        first = segmenter.segment(striped_image)
        second = segmenter.segment(striped_image)
        assert np.array_equal(first.labels, second.labels)

    def test_accepts_float_images(self, striped_image):
        result = SlicSegmenter(region_size=400).segment(striped_image / 255.0)
        assert result.labels.shape == striped_image.shape[:2]

    def test_rejects_bad_region_size(self):
        with pytest.raises(ValueError):
            SlicSegmenter(region_size=0)


class TestPreprocessing:
    """Tests for image normalization and CIELAB conversion."""

    def test_float_image_scaled(self):
        img = np.full((4, 4, 3), 0.5)
        out = normalize_image(img)
        assert out.dtype == np.uint8
        assert out[0, 0, 0] == 128

    def test_grayscale_expanded(self):
        out = normalize_image(np.full((4, 4), 77, dtype=np.uint8))
        assert out.shape == (4, 4, 3)
        assert (out == 77).all()

    def test_rgba_dropped_to_rgb(self):
        out = normalize_image(np.zeros((4, 4, 4), dtype=np.uint8))
        assert out.shape == (4, 4, 3)

    def test_unsupported_shape(self):
        with pytest.raises(ValueError):
            normalize_image(np.zeros((4, 4, 2), dtype=np.uint8))

    def test_lab_white_and_black(self):
        img = np.zeros((1, 2, 3), dtype=np.uint8)
        img[0, 1] = 255
        lab = to_lab(img)
        assert lab.dtype == np.uint8
        assert lab[0, 0].tolist() == [0, 128, 128]
        assert lab[0, 1].tolist() == [255, 128, 128]
