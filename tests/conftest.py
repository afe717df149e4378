"""Shared test fixtures for superpixel search tests."""

import numpy as np
import pytest


def uniform_colors(labels, palette):
    """Color grid where every pixel takes its region's palette color."""
    palette = np.asarray(palette, dtype=np.uint8)
    return palette[labels]


@pytest.fixture
def two_region_labels():
    """4x4 grid: region 0 on the top two rows, region 1 on the bottom two."""
    labels = np.zeros((4, 4), dtype=np.int32)
    labels[2:, :] = 1
    return labels


@pytest.fixture
def two_region_colors(two_region_labels):
    """Dark top half (10,10,10), bright bottom half (200,200,200)."""
    return uniform_colors(two_region_labels, [(10, 10, 10), (200, 200, 200)])


@pytest.fixture
def two_region_image(two_region_labels, two_region_colors):
    """Segmented image tuple accepted by build_index()."""
    return ("two-region", two_region_labels, two_region_colors, 2,
            np.array([8, 8]))


@pytest.fixture
def random_segmentation():
    """40x30 grid with 12 labels drawn at random, plus random colors."""
    rng = np.random.RandomState(42)
    labels = rng.randint(0, 12, (40, 30)).astype(np.int32)
    colors = rng.randint(0, 256, (40, 30, 3)).astype(np.uint8)
    return labels, colors, 12


@pytest.fixture
def striped_image():
    """120x160 RGB image with four vertical color stripes."""
    img = np.zeros((120, 160, 3), dtype=np.uint8)
    img[:, :40] = [220, 30, 30]
    img[:, 40:80] = [30, 200, 30]
    img[:, 80:120] = [30, 30, 220]
    img[:, 120:] = [240, 240, 240]
    return img


@pytest.fixture
def dark_gradient_image():
    """120x160 RGB image, dark with a faint horizontal gradient."""
    img = np.zeros((120, 160, 3), dtype=np.uint8)
    img[:] = np.linspace(0, 40, 160, dtype=np.uint8)[None, :, None]
    return img
