"""
Single-pass region statistics over a segmented image.

Turns a label grid and an aligned 3-channel color grid into one summary
per region: summed color, pixel count and inclusive bounding box. The
summaries live in a RegionTable (one row per region id, zero-initialized
and sized by the caller's region count); RegionRecord objects are only
materialized for regions that actually own pixels.

Label and color grids can be fed whole (aggregate_regions) or as
consecutive row blocks (RegionAccumulator). When the expected pixel count
of every region is known up front, the accumulator reports each region as
finalized in the block that completes it.
"""

import logging
from dataclasses import dataclass, replace
from typing import Hashable, List, Optional, Tuple

import numpy as np

from .errors import (
    InvalidLabelValue, PixelCountMismatch, ShapeMismatch, SuperpixelSearchError,
)

logger = logging.getLogger(__name__)

# Bounding box value for regions that never received a pixel
UNSET_COORD = -1

_COORD_MAX = np.iinfo(np.int64).max


@dataclass(frozen=True)
class RegionRecord:
    """
    Statistics of one region of one image.

    Attributes:
        region_id: Label value of the region in its label grid.
        color_sum: Per-channel sum of the region's color samples.
        pixel_count: Number of pixels labeled with region_id.
        bounding_box: Inclusive (x_min, x_max, y_min, y_max).
        image_shape: (rows, cols) of the grid the region came from.
        source_image_id: Identifier of the owning image, set when the
            record is inserted into an index.
    """

    region_id: int
    color_sum: Tuple[int, int, int]
    pixel_count: int
    bounding_box: Tuple[int, int, int, int]
    image_shape: Tuple[int, int]
    source_image_id: Optional[Hashable] = None

    @property
    def average_color(self) -> Tuple[float, float, float]:
        return tuple(float(c) / self.pixel_count for c in self.color_sum)

    @property
    def center(self) -> Tuple[float, float]:
        """Bounding-box midpoint as (x, y) in pixel coordinates."""
        x_min, x_max, y_min, y_max = self.bounding_box
        return (x_min + x_max) / 2.0, (y_min + y_max) / 2.0

    def tagged(self, image_id: Hashable) -> "RegionRecord":
        """Return a copy of this record owned by image_id."""
        return replace(self, source_image_id=image_id)


@dataclass
class RegionTable:
    """
    Per-region statistics for one image, addressed by region id.

    Arrays are indexed by region id:
        color_sum     (n, 3) int64
        pixel_count   (n,)   int64
        bounding_box  (n, 4) int64 — x_min, x_max, y_min, y_max,
                      UNSET_COORD for empty regions
    """

    color_sum: np.ndarray
    pixel_count: np.ndarray
    bounding_box: np.ndarray
    image_shape: Tuple[int, int]

    def __len__(self) -> int:
        return len(self.pixel_count)

    @property
    def region_count(self) -> int:
        return len(self.pixel_count)

    @property
    def nonempty(self) -> np.ndarray:
        """Boolean mask of regions with at least one pixel."""
        return self.pixel_count > 0

    def record(self, region_id: int) -> RegionRecord:
        """Materialize the record of a single non-empty region."""
        if not 0 <= region_id < self.region_count:
            raise InvalidLabelValue(region_id, self.region_count)
        if self.pixel_count[region_id] == 0:
            raise ValueError(f"Region {region_id} has no pixels")
        return RegionRecord(
            region_id=int(region_id),
            color_sum=tuple(int(c) for c in self.color_sum[region_id]),
            pixel_count=int(self.pixel_count[region_id]),
            bounding_box=tuple(int(v) for v in self.bounding_box[region_id]),
            image_shape=self.image_shape,
        )

    def records(self) -> List[RegionRecord]:
        """All non-empty regions as records, in region id order."""
        return [self.record(int(r)) for r in np.flatnonzero(self.nonempty)]


class RegionAccumulator:
    """
    Streaming region statistics over consecutive row blocks of one image.

    Usage:
        acc = RegionAccumulator(region_count, expected_counts)
        for labels_block, colors_block in blocks:
            done = acc.update(labels_block, colors_block)
        table = acc.result()

    Every block is validated before anything is accumulated, so a block
    that fails validation leaves the accumulator unchanged.
    """

    def __init__(self, region_count: int,
                 expected_counts: Optional[np.ndarray] = None):
        """
        Args:
            region_count: Number of region ids; labels must be in
                [0, region_count).
            expected_counts: Optional final pixel count per region id.
                When given, regions are finalized as soon as their running
                count reaches it.
        """
        region_count = int(region_count)
        if region_count < 0:
            raise ValueError(f"region_count must be >= 0, got {region_count}")
        self.region_count = region_count

        if expected_counts is not None:
            expected_counts = np.asarray(expected_counts, dtype=np.int64).ravel()
            if len(expected_counts) != region_count:
                raise PixelCountMismatch(
                    f"Expected {region_count} pixel counts, "
                    f"got {len(expected_counts)}"
                )
            if np.any(expected_counts < 0):
                raise PixelCountMismatch("Expected pixel counts must be >= 0")
        self.expected_counts = expected_counts

        self.color_sum = np.zeros((region_count, 3), dtype=np.int64)
        self.pixel_count = np.zeros(region_count, dtype=np.int64)
        self.finalized = np.zeros(region_count, dtype=bool)

        self._x_min = np.full(region_count, _COORD_MAX, dtype=np.int64)
        self._x_max = np.full(region_count, UNSET_COORD, dtype=np.int64)
        self._y_min = np.full(region_count, _COORD_MAX, dtype=np.int64)
        self._y_max = np.full(region_count, UNSET_COORD, dtype=np.int64)

        self.rows = 0
        self.cols: Optional[int] = None

    def _validate_block(self, labels, colors) -> Tuple[np.ndarray, np.ndarray]:
        labels = np.asarray(labels)
        colors = np.asarray(colors)

        if labels.ndim != 2:
            raise ShapeMismatch(
                f"Label grid must be 2-D, got shape {labels.shape}"
            )
        if colors.shape != labels.shape + (3,):
            raise ShapeMismatch(
                f"Color grid shape {colors.shape} doesn't match "
                f"label grid shape {labels.shape} with 3 channels"
            )
        if self.cols is not None and labels.shape[1] != self.cols:
            raise ShapeMismatch(
                f"Block has {labels.shape[1]} columns, expected {self.cols}"
            )
        if labels.size and not np.issubdtype(labels.dtype, np.integer):
            raise SuperpixelSearchError(
                f"Label grid must hold integers, got {labels.dtype}"
            )
        if colors.size and not np.issubdtype(colors.dtype, np.integer):
            raise SuperpixelSearchError(
                f"Color grid must hold integer samples, got {colors.dtype}"
            )

        if labels.size:
            lowest = labels.min()
            if lowest < 0:
                raise InvalidLabelValue(lowest, self.region_count)
            highest = labels.max()
            if highest >= self.region_count:
                raise InvalidLabelValue(highest, self.region_count)

        return labels, colors

    def update(self, labels, colors) -> np.ndarray:
        """
        Accumulate the next block of rows.

        Args:
            labels: (rows, cols) integer label block.
            colors: (rows, cols, 3) integer color block aligned with labels.

        Returns:
            Sorted array of region ids finalized by this block. Always
            empty when no expected counts were given.

        Raises:
            ShapeMismatch: Block shapes are inconsistent.
            InvalidLabelValue: A label lies outside [0, region_count).
            PixelCountMismatch: A region received more pixels than expected.
        """
        labels, colors = self._validate_block(labels, colors)
        n = self.region_count
        block_rows, block_cols = labels.shape

        flat = labels.ravel().astype(np.intp)
        counts = np.bincount(flat, minlength=n).astype(np.int64)
        new_counts = self.pixel_count + counts

        if self.expected_counts is not None:
            over = np.flatnonzero(new_counts > self.expected_counts)
            if len(over):
                r = int(over[0])
                raise PixelCountMismatch(
                    f"Region {r} has more than its expected "
                    f"{int(self.expected_counts[r])} pixels"
                )

        # Sums of integer samples stay exact in float64 below 2**53
        channels = colors.reshape(-1, 3)
        for c in range(3):
            sums = np.bincount(flat, weights=channels[:, c], minlength=n)
            self.color_sum[:, c] += np.rint(sums).astype(np.int64)

        ys, xs = np.indices((block_rows, block_cols), dtype=np.int64)
        xs = xs.ravel()
        ys = ys.ravel() + self.rows
        np.minimum.at(self._x_min, flat, xs)
        np.maximum.at(self._x_max, flat, xs)
        np.minimum.at(self._y_min, flat, ys)
        np.maximum.at(self._y_max, flat, ys)

        self.pixel_count = new_counts
        self.rows += block_rows
        if self.cols is None:
            self.cols = block_cols

        if self.expected_counts is None:
            return np.empty(0, dtype=np.intp)

        done = ((self.pixel_count == self.expected_counts)
                & (self.pixel_count > 0)
                & ~self.finalized)
        self.finalized |= done
        return np.flatnonzero(done)

    def result(self) -> RegionTable:
        """
        Finish the pass and return the per-region table.

        Raises:
            PixelCountMismatch: Expected counts were given and some region
                ended with a different count.
        """
        if self.expected_counts is not None:
            short = np.flatnonzero(self.pixel_count != self.expected_counts)
            if len(short):
                r = int(short[0])
                raise PixelCountMismatch(
                    f"Region {r} has {int(self.pixel_count[r])} pixels, "
                    f"expected {int(self.expected_counts[r])}"
                )
        else:
            self.finalized = self.pixel_count > 0

        empty = self.pixel_count == 0
        bounding_box = np.stack(
            [self._x_min, self._x_max, self._y_min, self._y_max], axis=1
        )
        bounding_box[empty] = UNSET_COORD

        logger.debug(
            f"Aggregated {self.rows}x{self.cols or 0} grid: "
            f"{int((~empty).sum())}/{self.region_count} non-empty regions"
        )

        return RegionTable(
            color_sum=self.color_sum.copy(),
            pixel_count=self.pixel_count.copy(),
            bounding_box=bounding_box,
            image_shape=(self.rows, self.cols or 0),
        )


def aggregate_regions(labels,
                      colors,
                      region_count: int,
                      expected_counts: Optional[np.ndarray] = None) -> RegionTable:
    """
    Compute per-region statistics for a whole label grid in one pass.

    Args:
        labels: (rows, cols) integer grid of region ids.
        colors: (rows, cols, 3) integer color grid aligned with labels.
        region_count: Number of region ids.
        expected_counts: Optional per-region pixel counts from the
            segmenter, checked against the observed counts.

    Returns:
        RegionTable with one row per region id.
    """
    accumulator = RegionAccumulator(region_count, expected_counts)
    accumulator.update(labels, colors)
    return accumulator.result()
