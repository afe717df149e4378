"""
Discretized hashing of region statistics into integer bucket keys.

Each non-empty region is described by five values — its average color
(three channels) and the midpoint of its bounding box (x, y). Every value
is divided by a fixed bucket width, floored and clamped to the axis'
bucket range. The five bucket indices are then combined mixed-radix in
the order (channel 1, channel 2, channel 3, x, y) into a single integer.

Spatial midpoints stay in raw pixel coordinates. Their bucket widths come
from a fixed reference resolution (3840x2160 by default), not from the
image being hashed, so a key means the same thing for every image size.
Midpoints past the reference frame clamp into the last bucket.

The bucket layout is part of an index's contract: an index built with one
layout cannot be queried with another. Defaults can be overridden through
environment variables (SP_COLOR_BUCKETS, SP_COLOR_RANGE, SP_X_BUCKETS,
SP_Y_BUCKETS, SP_REF_WIDTH, SP_REF_HEIGHT); default color widths assume
8-bit CIELAB samples.
"""

import math
import os
import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .aggregation import RegionRecord, RegionTable

logger = logging.getLogger(__name__)

# Bump whenever the key formula changes
LAYOUT_VERSION = 1

# Key for regions that cannot be indexed (no pixels)
UNINDEXABLE = -1

COLOR_BUCKETS = int(os.environ.get("SP_COLOR_BUCKETS", "16"))
COLOR_RANGE = int(os.environ.get("SP_COLOR_RANGE", "256"))
X_BUCKETS = int(os.environ.get("SP_X_BUCKETS", "10"))
Y_BUCKETS = int(os.environ.get("SP_Y_BUCKETS", "10"))
REFERENCE_WIDTH = int(os.environ.get("SP_REF_WIDTH", "3840"))
REFERENCE_HEIGHT = int(os.environ.get("SP_REF_HEIGHT", "2160"))


@dataclass(frozen=True)
class BucketLayout:
    """Bucket counts and value ranges for the five hashed axes."""

    color_buckets: int = COLOR_BUCKETS
    color_range: int = COLOR_RANGE
    x_buckets: int = X_BUCKETS
    y_buckets: int = Y_BUCKETS
    reference_width: int = REFERENCE_WIDTH
    reference_height: int = REFERENCE_HEIGHT

    def __post_init__(self):
        for name in ("color_buckets", "color_range", "x_buckets",
                     "y_buckets", "reference_width", "reference_height"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

    @property
    def color_width(self) -> float:
        return self.color_range / self.color_buckets

    @property
    def x_width(self) -> float:
        return self.reference_width / self.x_buckets

    @property
    def y_width(self) -> float:
        return self.reference_height / self.y_buckets

    @property
    def dims(self) -> Tuple[int, int, int, int, int]:
        return (self.color_buckets, self.color_buckets, self.color_buckets,
                self.x_buckets, self.y_buckets)

    @property
    def widths(self) -> Tuple[float, float, float, float, float]:
        return (self.color_width, self.color_width, self.color_width,
                self.x_width, self.y_width)

    @property
    def total_buckets(self) -> int:
        return math.prod(self.dims)

    @property
    def signature(self) -> str:
        """Stable identifier of this layout, including the formula version."""
        return (
            f"v{LAYOUT_VERSION}"
            f":color{self.color_buckets}/{self.color_range}"
            f":x{self.x_buckets}/{self.reference_width}"
            f":y{self.y_buckets}/{self.reference_height}"
        )


class KeyQuantizer:
    """Maps region statistics to bucket keys under a fixed BucketLayout."""

    def __init__(self, layout: BucketLayout = None):
        self.layout = layout or BucketLayout()

    def __repr__(self):
        return f"KeyQuantizer({self.layout.signature})"

    def axis_values(self, record: RegionRecord) -> Tuple[float, ...]:
        """
        Continuous descriptor of a non-empty region.

        Returns:
            (c1, c2, c3, x, y) — average color and bounding-box midpoint
            in pixel coordinates.
        """
        if record.pixel_count <= 0:
            raise ValueError(f"Region {record.region_id} has no pixels")
        c1, c2, c3 = record.average_color
        x_center, y_center = record.center
        return c1, c2, c3, x_center, y_center

    def bucket_indices(self, record: RegionRecord) -> Tuple[int, ...]:
        """Clamped bucket index on each of the five axes."""
        indices = []
        for value, width, dim in zip(self.axis_values(record),
                                     self.layout.widths, self.layout.dims):
            bucket = math.floor(value / width)
            indices.append(max(0, min(bucket, dim - 1)))
        return tuple(indices)

    def compute_key(self, record: RegionRecord) -> int:
        """
        Bucket key of a single region.

        Returns:
            Integer in [0, layout.total_buckets), or UNINDEXABLE for a
            region without pixels.
        """
        if record.pixel_count <= 0:
            return UNINDEXABLE

        indices = self.bucket_indices(record)
        key = indices[0]
        for bucket, dim in zip(indices[1:], self.layout.dims[1:]):
            key = key * dim + bucket
        return key

    def compute_keys(self, table: RegionTable) -> np.ndarray:
        """
        Bucket keys of every region in a table, indexed by region id.

        Produces exactly the keys compute_key() gives for each record,
        with UNINDEXABLE for empty regions.
        """
        n = len(table)
        keys = np.full(n, UNINDEXABLE, dtype=np.int64)
        valid = table.pixel_count > 0
        if not np.any(valid):
            return keys

        counts = table.pixel_count[valid].astype(np.float64)
        averages = table.color_sum[valid].astype(np.float64) / counts[:, None]

        box = table.bounding_box[valid]
        x_center = (box[:, 0] + box[:, 1]) / 2.0
        y_center = (box[:, 2] + box[:, 3]) / 2.0

        values = np.column_stack([averages, x_center, y_center])
        widths = np.array(self.layout.widths, dtype=np.float64)
        dims = np.array(self.layout.dims, dtype=np.int64)

        buckets = np.floor(values / widths)
        buckets = np.clip(buckets, 0, dims - 1).astype(np.int64)

        combined = buckets[:, 0]
        for axis in range(1, len(dims)):
            combined = combined * dims[axis] + buckets[:, axis]

        keys[valid] = combined
        return keys
