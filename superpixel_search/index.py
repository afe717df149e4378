"""
Bucket-keyed index of region records from many images.

Maps each bucket key to the records of every indexed region that hashed
to it. The index is append-only: images are inserted, never removed.

Insertion and lookup are safe to call from different threads. All
records of one image are appended under a single lock acquisition, and
lookups return a snapshot of the bucket, so a reader sees a bucket either
before or after an image's insertion, never halfway.
"""

import logging
import threading
from collections import defaultdict
from typing import Dict, Hashable, Iterable, List, Tuple, Union

from .aggregation import RegionRecord, RegionTable
from .errors import LayoutMismatch
from .quantizer import KeyQuantizer, UNINDEXABLE

logger = logging.getLogger(__name__)


class SuperpixelIndex:
    """Append-only mapping from bucket key to region records."""

    def __init__(self, quantizer: KeyQuantizer = None):
        self.quantizer = quantizer or KeyQuantizer()
        self._buckets: Dict[int, List[RegionRecord]] = {}
        self._image_order: Dict[Hashable, int] = {}
        self._record_count = 0
        self._lock = threading.Lock()

    @property
    def layout(self):
        return self.quantizer.layout

    def check_quantizer(self, quantizer: KeyQuantizer) -> None:
        """Raise LayoutMismatch if quantizer hashes differently from this index."""
        if quantizer.layout.signature != self.layout.signature:
            raise LayoutMismatch(
                f"Quantizer layout {quantizer.layout.signature} doesn't match "
                f"index layout {self.layout.signature}"
            )

    def _keyed_records(self, regions) -> List[Tuple[int, RegionRecord]]:
        if isinstance(regions, RegionTable):
            keys = self.quantizer.compute_keys(regions)
            return [(int(keys[r.region_id]), r) for r in regions.records()]
        return [(self.quantizer.compute_key(r), r) for r in regions]

    def insert_image(self,
                     image_id: Hashable,
                     regions: Union[RegionTable, Iterable[RegionRecord]]) -> int:
        """
        Insert every indexable region of one image.

        Records are tagged with image_id before insertion. Regions without
        pixels are skipped. Inserting the same image_id again appends its
        records a second time; the image then collects double votes.

        Args:
            image_id: Opaque, hashable identifier of the source image.
            regions: RegionTable from aggregation, or region records.

        Returns:
            Number of records inserted.
        """
        if image_id is None:
            raise ValueError("image_id must not be None")

        grouped = defaultdict(list)
        inserted = 0
        for key, record in self._keyed_records(regions):
            if key == UNINDEXABLE:
                continue
            grouped[key].append(record.tagged(image_id))
            inserted += 1

        with self._lock:
            if image_id in self._image_order:
                logger.warning(
                    f"Image {image_id!r} inserted again; its records are duplicated"
                )
            else:
                self._image_order[image_id] = len(self._image_order)
            for key, records in grouped.items():
                self._buckets.setdefault(key, []).extend(records)
            self._record_count += inserted

        logger.debug(
            f"Indexed image {image_id!r}: {inserted} records in "
            f"{len(grouped)} buckets"
        )
        return inserted

    def lookup(self, key: int) -> Tuple[RegionRecord, ...]:
        """Records stored under key; empty if the bucket doesn't exist."""
        with self._lock:
            bucket = self._buckets.get(key)
            return tuple(bucket) if bucket else ()

    def image_rank(self, image_id: Hashable) -> int:
        """Position of image_id in first-insertion order."""
        return self._image_order[image_id]

    @property
    def image_ids(self) -> List[Hashable]:
        """Indexed image ids in first-insertion order."""
        with self._lock:
            return list(self._image_order)

    @property
    def bucket_count(self) -> int:
        with self._lock:
            return len(self._buckets)

    def __contains__(self, image_id) -> bool:
        return image_id in self._image_order

    def __len__(self) -> int:
        return self._record_count
