"""
Batch index construction from segmented images.

Takes already segmented images — label grid, color grid and per-region
pixel counts — aggregates their regions and inserts them into a
SuperpixelIndex.

Aggregation of different images is independent and can run on a thread
pool (workers > 1). Insertion always happens on the calling thread, in
input order, so the resulting index is identical for any worker count.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Hashable, Iterable, Optional, Tuple

import numpy as np

from .aggregation import RegionTable, aggregate_regions
from .errors import SuperpixelSearchError
from .index import SuperpixelIndex
from .quantizer import KeyQuantizer

logger = logging.getLogger(__name__)

# (image_id, labels, colors, region_count, pixel_counts)
SegmentedImage = Tuple[Hashable, np.ndarray, np.ndarray, int, Optional[np.ndarray]]


def _aggregate(entry: SegmentedImage) -> Tuple[Optional[RegionTable],
                                               Optional[SuperpixelSearchError]]:
    _, labels, colors, region_count, pixel_counts = entry
    try:
        return aggregate_regions(labels, colors, region_count, pixel_counts), None
    except SuperpixelSearchError as e:
        return None, e


def build_index(images: Iterable[SegmentedImage],
                quantizer: Optional[KeyQuantizer] = None,
                workers: int = 1,
                skip_invalid: bool = False,
                index: Optional[SuperpixelIndex] = None) -> SuperpixelIndex:
    """
    Build (or extend) a SuperpixelIndex from segmented images.

    Args:
        images: Iterable of (image_id, labels, colors, region_count,
                pixel_counts) tuples. pixel_counts may be None.
        quantizer: Quantizer for a new index. Ignored if index is given,
                   apart from a layout compatibility check.
        workers: Number of aggregation threads.
        skip_invalid: Log and skip malformed images instead of raising.
        index: Existing index to extend.

    Returns:
        The populated index.

    Raises:
        SuperpixelSearchError: A malformed image was found and
            skip_invalid is False. Images before it stay indexed; the
            malformed image contributes nothing.
    """
    if index is None:
        index = SuperpixelIndex(quantizer)
    elif quantizer is not None:
        index.check_quantizer(quantizer)

    entries = list(images)
    processed = 0
    records = 0
    errors = 0

    logger.info(f"Building index from {len(entries)} images ({workers} workers)")

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(_aggregate, entries))
    else:
        results = (_aggregate(entry) for entry in entries)

    for entry, (table, error) in zip(entries, results):
        image_id = entry[0]
        if error is not None:
            if not skip_invalid:
                raise error
            logger.warning(f"Skipping image {image_id!r}: {error}")
            errors += 1
            continue

        records += index.insert_image(image_id, table)
        processed += 1

        if processed % 500 == 0:
            logger.info(f"Processed {processed}/{len(entries)} images")

    logger.info(
        f"Index built: {processed} images, {records} records, "
        f"{index.bucket_count} buckets, {errors} errors"
    )
    return index
