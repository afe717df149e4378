"""
Collision voting against a SuperpixelIndex.

Every region of the query image is hashed with the index's quantizer and
its bucket is looked up. Each record found in the bucket casts one vote
for the image it came from — a single query region that collides with
five records of the same image gives that image five votes. The image
with the most votes is the best match; when nothing collides there is no
match.
"""

import logging
from collections import Counter
from typing import Hashable, Iterable, List, NamedTuple, Optional, Union

import numpy as np

from .aggregation import RegionRecord, RegionTable, aggregate_regions
from .index import SuperpixelIndex
from .quantizer import UNINDEXABLE
from .scoring import rank_candidates, vote_share

logger = logging.getLogger(__name__)


class Match(NamedTuple):
    """A candidate image with its vote count and share of all votes."""

    image_id: Hashable
    votes: int
    share: float


def _query_keys(index: SuperpixelIndex,
                regions: Union[RegionTable, Iterable[RegionRecord]]) -> List[int]:
    quantizer = index.quantizer
    if isinstance(regions, RegionTable):
        return [int(k) for k in quantizer.compute_keys(regions)]
    return [quantizer.compute_key(r) for r in regions]


def tally_votes(index: SuperpixelIndex,
                regions: Union[RegionTable, Iterable[RegionRecord]]) -> Counter:
    """
    Count bucket collisions per indexed image.

    Args:
        index: Index to query.
        regions: Query RegionTable or query region records. Query records
            are never inserted into the index.

    Returns:
        Counter mapping image id to votes. Empty when nothing collided.
    """
    tally = Counter()
    for key in _query_keys(index, regions):
        if key == UNINDEXABLE:
            continue
        for record in index.lookup(key):
            tally[record.source_image_id] += 1
    return tally


def rank_matches(index: SuperpixelIndex,
                 regions: Union[RegionTable, Iterable[RegionRecord]],
                 top_k: Optional[int] = None) -> List[Match]:
    """
    All candidate images ranked by votes.

    Ties are broken by the order in which images were first inserted
    into the index (earliest wins).
    """
    tally = tally_votes(index, regions)
    total = sum(tally.values())
    ranked = rank_candidates(tally, index.image_rank)
    if top_k is not None:
        ranked = ranked[:top_k]
    return [Match(image_id, votes, vote_share(votes, total))
            for image_id, votes in ranked]


def best_match(index: SuperpixelIndex,
               regions: Union[RegionTable, Iterable[RegionRecord]]) -> Optional[Match]:
    """Top-ranked candidate, or None when no query region collided."""
    matches = rank_matches(index, regions, top_k=1)
    if not matches:
        return None
    return matches[0]


def retrieve(index: SuperpixelIndex,
             labels: np.ndarray,
             colors: np.ndarray,
             region_count: int,
             pixel_counts: Optional[np.ndarray] = None) -> Optional[Hashable]:
    """
    Find the indexed image most similar to a segmented query image.

    Args:
        index: Index built from the candidate images.
        labels: (rows, cols) query label grid.
        colors: (rows, cols, 3) query color grid.
        region_count: Number of query region ids.
        pixel_counts: Optional per-region pixel counts from the segmenter.

    Returns:
        Id of the image with the most votes, or None for no match.

    Raises:
        SuperpixelSearchError: The query grids are malformed.
    """
    table = aggregate_regions(labels, colors, region_count, pixel_counts)
    match = best_match(index, table)
    if match is None:
        logger.info("No indexed image shares a bucket with the query")
        return None
    logger.info(
        f"Best match {match.image_id!r}: {match.votes} votes "
        f"({match.share:.1f}%)"
    )
    return match.image_id
