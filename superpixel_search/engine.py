"""
Superpixel image search engine.

Orchestrates the indexing and query pipelines:
    1. Segment the RGB image into superpixels
    2. Convert the image to 8-bit CIELAB
    3. Aggregate per-superpixel color sums, pixel counts and extents
    4. Hash each superpixel into a bucket key
    5. Insert (indexing) or vote over colliding buckets (querying)

The engine keeps the index in memory for the lifetime of the object.
"""

import os
import logging
from typing import Any, Dict, Hashable, List, Optional

import cv2
import numpy as np

from .aggregation import RegionTable, aggregate_regions
from .index import SuperpixelIndex
from .preprocessing import normalize_image, to_lab
from .quantizer import KeyQuantizer
from .retrieval import best_match, rank_matches
from .segmentation import Segmenter, SlicSegmenter

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = int(os.environ.get("SP_TOP_K", "5"))

IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.bmp', '.webp'}


class SearchEngine:
    """
    Content-based image search over superpixel bucket collisions.

    Images are added one at a time or from a directory, then query
    images are matched against everything added so far.
    """

    def __init__(self,
                 segmenter: Optional[Segmenter] = None,
                 quantizer: Optional[KeyQuantizer] = None):
        """
        Args:
            segmenter: Superpixel segmenter; defaults to SlicSegmenter().
            quantizer: Bucket quantizer; defaults to the standard layout.
        """
        self.segmenter = segmenter or SlicSegmenter()
        self.index = SuperpixelIndex(quantizer)
        # image id -> file path, for images added from disk
        self.sources: Dict[Hashable, str] = {}

    def describe(self, image_rgb: np.ndarray) -> RegionTable:
        """Segment an image and aggregate its superpixel statistics."""
        image_rgb = normalize_image(image_rgb)
        labels, region_count, pixel_counts = self.segmenter.segment(image_rgb)
        return aggregate_regions(labels, to_lab(image_rgb),
                                 region_count, pixel_counts)

    def add_image(self, image_id: Hashable, image_rgb: np.ndarray) -> int:
        """
        Index one RGB image.

        Returns:
            Number of superpixel records inserted.
        """
        table = self.describe(image_rgb)
        return self.index.insert_image(image_id, table)

    def add_directory(self, image_dir: str) -> dict:
        """
        Index every image file in a directory, using filenames as ids.

        Files that cannot be read or indexed are logged and counted, not
        raised.

        Returns:
            Dict with 'processed', 'records' and 'errors' counts.
        """
        filenames = sorted(
            f for f in os.listdir(image_dir)
            if os.path.splitext(f)[1].lower() in IMAGE_EXTENSIONS
        )

        processed = 0
        records = 0
        errors = 0

        logger.info(f"Indexing {len(filenames)} images in {image_dir}")

        for filename in filenames:
            filepath = os.path.join(image_dir, filename)
            try:
                image = cv2.imread(filepath)
                if image is None:
                    logger.warning(f"Could not read: {filename}")
                    errors += 1
                    continue

                image_rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
                records += self.add_image(filename, image_rgb)
                self.sources[filename] = filepath
                processed += 1
            except Exception as e:
                logger.warning(f"Failed to process {filename}: {e}")
                errors += 1

        logger.info(
            f"Indexed {processed} images ({records} records, {errors} errors)"
        )
        return {"processed": processed, "records": records, "errors": errors}

    def search(self,
               query_image: np.ndarray,
               top_k: int = DEFAULT_TOP_K) -> List[Dict[str, Any]]:
        """
        Rank indexed images by superpixel collisions with the query.

        Args:
            query_image: RGB query image.
            top_k: Maximum number of results.

        Returns:
            List of result dicts, best first, each containing image_id,
            votes, share (percent of all votes) and rank. Empty when no
            indexed image collides with the query.
        """
        table = self.describe(query_image)
        matches = rank_matches(self.index, table, top_k=top_k)

        results = [
            {
                "image_id": m.image_id,
                "votes": m.votes,
                "share": round(m.share, 2),
                "rank": rank,
            }
            for rank, m in enumerate(matches)
        ]

        logger.info(f"Search complete: {len(results)} candidates")
        return results

    def best_match(self, query_image: np.ndarray) -> Optional[Hashable]:
        """Id of the most similar indexed image, or None for no match."""
        match = best_match(self.index, self.describe(query_image))
        if match is None:
            logger.info("No matches found")
            return None
        return match.image_id
