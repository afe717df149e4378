"""
superpixel_search — Superpixel hashing for approximate image retrieval.

Segments images into superpixels, hashes each superpixel's average color
and position into a discretized bucket key, and retrieves the indexed
image whose superpixels collide most often with a query's.

Modules:
    aggregation    Single-pass per-region statistics
    quantizer      Region statistics to bucket keys
    index          Bucket-keyed multi-image index
    retrieval      Collision voting and best match
    scoring        Deterministic vote ranking
    index_builder  Batch index construction
    segmentation   Superpixel segmenter adapters
    preprocessing  Image normalization and CIELAB conversion
    engine         End-to-end SearchEngine
    errors         Input error types
"""

from .aggregation import RegionAccumulator, RegionRecord, RegionTable, aggregate_regions
from .index import SuperpixelIndex
from .index_builder import build_index
from .quantizer import UNINDEXABLE, BucketLayout, KeyQuantizer
from .retrieval import Match, best_match, rank_matches, retrieve, tally_votes

__version__ = "1.0.0"

__all__ = [
    "BucketLayout",
    "KeyQuantizer",
    "Match",
    "RegionAccumulator",
    "RegionRecord",
    "RegionTable",
    "SuperpixelIndex",
    "UNINDEXABLE",
    "aggregate_regions",
    "best_match",
    "build_index",
    "rank_matches",
    "retrieve",
    "tally_votes",
]
