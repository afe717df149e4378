"""Tests for collision voting and best-match retrieval."""

import numpy as np
import pytest

from superpixel_search.aggregation import RegionRecord, aggregate_regions
from superpixel_search.errors import ShapeMismatch
from superpixel_search.index import SuperpixelIndex
from superpixel_search.index_builder import build_index
from superpixel_search.retrieval import (
    Match, best_match, rank_matches, retrieve, tally_votes,
)


def uniform_colors(labels, palette):
    return np.asarray(palette, dtype=np.uint8)[labels]


def corner_image(image_id, color, corner):
    """8x8 single-color image with a 2x2 region in one corner."""
    labels = np.ones((8, 8), dtype=np.int32)
    if corner == "top-left":
        labels[:2, :2] = 0
    else:
        labels[-2:, -2:] = 0
    colors = uniform_colors(labels, [color, color])
    return image_id, labels, colors, 2, np.array([4, 60])


def record(region_id, color, box=(0, 0, 0, 0), shape=(10, 10)):
    return RegionRecord(region_id, tuple(color), 1, box, shape)


class TestScenarios:
    """End-to-end indexing and retrieval scenarios."""

    def test_identical_query_matches_source(self, two_region_image,
                                            two_region_labels,
                                            two_region_colors):
        other_labels = np.zeros((4, 4), dtype=np.int32)
        other = ("other", other_labels,
                 uniform_colors(other_labels, [(90, 160, 40)]), 1, None)
        index = build_index([other, two_region_image])

        table = aggregate_regions(two_region_labels, two_region_colors, 2)
        tally = tally_votes(index, table)
        match = best_match(index, table)

        assert match.image_id == "two-region"
        assert match.votes == 2
        assert match.votes > tally.get("other", 0)
        assert match.share == 100.0

    def test_dissimilar_query_has_no_match(self):
        index = build_index([
            corner_image("dark", (5, 5, 5), "top-left"),
            corner_image("bright", (250, 250, 250), "bottom-right"),
        ])
        labels = np.zeros((8, 8), dtype=np.int32)
        colors = uniform_colors(labels, [(128, 128, 128)])

        assert retrieve(index, labels, colors, 1) is None
        table = aggregate_regions(labels, colors, 1)
        assert tally_votes(index, table) == {}
        assert best_match(index, table) is None

    def test_duplicate_insert_keeps_winner(self, two_region_image,
                                           two_region_labels,
                                           two_region_colors):
        _, labels, colors, count, pixels = two_region_image
        index = build_index([
            ("twice", labels, colors, count, pixels),
            ("once", labels, colors, count, pixels),
            ("twice", labels, colors, count, pixels),
        ])
        table = aggregate_regions(two_region_labels, two_region_colors, 2)
        matches = rank_matches(index, table)

        assert [m.image_id for m in matches] == ["twice", "once"]
        assert matches[0].votes == 4
        assert matches[1].votes == 2


class TestTallyVotes:
    """Tests for per-image vote counting."""

    def test_one_vote_per_colliding_record(self):
        index = SuperpixelIndex()
        index.insert_image("img", [record(r, (40, 40, 40)) for r in range(5)])
        tally = tally_votes(index, [record(0, (40, 40, 40))])
        assert tally == {"img": 5}

    def test_votes_accumulate_over_query_regions(self):
        index = SuperpixelIndex()
        index.insert_image("img", [record(0, (40, 40, 40))])
        query = [record(0, (40, 40, 40)), record(1, (41, 41, 41))]
        assert tally_votes(index, query) == {"img": 2}

    def test_empty_query_regions_skipped(self, two_region_image,
                                         two_region_labels, two_region_colors):
        index = build_index([two_region_image])
        table = aggregate_regions(two_region_labels, two_region_colors, 5)
        assert tally_votes(index, table) == {"two-region": 2}

    def test_table_and_records_agree(self, random_segmentation):
        labels, colors, region_count = random_segmentation
        index = build_index([("random", labels, colors, region_count, None)])
        table = aggregate_regions(labels, colors, region_count)
        assert tally_votes(index, table) == tally_votes(index, table.records())

    def test_query_does_not_modify_index(self, two_region_image,
                                         two_region_labels, two_region_colors):
        index = build_index([two_region_image])
        table = aggregate_regions(two_region_labels, two_region_colors, 2)
        tally_votes(index, table)
        assert len(index) == 2
        assert index.image_ids == ["two-region"]


class TestTieBreak:
    """Tests for deterministic tie-breaking."""

    @pytest.mark.parametrize("order", [["b", "a"], ["a", "b"], ["z", "m", "a"]])
    def test_first_inserted_wins_tie(self, order, two_region_labels,
                                     two_region_colors):
        table = aggregate_regions(two_region_labels, two_region_colors, 2)
        index = SuperpixelIndex()
        for image_id in order:
            index.insert_image(image_id, table)

        match = best_match(index, table)
        assert match.image_id == order[0]
        assert [m.image_id for m in rank_matches(index, table)] == order

    def test_repeated_queries_same_answer(self, two_region_labels,
                                          two_region_colors):
        table = aggregate_regions(two_region_labels, two_region_colors, 2)
        index = SuperpixelIndex()
        for image_id in (3, 1, 2):
            index.insert_image(image_id, table)
        answers = {best_match(index, table).image_id for _ in range(5)}
        assert answers == {3}


class TestRetrieve:
    """Tests for the grid-level retrieve() entry point."""

    def test_returns_image_id(self, two_region_image, two_region_labels,
                              two_region_colors):
        index = build_index([two_region_image])
        result = retrieve(index, two_region_labels, two_region_colors, 2,
                          np.array([8, 8]))
        assert result == "two-region"

    def test_malformed_query_raises(self, two_region_image, two_region_labels):
        index = build_index([two_region_image])
        with pytest.raises(ShapeMismatch):
            retrieve(index, two_region_labels,
                     np.zeros((3, 4, 3), dtype=np.uint8), 2)

    def test_top_k_limits_matches(self, two_region_labels, two_region_colors):
        table = aggregate_regions(two_region_labels, two_region_colors, 2)
        index = SuperpixelIndex()
        for image_id in range(4):
            index.insert_image(image_id, table)
        matches = rank_matches(index, table, top_k=2)
        assert matches == [Match(0, 2, 25.0), Match(1, 2, 25.0)]
