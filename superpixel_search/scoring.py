"""
Vote-based ranking of candidate images.

A candidate's score is the number of indexed records that collided with
the query's regions. Rankings are fully deterministic: equal vote counts
are ordered by when the candidate image was first inserted into the index,
earliest first.
"""

import logging
from typing import Callable, Dict, Hashable, List, Tuple

logger = logging.getLogger(__name__)


def vote_share(votes: int, total_votes: int) -> float:
    """
    Percentage of all cast votes that went to one candidate.

    Args:
        votes: Votes received by the candidate.
        total_votes: Votes cast across all candidates.

    Returns:
        Share in [0, 100]; 0.0 when no votes were cast.
    """
    if total_votes <= 0:
        return 0.0
    return 100.0 * min(max(votes, 0), total_votes) / total_votes


def rank_candidates(tally: Dict[Hashable, int],
                    order: Callable[[Hashable], int]) -> List[Tuple[Hashable, int]]:
    """
    Sort candidates by votes (primary) and insertion order (tiebreaker).

    Args:
        tally: Mapping of image id to vote count.
        order: Returns the first-insertion position of an image id.

    Returns:
        List of (image_id, votes), most votes first. Candidates with no
        votes are dropped.
    """
    ranked = sorted(
        ((image_id, votes) for image_id, votes in tally.items() if votes > 0),
        key=lambda item: (-item[1], order(item[0]))
    )
    return ranked
