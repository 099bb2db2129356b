"""
Artist diversity filtering for recommendation lists.
"""

from collections import defaultdict
from typing import Dict, List, Sequence

from ..models.recommendation_models import Recommendation


def ensure_artist_diversity(
    recommendations: Sequence[Recommendation],
    max_per_artist: int = 2
) -> List[Recommendation]:
    """
    Keep at most ``max_per_artist`` recommendations per primary artist.

    Order is preserved, so the best-ranked tracks of each artist survive.
    Tracks without a primary artist id are never filtered.
    """
    counts: Dict[str, int] = defaultdict(int)
    diverse = []

    for rec in recommendations:
        artist_id = rec.track.primary_artist_id
        if artist_id is None:
            diverse.append(rec)
            continue
        if counts[artist_id] >= max_per_artist:
            continue
        counts[artist_id] += 1
        diverse.append(rec)

    return diverse
