"""
Queue Smoother

Orders playback queues so consecutive tracks flow into each other, and
finds the tracks that sound closest to a seed.
"""

from typing import List, Sequence, Tuple

import structlog

from ..models.track_models import Track
from ..scoring.feature_codec import resolved_audio_features
from ..scoring.transition_scorer import audio_similarity, transition_score

logger = structlog.get_logger(__name__)


def smooth_queue(seed: Track, tracks: Sequence[Track]) -> List[Track]:
    """
    Greedy nearest-neighbour ordering starting from ``seed``.

    Each step appends the unplaced track with the best transition score from
    the last placed one; ties go to the earlier candidate. The seed itself
    is not part of the output. Quadratic in queue length.

    Args:
        seed: Track currently playing
        tracks: Tracks to order

    Returns:
        The same tracks in playback order
    """
    remaining = [(track, resolved_audio_features(track)) for track in tracks]
    current = resolved_audio_features(seed)
    ordered = []

    while remaining:
        best_index, best_score = 0, float("-inf")
        for index, (_, features) in enumerate(remaining):
            score = transition_score(current, features)
            if score > best_score:
                best_index, best_score = index, score

        track, current = remaining.pop(best_index)
        ordered.append(track)

    return ordered


def find_similar_tracks(
    seed: Track,
    pool: Sequence[Track],
    limit: int = 20
) -> List[Tuple[Track, float]]:
    """
    Tracks that sound closest to ``seed`` by weighted audio distance.

    Only tracks with catalog audio features are compared; the seed itself
    is skipped.

    Returns:
        (track, similarity) pairs, most similar first
    """
    if seed.audio_features is None:
        logger.debug("Seed has no audio features, no similar tracks", seed_id=seed.id)
        return []

    scored = [
        (track, audio_similarity(seed.audio_features, track.audio_features))
        for track in pool
        if track.id != seed.id and track.audio_features is not None
    ]
    scored.sort(key=lambda item: item[1], reverse=True)
    return scored[:limit]
