"""
Similarity scoring between feature vectors.

Weighted Euclidean similarity is the workhorse for every taste-matching
strategy; cosine similarity is available for callers that want an
angle-only comparison.
"""

import math
from typing import Dict, List, Mapping, Optional, Sequence

from ..models.track_models import FEATURE_NAMES, FeatureVector

# Emphasizes energy and valence over key; sums to 1.0
DEFAULT_FEATURE_WEIGHTS: Dict[str, float] = {
    "energy": 0.20,
    "valence": 0.15,
    "danceability": 0.15,
    "acousticness": 0.12,
    "instrumentalness": 0.10,
    "liveness": 0.08,
    "speechiness": 0.05,
    "tempo": 0.08,
    "loudness": 0.05,
    "key": 0.02,
}

# Listener-facing names used in explanations
FEATURE_LABELS: Dict[str, str] = {
    "energy": "energy",
    "valence": "mood",
    "danceability": "danceability",
    "acousticness": "acousticness",
    "instrumentalness": "instrumentalness",
    "liveness": "liveness",
    "speechiness": "speechiness",
    "tempo": "tempo",
    "loudness": "loudness",
    "key": "key",
}


def weighted_similarity(
    first: FeatureVector,
    second: FeatureVector,
    weights: Optional[Mapping[str, float]] = None
) -> float:
    """
    Similarity in (0, 1] from weighted squared Euclidean distance.

    Args:
        first: Feature vector
        second: Feature vector
        weights: Per-feature weights, DEFAULT_FEATURE_WEIGHTS when omitted

    Returns:
        1 / (1 + sqrt(distance)); exactly 1.0 for identical vectors
    """
    weights = weights or DEFAULT_FEATURE_WEIGHTS

    distance = 0.0
    for name, a, b in zip(FEATURE_NAMES, first, second):
        diff = a - b
        distance += weights.get(name, 0.0) * diff * diff

    return 1.0 / (1.0 + math.sqrt(distance))


def cosine_similarity(first: Sequence[float], second: Sequence[float]) -> float:
    """Dot product over norms; 0.0 on dimension mismatch or a zero vector."""
    if len(first) != len(second):
        return 0.0

    dot = norm_first = norm_second = 0.0
    for a, b in zip(first, second):
        dot += a * b
        norm_first += a * a
        norm_second += b * b

    magnitude = math.sqrt(norm_first) * math.sqrt(norm_second)
    if magnitude == 0:
        return 0.0
    return dot / magnitude


def top_matching_features(
    features: FeatureVector,
    target: FeatureVector,
    count: int = 3
) -> List[str]:
    """Labels of the features where the two vectors agree most closely."""
    matches = [
        (FEATURE_LABELS[name], 1.0 - abs(a - b))
        for name, a, b in zip(FEATURE_NAMES, features, target)
    ]
    matches.sort(key=lambda item: item[1], reverse=True)
    return [label for label, _ in matches[:count]]


def explain_similarity(features: FeatureVector, target: FeatureVector, similarity: float) -> str:
    """Human-readable reason for a taste match."""
    top = top_matching_features(features, target)
    return f"Matches your taste in {', '.join(top)} ({round(similarity * 100)}% similar)"
