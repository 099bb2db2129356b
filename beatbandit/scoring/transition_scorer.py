"""
Transition scoring for playback queues.

Measures how smoothly one track flows into the next (energy, tempo,
valence, harmonic key, mode) and how close two tracks sound overall.
"""

import math
from typing import Optional

from ..models.track_models import AudioFeatures, coerce_feature_value

# Per-feature weights for audio distance between two tracks
DISTANCE_WEIGHTS = {
    "energy": 2.0,
    "valence": 2.0,
    "danceability": 1.5,
    "acousticness": 1.0,
    "instrumentalness": 1.0,
    "tempo": 0.5,
    "loudness": 0.3,
}


def key_compatibility(first: Optional[int], second: Optional[int]) -> float:
    """
    Harmonic compatibility of two pitch classes on the circle of fifths.

    Returns:
        1.0 same key, 0.8 a fourth/fifth apart, 0.6 a whole tone apart,
        0.5 for other close keys or an undetected key, otherwise 0.3
    """
    if first is None or second is None or first < 0 or second < 0:
        return 0.5
    if first == second:
        return 1.0

    interval = abs(first - second)
    distance = min(interval, 12 - interval)

    if distance == 5:
        return 0.8
    if distance == 2:
        return 0.6
    if distance <= 3:
        return 0.5
    return 0.3


def tempo_score(first_bpm: float, second_bpm: float) -> float:
    diff = abs(first_bpm - second_bpm)
    if diff < 20:
        return 25.0
    return (50 - diff) / 2


def transition_score(current: AudioFeatures, candidate: AudioFeatures) -> float:
    """
    Score the transition from ``current`` into ``candidate``.

    Energy proximity (30), tempo proximity (25), valence proximity (20),
    key compatibility (15) and mode match (10). Both arguments must be
    resolved attributes.
    """
    energy = (1 - abs(current.energy - candidate.energy)) * 30
    tempo = tempo_score(current.tempo, candidate.tempo)
    valence = (1 - abs(current.valence - candidate.valence)) * 20
    key = key_compatibility(current.key, candidate.key) * 15
    mode = 10.0 if current.mode == candidate.mode else 0.0
    return energy + tempo + valence + key + mode


def audio_distance(first: AudioFeatures, second: AudioFeatures) -> float:
    """Weighted Euclidean distance over raw attributes, scaled by 10."""
    distance = 0.0
    for name, weight in DISTANCE_WEIGHTS.items():
        a = coerce_feature_value(getattr(first, name))
        b = coerce_feature_value(getattr(second, name))
        if a is None or b is None:
            continue
        if name == "tempo":
            a, b = a / 200, b / 200
        elif name == "loudness":
            a, b = (a + 60) / 60, (b + 60) / 60
        diff = a - b
        distance += diff * diff * weight
    return math.sqrt(distance) * 10


def audio_similarity(first: AudioFeatures, second: AudioFeatures) -> float:
    return 100 - audio_distance(first, second)
