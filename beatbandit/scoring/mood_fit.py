"""
Contextual fit scoring.

Scores raw-unit audio attributes (tempo in BPM, loudness in dB) against a
mood, a time-of-day bucket and the feature profile of past sessions.
Callers pass attributes from ``resolved_audio_features`` so no value is None.
"""

from typing import Mapping, Optional

from ..models.learning_models import Mood, TimeOfDay
from ..models.track_models import AudioFeatures

# Weights for matching a track against session feature averages
PATTERN_WEIGHTS = {
    "energy": 20,
    "valence": 20,
    "danceability": 15,
    "acousticness": 10,
    "instrumentalness": 10,
}

GENRE_MATCH_BONUS = 15.0


def mood_fit_score(features: AudioFeatures, mood: Mood) -> float:
    """
    How well a track fits a mood.

    Args:
        features: Resolved raw attributes
        mood: Target mood (anything unknown scores as chill)

    Returns:
        Unbounded non-negative-ish score, roughly 0 to 50
    """
    if mood == Mood.ENERGETIC:
        return (
            features.energy * 20
            + (15 if features.tempo > 120 else 0)
            + features.danceability * 10
        )
    if mood == Mood.FOCUS:
        return (
            features.instrumentalness * 25
            + (1 - features.speechiness) * 15
            + features.acousticness * 10
            - (10 if features.loudness > -5 else 0)  # prefer quieter
        )
    if mood == Mood.RELAXED:
        return features.valence * 15 + (1 - features.energy) * 20 + features.acousticness * 15
    if mood == Mood.PARTY:
        return features.danceability * 25 + features.energy * 20 + features.valence * 10
    return features.valence * 10 + (1 - features.energy) * 15 + features.acousticness * 10


def energy_fit_score(energy: float, time_of_day: TimeOfDay) -> float:
    """Bonus for energy levels suited to the time of day (15 fit, 5 otherwise)."""
    if time_of_day == TimeOfDay.MORNING:
        fits = energy > 0.6
    elif time_of_day == TimeOfDay.AFTERNOON:
        fits = abs(energy - 0.5) < 0.2
    elif time_of_day == TimeOfDay.EVENING:
        fits = energy < 0.6
    elif time_of_day == TimeOfDay.NIGHT:
        fits = energy < 0.5
    else:
        return 10.0
    return 15.0 if fits else 5.0


def pattern_similarity(
    features: AudioFeatures,
    preferred: Optional[Mapping[str, float]]
) -> float:
    """Closeness to the average features of similar past sessions (0 to 75)."""
    if not preferred:
        return 0.0

    score = 0.0
    for name, weight in PATTERN_WEIGHTS.items():
        target = preferred.get(name)
        if target is None:
            continue
        score += (1 - abs(getattr(features, name) - target)) * weight
    return score
