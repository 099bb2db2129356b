"""
Feature Codec for BeatBandit

Turns a track's raw audio attributes into the fixed 10-component
FeatureVector used by every similarity computation, and back again.

Missing or non-numeric attributes never raise: unit-interval attributes
default to 0.5, tempo/loudness/key to the neutral 0.5 after normalization.
"""

from typing import Iterable, Optional

import structlog

from ..models.track_models import (
    FEATURE_DIMENSIONS,
    FEATURE_NAMES,
    NEUTRAL_FEATURE_VALUE,
    AudioFeatures,
    FeatureVector,
    Track,
    coerce_feature_value,
    coerce_pitch_class,
)

logger = structlog.get_logger(__name__)

MAX_TEMPO_BPM = 250.0
LOUDNESS_FLOOR_DB = -60.0
KEY_SPAN = 11.0

UNIT_FEATURES = FEATURE_NAMES[:7]


def _normalize_tempo(tempo: Optional[float]) -> float:
    tempo = coerce_feature_value(tempo)
    if tempo is None:
        return NEUTRAL_FEATURE_VALUE
    return min(tempo / MAX_TEMPO_BPM, 1.0)


def _normalize_loudness(loudness: Optional[float]) -> float:
    loudness = coerce_feature_value(loudness)
    if loudness is None:
        return NEUTRAL_FEATURE_VALUE
    return (loudness - LOUDNESS_FLOOR_DB) / -LOUDNESS_FLOOR_DB


def _normalize_key(key: Optional[int]) -> float:
    key = coerce_pitch_class(key)
    # The catalog reports -1 when no key was detected
    if key is None or key < 0:
        return NEUTRAL_FEATURE_VALUE
    return key / KEY_SPAN


def encode_features(features: Optional[AudioFeatures]) -> FeatureVector:
    """
    Encode raw audio attributes into a FeatureVector.

    Args:
        features: Raw attributes, or None when the catalog had none

    Returns:
        Well-formed vector (clamped to [0, 1], neutral where missing)
    """
    if features is None:
        return FeatureVector.neutral()

    values = []
    for name in UNIT_FEATURES:
        value = coerce_feature_value(getattr(features, name))
        values.append(NEUTRAL_FEATURE_VALUE if value is None else value)
    values.append(_normalize_tempo(features.tempo))
    values.append(_normalize_loudness(features.loudness))
    values.append(_normalize_key(features.key))

    return FeatureVector(tuple(values))


def encode_track(track: Track) -> FeatureVector:
    """Encode a track's audio attributes."""
    return encode_features(track.audio_features)


def decode_feature_vector(vector: FeatureVector, mode: Optional[int] = None) -> AudioFeatures:
    """
    Map a FeatureVector back to raw units.

    Tempo comes back in BPM, loudness in dB. A key component of exactly 0.5
    is the "undefined" marker and decodes to None.
    """
    raw = vector.to_dict()
    key_value = raw["key"]
    key = None if key_value == NEUTRAL_FEATURE_VALUE else int(round(key_value * KEY_SPAN))

    return AudioFeatures(
        energy=raw["energy"],
        valence=raw["valence"],
        danceability=raw["danceability"],
        acousticness=raw["acousticness"],
        instrumentalness=raw["instrumentalness"],
        liveness=raw["liveness"],
        speechiness=raw["speechiness"],
        tempo=raw["tempo"] * MAX_TEMPO_BPM,
        loudness=raw["loudness"] * -LOUDNESS_FLOOR_DB + LOUDNESS_FLOOR_DB,
        key=key,
        mode=mode,
    )


def resolved_audio_features(track: Track) -> AudioFeatures:
    """
    Raw-unit attributes with every missing value filled in.

    Catalog values are kept as-is; gaps get the decoded neutral default so
    BPM/dB based scorers (mood fit, transitions) never see None.
    """
    raw = track.audio_features
    neutral = decode_feature_vector(encode_track(track))
    if raw is None:
        return neutral

    filled = {}
    for name in FEATURE_NAMES:
        value = coerce_feature_value(getattr(raw, name))
        filled[name] = value if value is not None else getattr(neutral, name)
    filled["key"] = coerce_pitch_class(filled["key"])
    if filled["key"] is not None and filled["key"] < 0:
        filled["key"] = None
    return AudioFeatures(mode=coerce_pitch_class(raw.mode), **filled)


def average_feature_vector(vectors: Iterable[FeatureVector]) -> FeatureVector:
    """Component-wise mean of the given vectors; neutral when there are none."""
    sums = [0.0] * FEATURE_DIMENSIONS
    count = 0
    for vector in vectors:
        for i, value in enumerate(vector):
            sums[i] += value
        count += 1

    if count == 0:
        return FeatureVector.neutral()

    return FeatureVector(tuple(total / count for total in sums))
