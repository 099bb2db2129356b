"""
Scoring primitives: feature codec, similarity, discovery and fit scores.
"""

from .feature_codec import (
    average_feature_vector,
    decode_feature_vector,
    encode_features,
    encode_track,
    resolved_audio_features,
)
from .similarity import (
    DEFAULT_FEATURE_WEIGHTS,
    cosine_similarity,
    explain_similarity,
    top_matching_features,
    weighted_similarity,
)
from .discovery_scorer import DiscoveryScorer, discovery_score
from .mood_fit import energy_fit_score, mood_fit_score, pattern_similarity
from .transition_scorer import audio_distance, audio_similarity, key_compatibility, transition_score

__all__ = [
    "average_feature_vector",
    "decode_feature_vector",
    "encode_features",
    "encode_track",
    "resolved_audio_features",
    "DEFAULT_FEATURE_WEIGHTS",
    "cosine_similarity",
    "explain_similarity",
    "top_matching_features",
    "weighted_similarity",
    "DiscoveryScorer",
    "discovery_score",
    "energy_fit_score",
    "mood_fit_score",
    "pattern_similarity",
    "audio_distance",
    "audio_similarity",
    "key_compatibility",
    "transition_score",
]
