"""
BeatBandit data models.
"""

from .track_models import (
    FEATURE_NAMES,
    AudioFeatures,
    Artist,
    FeatureVector,
    Track,
    deduplicate_tracks,
)
from .learning_models import (
    BanditArm,
    ContextualPatterns,
    DayType,
    FeedbackKind,
    InteractionRecord,
    ListeningContext,
    Mood,
    PreferenceModel,
    Session,
    TimeOfDay,
)
from .recommendation_models import MixResult, QueueEntry, Recommendation, SelectionResult
from .config_models import EngineConfig, RecommendationOptions

__all__ = [
    "FEATURE_NAMES",
    "AudioFeatures",
    "Artist",
    "FeatureVector",
    "Track",
    "deduplicate_tracks",
    "BanditArm",
    "ContextualPatterns",
    "DayType",
    "FeedbackKind",
    "InteractionRecord",
    "ListeningContext",
    "Mood",
    "PreferenceModel",
    "Session",
    "TimeOfDay",
    "MixResult",
    "QueueEntry",
    "Recommendation",
    "SelectionResult",
    "EngineConfig",
    "RecommendationOptions",
]
