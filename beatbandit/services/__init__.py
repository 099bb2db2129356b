"""
Engine services: persistence, learning, sessions, queues, mixes and the
orchestrator that ties them together.
"""

from .record_store import RecordStore
from .context_resolver import ContextResolver, resolve_context
from .bandit_orchestrator import ThompsonSamplingBandit
from .preference_learner import PreferenceLearner
from .feedback_service import FeedbackService
from .session_manager_service import SessionManagerService, context_similarity, extract_contextual_patterns
from .diversity import ensure_artist_diversity
from .queue_smoother import find_similar_tracks, smooth_queue
from .mix_generator import MixGenerator
from .recommendation_orchestrator import FEEDBACK_REWARDS, RecommendationOrchestrator
from .engine_factory import create_catalog_client, create_recommendation_orchestrator

__all__ = [
    "RecordStore",
    "ContextResolver",
    "resolve_context",
    "ThompsonSamplingBandit",
    "PreferenceLearner",
    "FeedbackService",
    "SessionManagerService",
    "context_similarity",
    "extract_contextual_patterns",
    "ensure_artist_diversity",
    "find_similar_tracks",
    "smooth_queue",
    "MixGenerator",
    "FEEDBACK_REWARDS",
    "RecommendationOrchestrator",
    "create_catalog_client",
    "create_recommendation_orchestrator",
]
