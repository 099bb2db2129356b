"""
Contextual Strategy

Time- and mood-aware scoring: how well a track fits the inferred mood, the
energy expected at this time of day, and what the listener played in past
sessions with a similar context.
"""

from typing import Callable, List, Optional, Sequence

from ..models.learning_models import ContextualPatterns, ListeningContext
from ..models.recommendation_models import Recommendation
from ..models.track_models import FeatureVector, Track
from ..scoring.discovery_scorer import DiscoveryScorer
from ..scoring.feature_codec import resolved_audio_features
from ..scoring.mood_fit import GENRE_MATCH_BONUS, energy_fit_score, mood_fit_score, pattern_similarity
from ..scoring.similarity import weighted_similarity
from .base_strategy import PoolScoringStrategy, StrategyConstraints

PatternsProvider = Callable[[ListeningContext], ContextualPatterns]


class ContextualStrategy(PoolScoringStrategy):
    """
    Score = mood fit + session-pattern similarity + genre bonus + energy fit.

    Patterns come from an injected provider (normally the session manager);
    without one only the mood and time-of-day terms apply.
    """

    name = "contextual"

    def __init__(
        self,
        patterns_provider: Optional[PatternsProvider] = None,
        discovery_scorer: Optional[DiscoveryScorer] = None
    ):
        super().__init__(discovery_scorer)
        self.patterns_provider = patterns_provider

    def _patterns(self, context: ListeningContext) -> ContextualPatterns:
        if self.patterns_provider is None:
            return ContextualPatterns()
        return self.patterns_provider(context)

    def rank(
        self,
        pool: Sequence[Track],
        context: ListeningContext,
        preference: FeatureVector,
        constraints: StrategyConstraints
    ) -> List[Recommendation]:
        patterns = self._patterns(context)
        preferred_genres = set(patterns.preferred_genres)
        recommendations = []

        for track, features in self._encoded(pool):
            raw = resolved_audio_features(track)

            score = mood_fit_score(raw, context.suggested_mood)
            score += pattern_similarity(raw, patterns.preferred_features)
            if preferred_genres and preferred_genres.intersection(track.artist_genres):
                score += GENRE_MATCH_BONUS
            score += energy_fit_score(raw.energy, context.time_of_day)

            recommendations.append(Recommendation(
                track=track,
                composite_score=score,
                discovery_score=self.discovery_scorer.calculate_discovery_score(track),
                similarity=weighted_similarity(features, preference),
                strategy=self.name,
                explanation=(
                    f"Fits your {context.suggested_mood.value} "
                    f"{context.time_of_day.value} listening"
                ),
                features=features,
            ))

        return self._rank(recommendations, constraints.limit)
