"""
Hidden-Gems Strategy

Surfaces the most undiscovered tracks in the pool regardless of taste.
"""

from typing import List, Sequence

from ..models.learning_models import ListeningContext
from ..models.recommendation_models import Recommendation
from ..models.track_models import FeatureVector, Track
from ..scoring.similarity import weighted_similarity
from .base_strategy import PoolScoringStrategy, StrategyConstraints

MIN_GEM_DISCOVERY_SCORE = 60


class HiddenGemsStrategy(PoolScoringStrategy):
    """
    Keep tracks below the popularity ceiling with discovery score > 60.

    Score = discovery + (60 - popularity). Tracks without a popularity value
    cannot be vetted and are left out.
    """

    name = "hidden-gems"

    def rank(
        self,
        pool: Sequence[Track],
        context: ListeningContext,
        preference: FeatureVector,
        constraints: StrategyConstraints
    ) -> List[Recommendation]:
        recommendations = []

        for track, features in self._encoded(pool):
            if track.popularity is None or track.popularity >= constraints.hidden_gems_ceiling:
                continue

            discovery = self.discovery_scorer.calculate_discovery_score(track)
            if discovery <= MIN_GEM_DISCOVERY_SCORE:
                continue

            recommendations.append(Recommendation(
                track=track,
                composite_score=discovery + (60 - track.popularity),
                discovery_score=discovery,
                similarity=weighted_similarity(features, preference),
                strategy=self.name,
                explanation=f"Highly undiscovered (discovery score: {round(discovery)})",
                features=features,
            ))

        return self._rank(recommendations, constraints.limit)
