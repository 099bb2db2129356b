"""
Exploratory Strategy

Ventures into adjacent audio space: the listener's preferred vector is
perturbed by uniform noise and tracks are matched against that target, with
a bonus for tracks that differ from habit.
"""

import random
from typing import List, Optional, Sequence

from ..models.learning_models import ListeningContext
from ..models.recommendation_models import Recommendation
from ..models.track_models import FeatureVector, Track
from ..scoring.discovery_scorer import DiscoveryScorer
from ..scoring.similarity import weighted_similarity
from .base_strategy import PoolScoringStrategy, StrategyConstraints

DIVERGENCE_THRESHOLD = 0.7
DIVERGENCE_BONUS = 20.0


class ExploratoryStrategy(PoolScoringStrategy):
    """Serendipity-driven matching with an injected random generator."""

    name = "exploratory"

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        discovery_scorer: Optional[DiscoveryScorer] = None
    ):
        super().__init__(discovery_scorer)
        self.rng = rng or random.Random()

    def exploration_target(self, preference: FeatureVector, serendipity_level: float) -> FeatureVector:
        """Preference plus uniform noise in [-serendipity, +serendipity], clamped per component."""
        return FeatureVector(tuple(
            min(1.0, max(0.0, value + (self.rng.random() - 0.5) * 2 * serendipity_level))
            for value in preference
        ))

    def rank(
        self,
        pool: Sequence[Track],
        context: ListeningContext,
        preference: FeatureVector,
        constraints: StrategyConstraints
    ) -> List[Recommendation]:
        target = self.exploration_target(preference, constraints.serendipity_level)
        recommendations = []

        for track, features in self._encoded(pool):
            if track.popularity is not None and track.popularity > constraints.max_popularity:
                continue

            similarity = weighted_similarity(features, target)
            habit_similarity = weighted_similarity(features, preference)
            bonus = DIVERGENCE_BONUS if habit_similarity < DIVERGENCE_THRESHOLD else 0.0
            discovery = self.discovery_scorer.calculate_discovery_score(track)

            recommendations.append(Recommendation(
                track=track,
                composite_score=similarity * 80 + discovery * 0.3 + bonus,
                discovery_score=discovery,
                similarity=similarity,
                strategy=self.name,
                explanation=f"Adventurous pick ({round(habit_similarity * 100)}% match to your style)",
                features=features,
            ))

        return self._rank(recommendations, constraints.limit)
