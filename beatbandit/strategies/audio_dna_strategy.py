"""
Audio-DNA Strategy

Genre-agnostic taste matching: tracks whose feature vectors sit close to the
listener's preferred vector, nudged toward less-discovered music.
"""

from typing import List, Sequence

from ..models.learning_models import ListeningContext
from ..models.recommendation_models import Recommendation
from ..models.track_models import FeatureVector, Track
from ..scoring.similarity import explain_similarity, weighted_similarity
from .base_strategy import PoolScoringStrategy, StrategyConstraints


class AudioDNAStrategy(PoolScoringStrategy):
    """
    Score = similarity x 100 + discovery x 0.3.

    Tracks above the popularity ceiling are skipped; tracks with unknown
    popularity are kept.
    """

    name = "audio-dna"

    def rank(
        self,
        pool: Sequence[Track],
        context: ListeningContext,
        preference: FeatureVector,
        constraints: StrategyConstraints
    ) -> List[Recommendation]:
        recommendations = []

        for track, features in self._encoded(pool):
            if track.popularity is not None and track.popularity > constraints.max_popularity:
                continue

            similarity = weighted_similarity(features, preference)
            discovery = self.discovery_scorer.calculate_discovery_score(track)

            recommendations.append(Recommendation(
                track=track,
                composite_score=similarity * 100 + discovery * 0.3,
                discovery_score=discovery,
                similarity=similarity,
                strategy=self.name,
                explanation=explain_similarity(features, preference, similarity),
                features=features,
            ))

        return self._rank(recommendations, constraints.limit)
