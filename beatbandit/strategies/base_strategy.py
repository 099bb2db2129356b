"""
Base Strategy Class for Recommendation Strategies

Defines the common interface and shared functionality for all strategies.
Each strategy turns a candidate pool into a ranked list of Recommendations
and never mutates the pool it was given.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence

import structlog

from ..models.learning_models import ListeningContext
from ..models.recommendation_models import Recommendation
from ..models.track_models import FeatureVector, Track
from ..scoring.discovery_scorer import DiscoveryScorer
from ..scoring.feature_codec import encode_track

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StrategyConstraints:
    """Per-request limits shared by all strategies."""
    limit: int = 50
    max_popularity: int = 60
    hidden_gems_ceiling: int = 60
    serendipity_level: float = 0.3

    def with_limit(self, limit: int) -> "StrategyConstraints":
        return replace(self, limit=limit)


@dataclass
class StrategyOutcome:
    """Ranked recommendations plus whether an upstream fallback was used."""
    recommendations: List[Recommendation] = field(default_factory=list)
    fallback_triggered: bool = False


class BaseRecommendationStrategy(ABC):
    """
    Abstract base class for all recommendation strategies.

    Subclasses set ``name`` (the bandit arm identifier) and implement
    ``generate``.
    """

    name: str = ""

    def __init__(self, discovery_scorer: Optional[DiscoveryScorer] = None):
        """
        Initialize the strategy.

        Args:
            discovery_scorer: Shared discovery scorer (a fresh one if omitted)
        """
        self.discovery_scorer = discovery_scorer or DiscoveryScorer()
        self.logger = logger.bind(component=self.__class__.__name__, strategy=self.name)

    @abstractmethod
    async def generate(
        self,
        pool: Sequence[Track],
        context: ListeningContext,
        preference: FeatureVector,
        constraints: StrategyConstraints
    ) -> List[Recommendation]:
        """
        Rank tracks from the candidate pool.

        Args:
            pool: Candidate tracks (already filtered for playability)
            context: Current listening context
            preference: Preferred feature vector
            constraints: Limits for this request

        Returns:
            Recommendations sorted by descending composite score
        """
        pass

    async def run(
        self,
        pool: Sequence[Track],
        context: ListeningContext,
        preference: FeatureVector,
        constraints: StrategyConstraints
    ) -> StrategyOutcome:
        """Generate and wrap the result; strategies with a fallback path override this."""
        recommendations = await self.generate(pool, context, preference, constraints)
        return StrategyOutcome(recommendations=recommendations)

    def _rank(self, recommendations: List[Recommendation], limit: int) -> List[Recommendation]:
        """Sort by composite score (stable for ties) and cut to the limit."""
        ranked = sorted(recommendations, key=lambda rec: rec.composite_score, reverse=True)
        return ranked[:limit]


class PoolScoringStrategy(BaseRecommendationStrategy):
    """
    Strategy that scores the caller's pool without any I/O.

    Scoring is synchronous; ``generate`` only exists so every strategy can
    be awaited the same way.
    """

    @abstractmethod
    def rank(
        self,
        pool: Sequence[Track],
        context: ListeningContext,
        preference: FeatureVector,
        constraints: StrategyConstraints
    ) -> List[Recommendation]:
        pass

    async def generate(
        self,
        pool: Sequence[Track],
        context: ListeningContext,
        preference: FeatureVector,
        constraints: StrategyConstraints
    ) -> List[Recommendation]:
        recommendations = self.rank(pool, context, preference, constraints)
        self.logger.debug(
            "Strategy ranked pool",
            pool_size=len(pool),
            returned=len(recommendations)
        )
        return recommendations

    @staticmethod
    def _encoded(pool: Sequence[Track]) -> List[tuple]:
        return [(track, encode_track(track)) for track in pool]
