"""
Strategy Factory for Recommendation Strategies

Builds the five strategies once per engine and hands them out by arm name.
Declaration order is significant: it breaks score ties when blended results
are merged.
"""

import random
from typing import Dict, List, Optional

import structlog

from ..api.catalog_client import CatalogService
from ..scoring.discovery_scorer import DiscoveryScorer
from .audio_dna_strategy import AudioDNAStrategy
from .base_strategy import BaseRecommendationStrategy
from .catalog_seeded_strategy import CatalogSeededStrategy
from .contextual_strategy import ContextualStrategy, PatternsProvider
from .exploratory_strategy import ExploratoryStrategy
from .hidden_gems_strategy import HiddenGemsStrategy

logger = structlog.get_logger(__name__)

# Per-strategy limits when all strategies are blended
BLENDED_LIMITS: Dict[str, int] = {
    CatalogSeededStrategy.name: 15,
    AudioDNAStrategy.name: 15,
    ContextualStrategy.name: 10,
    HiddenGemsStrategy.name: 5,
    ExploratoryStrategy.name: 5,
}


class StrategyFactory:
    """
    Factory for creating and managing recommendation strategies.

    Strategy instances are reused across requests; they hold no per-request
    state.
    """

    def __init__(
        self,
        catalog: Optional[CatalogService] = None,
        rng: Optional[random.Random] = None,
        patterns_provider: Optional[PatternsProvider] = None,
        catalog_timeout_seconds: float = 10.0,
        discovery_scorer: Optional[DiscoveryScorer] = None
    ):
        """
        Initialize the strategy factory.

        Args:
            catalog: Catalog service for the catalog-seeded strategy
            rng: Shared random generator (exploration noise, seed picks)
            patterns_provider: Source of contextual session patterns
            catalog_timeout_seconds: Upper bound for each catalog call
            discovery_scorer: Shared discovery scorer
        """
        rng = rng or random.Random()
        scorer = discovery_scorer or DiscoveryScorer()
        self.logger = logger.bind(component="StrategyFactory")

        strategies: List[BaseRecommendationStrategy] = [
            CatalogSeededStrategy(
                catalog=catalog,
                rng=rng,
                timeout_seconds=catalog_timeout_seconds,
                discovery_scorer=scorer
            ),
            AudioDNAStrategy(discovery_scorer=scorer),
            ContextualStrategy(patterns_provider=patterns_provider, discovery_scorer=scorer),
            HiddenGemsStrategy(discovery_scorer=scorer),
            ExploratoryStrategy(rng=rng, discovery_scorer=scorer),
        ]
        self._strategies: Dict[str, BaseRecommendationStrategy] = {
            strategy.name: strategy for strategy in strategies
        }
        self.catalog_configured = catalog is not None

        self.logger.info(
            "StrategyFactory initialized",
            strategies=self.strategy_names(),
            catalog_configured=catalog is not None
        )

    def strategy_names(self) -> List[str]:
        """Arm names in declaration order."""
        return list(self._strategies)

    def get_strategy(self, name: str) -> BaseRecommendationStrategy:
        """
        Get a strategy by arm name.

        Raises:
            KeyError: If no strategy has that name
        """
        if name not in self._strategies:
            raise KeyError(f"Unknown strategy: {name}")
        return self._strategies[name]

    def all_strategies(self) -> List[BaseRecommendationStrategy]:
        return list(self._strategies.values())

    def declaration_rank(self, name: str) -> int:
        """Position of a strategy in declaration order (unknown names sort last)."""
        names = self.strategy_names()
        return names.index(name) if name in names else len(names)
