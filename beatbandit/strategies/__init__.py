"""
Recommendation strategies.

Each strategy ranks a candidate pool for one bandit arm:
- catalog-seeded: seeded catalog recommendations with a library fallback
- audio-dna: closeness to the listener's preferred feature vector
- contextual: mood, time-of-day and session-pattern fit
- hidden-gems: the most undiscovered tracks
- exploratory: matches against a perturbed preference vector
"""

from .base_strategy import (
    BaseRecommendationStrategy,
    PoolScoringStrategy,
    StrategyConstraints,
    StrategyOutcome,
)
from .audio_dna_strategy import AudioDNAStrategy
from .catalog_seeded_strategy import CatalogSeededStrategy, TasteAnalysis, analyze_taste
from .contextual_strategy import ContextualStrategy
from .exploratory_strategy import ExploratoryStrategy
from .hidden_gems_strategy import HiddenGemsStrategy
from .factory import BLENDED_LIMITS, StrategyFactory

__all__ = [
    "BaseRecommendationStrategy",
    "PoolScoringStrategy",
    "StrategyConstraints",
    "StrategyOutcome",
    "AudioDNAStrategy",
    "CatalogSeededStrategy",
    "TasteAnalysis",
    "analyze_taste",
    "ContextualStrategy",
    "ExploratoryStrategy",
    "HiddenGemsStrategy",
    "BLENDED_LIMITS",
    "StrategyFactory",
]
