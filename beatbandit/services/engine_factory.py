"""
Engine wiring: builds a fully configured RecommendationOrchestrator from an
EngineConfig with one shared store, random generator and clock.
"""

import random
from datetime import datetime
from typing import Callable, Optional

import structlog

from ..api.catalog_client import CatalogService, SpotifyCatalogClient
from ..api.rate_limiter import UnifiedRateLimiter
from ..models.config_models import EngineConfig
from ..scoring.discovery_scorer import DiscoveryScorer
from ..strategies.contextual_strategy import ContextualStrategy
from ..strategies.factory import StrategyFactory
from .bandit_orchestrator import ThompsonSamplingBandit
from .context_resolver import ContextResolver
from .feedback_service import FeedbackService
from .mix_generator import MixGenerator
from .preference_learner import PreferenceLearner
from .record_store import RecordStore
from .recommendation_orchestrator import RecommendationOrchestrator
from .session_manager_service import SessionManagerService

logger = structlog.get_logger(__name__)


def create_catalog_client(config: EngineConfig) -> Optional[SpotifyCatalogClient]:
    """
    Catalog client for the configured access token, or None without one.

    The client must be entered (``async with``) before use.
    """
    if not config.catalog_access_token:
        logger.info("No catalog access token, catalog-seeded strategy will use the library fallback")
        return None

    return SpotifyCatalogClient(
        access_token=config.catalog_access_token,
        rate_limiter=UnifiedRateLimiter.for_catalog(config.catalog_rate_limit_per_hour),
        timeout=config.catalog_timeout_seconds,
    )


def create_recommendation_orchestrator(
    config: Optional[EngineConfig] = None,
    catalog: Optional[CatalogService] = None,
    store: Optional[RecordStore] = None,
    clock: Optional[Callable[[], datetime]] = None,
    load_state: bool = True
) -> RecommendationOrchestrator:
    """
    Factory function to create a fully wired RecommendationOrchestrator.

    Args:
        config: Engine configuration (defaults if omitted)
        catalog: Catalog service for the catalog-seeded strategy
        store: Record store (opened at ``config.store_directory`` if omitted)
        clock: Clock shared by every time-aware component
        load_state: Reload persisted learning state before returning

    Returns:
        Orchestrator ready to serve requests
    """
    config = config or EngineConfig()
    clock = clock or datetime.now
    store = store if store is not None else RecordStore(config.store_directory)
    rng = random.Random(config.random_seed)

    logger.info(
        "Creating RecommendationOrchestrator",
        store_directory=config.store_directory,
        catalog_configured=catalog is not None,
        seeded=config.random_seed is not None
    )

    discovery_scorer = DiscoveryScorer(today=lambda: clock().date())
    context_resolver = ContextResolver(clock)
    sessions = SessionManagerService(
        store=store,
        context_resolver=context_resolver,
        flush_every=config.session_flush_every,
        clock=clock
    )
    learner = PreferenceLearner(store=store, clock=clock)
    feedback = FeedbackService(
        learner=learner,
        store=store,
        quick_skip_ms=config.quick_skip_ms,
        discovery_scorer=discovery_scorer,
        clock=clock
    )
    strategy_factory = StrategyFactory(
        catalog=catalog,
        rng=rng,
        patterns_provider=sessions.contextual_patterns,
        catalog_timeout_seconds=config.catalog_timeout_seconds,
        discovery_scorer=discovery_scorer
    )
    mixes = MixGenerator(
        contextual=strategy_factory.get_strategy(ContextualStrategy.name),
        store=store,
        rng=rng,
        discovery_scorer=discovery_scorer,
        clock=clock
    )

    orchestrator = RecommendationOrchestrator(
        strategy_factory=strategy_factory,
        bandit=ThompsonSamplingBandit(store=store, rng=rng, clock=clock),
        learner=learner,
        feedback=feedback,
        sessions=sessions,
        mixes=mixes,
        context_resolver=context_resolver,
        store=store,
        config=config,
        rng=rng,
        clock=clock
    )

    if load_state:
        orchestrator.load_state()

    return orchestrator
