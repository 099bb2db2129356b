"""
Recommendation Orchestrator for BeatBandit

Coordinates the strategies and the learning services behind the four
caller-facing operations:
- select_recommendations: one bandit-chosen strategy, or all strategies blended
- record_feedback: bandit reward, preference update, feedback log and session
- build_queue: similar, contextual and discovery picks in a smooth order
- build_mix: typed personalized mixes
"""

import asyncio
import math
import random
import time
from collections import OrderedDict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import structlog

from ..models.config_models import EngineConfig, RecommendationOptions
from ..models.learning_models import FeedbackKind, ListeningContext
from ..models.recommendation_models import MixResult, QueueEntry, Recommendation, SelectionResult
from ..models.track_models import FeatureVector, Track, deduplicate_tracks
from ..scoring.feature_codec import average_feature_vector, encode_track
from ..strategies.base_strategy import StrategyConstraints, StrategyOutcome
from ..strategies.contextual_strategy import ContextualStrategy
from ..strategies.factory import BLENDED_LIMITS, StrategyFactory
from ..utils.logging_config import log_error, log_performance, log_strategy_decision
from .bandit_orchestrator import ThompsonSamplingBandit
from .context_resolver import ContextResolver
from .diversity import ensure_artist_diversity
from .feedback_service import FeedbackService
from .mix_generator import MixGenerator
from .preference_learner import PreferenceLearner
from .queue_smoother import find_similar_tracks, smooth_queue
from .record_store import RecordStore
from .session_manager_service import SessionManagerService

logger = structlog.get_logger(__name__)

QUEUE_HISTORY_COLLECTION = "queue_history"

# Bandit reward per feedback kind
FEEDBACK_REWARDS: Dict[FeedbackKind, float] = {
    FeedbackKind.LIKE: 1.0,
    FeedbackKind.LOVE: 1.5,
    FeedbackKind.PLAY: 0.5,
    FeedbackKind.SKIP: -0.5,
    FeedbackKind.DISLIKE: -1.0,
}

# Queue composition
QUEUE_SIMILAR_SHARE = 0.4
QUEUE_CONTEXTUAL_SHARE = 0.3
QUEUE_DISCOVERY_MAX_POPULARITY = 60

# Recently recommended tracks remembered for feedback attribution
RECENT_RECOMMENDATIONS = 500


class RecommendationOrchestrator:
    """
    Main orchestrator for recommendation requests and feedback.

    All collaborators are injected; ``create_recommendation_orchestrator``
    wires up the standard set from an EngineConfig.
    """

    def __init__(
        self,
        strategy_factory: StrategyFactory,
        bandit: ThompsonSamplingBandit,
        learner: PreferenceLearner,
        feedback: FeedbackService,
        sessions: SessionManagerService,
        mixes: MixGenerator,
        context_resolver: Optional[ContextResolver] = None,
        store: Optional[RecordStore] = None,
        config: Optional[EngineConfig] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.strategy_factory = strategy_factory
        self.bandit = bandit
        self.learner = learner
        self.feedback = feedback
        self.sessions = sessions
        self.mixes = mixes
        self.clock = clock or datetime.now
        self.context_resolver = context_resolver or ContextResolver(self.clock)
        self.store = store
        self.config = config or EngineConfig()
        self.rng = rng or random.Random()
        self.logger = logger.bind(component="RecommendationOrchestrator")

        self._recent: "OrderedDict[str, Recommendation]" = OrderedDict()

        self.logger.info(
            "RecommendationOrchestrator initialized",
            strategies=self.strategy_factory.strategy_names(),
            store_available=bool(store and store.available)
        )

    def load_state(self) -> None:
        """Reload persisted learning state and open a fresh session."""
        self.bandit.load_state()
        self.bandit.ensure_arms(self.strategy_factory.strategy_names())
        self.learner.load_state()
        self.feedback.load_state()
        self.sessions.load_state()
        self.sessions.start_new_session()

    # Recommendations

    async def select_recommendations(
        self,
        pool: Sequence[Track],
        context: Optional[ListeningContext] = None,
        options: Optional[RecommendationOptions] = None
    ) -> SelectionResult:
        """
        Recommend tracks from a candidate pool.

        Args:
            pool: Candidate tracks, already filtered for playability
            context: Listening context (resolved from the clock if omitted)
            options: Per-request options

        Returns:
            Ranked, diversified recommendations. An empty result carries the
            ``no_candidates`` warning; it never raises.
        """
        start_time = time.time()
        options = options or RecommendationOptions()
        context = context or self.context_resolver.current_context()
        self.logger.info("Listening context", **context.to_dict())

        limit = options.limit or self.config.recommendation_limit
        max_per_artist = options.max_per_artist or self.config.max_per_artist
        constraints = StrategyConstraints(
            limit=limit,
            max_popularity=(
                options.max_popularity if options.max_popularity is not None
                else self.config.max_popularity
            ),
            hidden_gems_ceiling=self.config.hidden_gems_ceiling,
            serendipity_level=(
                options.serendipity_level if options.serendipity_level is not None
                else self.config.serendipity_level
            ),
        )

        candidates = self.feedback.filter_disliked(deduplicate_tracks(list(pool)))
        warnings: List[str] = []

        if not candidates and not self.strategy_factory.catalog_configured:
            self.logger.warning("No candidate tracks, returning empty result")
            return SelectionResult.empty(context, "no_candidates")
        if len(candidates) < self.config.min_candidates:
            self.logger.warning(
                "Insufficient candidates",
                candidates=len(candidates),
                minimum=self.config.min_candidates
            )
            warnings.append("insufficient_candidates")

        preference = self._preference_for(candidates)

        if options.use_bandit:
            result = await self._select_with_bandit(candidates, context, preference, constraints)
            if not result.tracks and candidates:
                self.logger.warning("Selected strategy returned nothing, blending all strategies",
                                    strategy=result.strategy)
                warnings.append("strategy_empty")
                result = await self._select_blended(candidates, context, preference, constraints)
        else:
            result = await self._select_blended(candidates, context, preference, constraints)

        tracks = [rec for rec in result.tracks if not self.feedback.is_disliked(rec.track_id)]
        tracks = ensure_artist_diversity(tracks, max_per_artist)[:limit]

        if not tracks:
            warnings.append("no_candidates")

        result.tracks = tracks
        result.context = context
        result.warnings = warnings + result.warnings
        self._remember(tracks)

        duration = time.time() - start_time
        log_performance(
            "select_recommendations",
            duration,
            strategy=result.strategy,
            result_size=len(tracks),
            pool_size=len(candidates)
        )
        self.logger.info(
            "Recommendations selected",
            strategy=result.strategy,
            confidence=round(result.confidence, 4),
            count=len(tracks),
            warnings=result.warnings,
            fallback_triggered=result.fallback_triggered,
            duration_ms=round(duration * 1000, 2)
        )
        return result

    def _preference_for(self, pool: Sequence[Track]) -> FeatureVector:
        """The learned preference, or the pool's average until feedback arrives."""
        model = self.learner.model
        if model.is_trained:
            return model.vector
        return average_feature_vector(encode_track(track) for track in pool)

    async def _select_with_bandit(
        self,
        pool: Sequence[Track],
        context: ListeningContext,
        preference: FeatureVector,
        constraints: StrategyConstraints
    ) -> SelectionResult:
        names = self.strategy_factory.strategy_names()
        arm, sample = self.bandit.select_arm(names)
        log_strategy_decision(arm, sample, mode="bandit")

        outcome = await self._run_strategy(arm, pool, context, preference, constraints)
        if outcome is None:
            outcome = StrategyOutcome()

        return SelectionResult(
            tracks=list(outcome.recommendations),
            strategy=arm,
            confidence=sample,
            fallback_triggered=outcome.fallback_triggered,
            strategy_breakdown={arm: len(outcome.recommendations)},
        )

    async def _select_blended(
        self,
        pool: Sequence[Track],
        context: ListeningContext,
        preference: FeatureVector,
        constraints: StrategyConstraints
    ) -> SelectionResult:
        """Run every strategy concurrently and merge their results."""
        names = self.strategy_factory.strategy_names()
        outcomes = await asyncio.gather(*[
            self._run_strategy(
                name, pool, context, preference,
                constraints.with_limit(BLENDED_LIMITS.get(name, constraints.limit))
            )
            for name in names
        ])

        breakdown = {}
        merged: Dict[str, Tuple[int, Recommendation]] = {}
        fallback_triggered = False

        for rank, (name, outcome) in enumerate(zip(names, outcomes)):
            if outcome is None:
                breakdown[name] = 0
                continue
            breakdown[name] = len(outcome.recommendations)
            fallback_triggered = fallback_triggered or outcome.fallback_triggered

            for rec in outcome.recommendations:
                existing = merged.get(rec.track_id)
                if existing is None or rec.composite_score > existing[1].composite_score:
                    merged[rec.track_id] = (rank, rec)

        ordered = sorted(merged.values(), key=lambda item: (-item[1].composite_score, item[0]))
        contributing = [name for name in names if breakdown.get(name)]
        confidence = (
            sum(self.bandit.get_arm(name).success_rate for name in contributing) / len(contributing)
            if contributing else 0.0
        )
        log_strategy_decision("blended", confidence, mode="blended", breakdown=breakdown)

        return SelectionResult(
            tracks=[rec for _, rec in ordered],
            strategy="blended",
            confidence=confidence,
            fallback_triggered=fallback_triggered,
            strategy_breakdown=breakdown,
        )

    async def _run_strategy(
        self,
        name: str,
        pool: Sequence[Track],
        context: ListeningContext,
        preference: FeatureVector,
        constraints: StrategyConstraints
    ) -> Optional[StrategyOutcome]:
        """Run one strategy; failures are logged and yield None."""
        strategy = self.strategy_factory.get_strategy(name)
        try:
            return await strategy.run(pool, context, preference, constraints)
        except Exception as e:
            self.logger.error("Strategy failed", strategy=name, error=str(e), error_type=type(e).__name__)
            log_error(e, {"strategy": name, "pool_size": len(pool)})
            return None

    def _remember(self, recommendations: Sequence[Recommendation]) -> None:
        for rec in recommendations:
            self._recent[rec.track_id] = rec
            self._recent.move_to_end(rec.track_id)
        while len(self._recent) > RECENT_RECOMMENDATIONS:
            self._recent.popitem(last=False)

    # Feedback

    def record_feedback(
        self,
        track_id: str,
        kind: FeedbackKind,
        strategy: Optional[str] = None,
        track: Optional[Track] = None,
        played_ms: Optional[int] = None
    ) -> None:
        """
        Apply one feedback event.

        The strategy and track default to those of the most recent
        recommendation of ``track_id``. Without a strategy the bandit is left
        alone; without track details only the feedback log is written.

        Args:
            track_id: Track the feedback is about
            kind: like, love, dislike, play or skip
            strategy: Strategy (bandit arm) credited with the track
            track: Track details
            played_ms: Milliseconds played (plays and skips)
        """
        kind = FeedbackKind(kind)
        recommendation = self._recent.get(track_id)
        if recommendation is not None:
            strategy = strategy or recommendation.strategy
            track = track or recommendation.track

        reward = FEEDBACK_REWARDS.get(kind, 0.0)
        if strategy and strategy != "blended":
            self.bandit.update_reward(strategy, reward)

        context = self.context_resolver.current_context()
        self.feedback.record(
            track_id,
            kind,
            track=track,
            recommendation=recommendation,
            context=context,
            played_ms=played_ms,
        )
        if track is not None:
            self.sessions.add_interaction(track, kind)

        self.logger.info(
            "Feedback recorded",
            track_id=track_id,
            kind=kind.value,
            strategy=strategy,
            reward=reward
        )

    # Queues and mixes

    async def build_queue(
        self,
        seed: Track,
        pool: Sequence[Track],
        length: int = 10
    ) -> List[QueueEntry]:
        """
        Build a smooth playback queue after ``seed``.

        40% tracks that sound like the seed, 30% contextual picks, the rest
        shuffled low-popularity discoveries; then ordered by transition
        compatibility starting from the seed.
        """
        start_time = time.time()
        context = self.context_resolver.current_context()
        candidates = [
            track for track in self.feedback.filter_disliked(deduplicate_tracks(list(pool)))
            if track.id != seed.id
        ]

        queue: List[QueueEntry] = []
        used = {seed.id}

        similar_count = math.floor(length * QUEUE_SIMILAR_SHARE)
        for track, _ in find_similar_tracks(seed, candidates, similar_count * 2)[:similar_count]:
            queue.append(QueueEntry(track, "similar"))
            used.add(track.id)

        contextual_count = math.floor(length * QUEUE_CONTEXTUAL_SHARE)
        if contextual_count:
            unused = [track for track in candidates if track.id not in used]
            contextual = self.strategy_factory.get_strategy(ContextualStrategy.name)
            picks = await contextual.generate(
                unused,
                context,
                self._preference_for(candidates),
                StrategyConstraints(limit=contextual_count)
            )
            for rec in picks:
                queue.append(QueueEntry(rec.track, "contextual"))
                used.add(rec.track_id)

        discoveries = [
            track for track in candidates
            if track.id not in used and (track.popularity or 0) < QUEUE_DISCOVERY_MAX_POPULARITY
        ]
        self.rng.shuffle(discoveries)
        for track in discoveries[:max(0, length - len(queue))]:
            queue.append(QueueEntry(track, "discovery"))

        reasons = {entry.track.id: entry.reason for entry in queue}
        ordered = [
            QueueEntry(track, reasons[track.id])
            for track in smooth_queue(seed, [entry.track for entry in queue])
        ]

        self._save_queue(seed, ordered, context)
        log_performance("build_queue", time.time() - start_time, queue_length=len(ordered))
        return ordered

    def _save_queue(self, seed: Track, queue: Sequence[QueueEntry], context: ListeningContext) -> None:
        if self.store is None:
            return
        record = {
            "seed_track_id": seed.id,
            "queue": [{"id": entry.track.id, "reason": entry.reason} for entry in queue],
            "timestamp": self.clock().isoformat(),
            "context": context.to_dict(),
        }
        if self.store.append(QUEUE_HISTORY_COLLECTION, record) is None:
            self.logger.warning("Queue not persisted", seed_track_id=seed.id)

    async def build_mix(
        self,
        mix_type: str,
        seed_data: Optional[Dict[str, Any]],
        pool: Sequence[Track],
        size: int = 50
    ) -> MixResult:
        """Build a typed mix (see MixGenerator) from the pool, minus disliked tracks."""
        candidates = self.feedback.filter_disliked(deduplicate_tracks(list(pool)))
        return await self.mixes.build_mix(
            mix_type,
            seed_data or {},
            candidates,
            self.context_resolver.current_context(),
            self._preference_for(candidates),
            size,
        )

    # Observability

    def recommendation_stats(self) -> Dict[str, Any]:
        return {
            "total_sessions": len(self.sessions.sessions),
            "total_tracks": self.sessions.total_tracks(),
            "bandit_arms": self.bandit.stats(),
            "mixes_generated": self.mixes.mixes_generated,
            "current_context": self.context_resolver.current_context().to_dict(),
        }
