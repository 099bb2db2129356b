"""
Tests for the recommendation orchestrator.

Validates:
- Bandit and blended selection, warnings and empty results
- Feedback routing to bandit, preference learner, feedback log and sessions
- Queue building and persistence
- Engine wiring from configuration
"""

import random
from unittest.mock import AsyncMock

import pytest

from beatbandit.api.base_client import CatalogEndpointUnavailable
from beatbandit.models import EngineConfig, FeedbackKind, RecommendationOptions
from beatbandit.models.recommendation_models import Recommendation
from beatbandit.models.track_models import Track
from beatbandit.services import FEEDBACK_REWARDS, RecordStore, create_recommendation_orchestrator
from beatbandit.strategies import StrategyOutcome


@pytest.fixture
def store(tmp_path):
    record_store = RecordStore(str(tmp_path / "store"))
    yield record_store
    record_store.close()


@pytest.fixture
def config(tmp_path):
    return EngineConfig(store_directory=str(tmp_path / "store"), random_seed=11, min_candidates=10)


@pytest.fixture
def orchestrator(config, store, clock):
    return create_recommendation_orchestrator(config, store=store, clock=clock)


@pytest.fixture
def big_pool(track_factory):
    rng = random.Random(5)
    return [
        track_factory(
            f"p{i}",
            popularity=rng.randint(0, 100),
            artist_id=f"artist{i % 15}",
            genres=("indie",) if i % 3 else ("electronic",),
            energy=rng.random(),
            valence=rng.random(),
            danceability=rng.random(),
            acousticness=rng.random(),
            tempo=rng.uniform(70, 160),
            loudness=rng.uniform(-20, -3),
            key=rng.randint(0, 11),
            mode=rng.randint(0, 1),
        )
        for i in range(60)
    ]


@pytest.mark.asyncio
class TestSelectRecommendations:
    """Test recommendation selection."""

    async def test_bandit_mode(self, orchestrator, big_pool, morning_context):
        result = await orchestrator.select_recommendations(
            big_pool, morning_context, RecommendationOptions(limit=10)
        )

        assert result.strategy in orchestrator.strategy_factory.strategy_names()
        assert 0.0 <= result.confidence <= 1.0
        assert 0 < len(result.tracks) <= 10
        assert result.context == morning_context
        assert orchestrator.bandit.get_arm(result.strategy).pulls == 1

    async def test_diversity_applied(self, orchestrator, big_pool, morning_context):
        result = await orchestrator.select_recommendations(
            big_pool, morning_context, RecommendationOptions(limit=30, max_per_artist=1, use_bandit=False)
        )

        artists = [rec.track.primary_artist_id for rec in result.tracks]
        assert len(artists) == len(set(artists))

    async def test_blended_mode(self, orchestrator, big_pool, morning_context):
        result = await orchestrator.select_recommendations(
            big_pool, morning_context, RecommendationOptions(use_bandit=False, limit=50, max_per_artist=10)
        )

        assert result.strategy == "blended"
        assert result.fallback_triggered  # no catalog configured
        assert set(result.strategy_breakdown) == set(orchestrator.strategy_factory.strategy_names())
        assert result.strategy_breakdown["hidden-gems"] <= 5
        ids = [rec.track_id for rec in result.tracks]
        assert len(ids) == len(set(ids))
        scores = [rec.composite_score for rec in result.tracks]
        assert scores == sorted(scores, reverse=True)

    async def test_blended_merge_keeps_highest_score_and_declaration_order(
        self, orchestrator, track_factory, morning_context
    ):
        shared = track_factory("shared")
        tied = track_factory("tied")

        def outcome(strategy, *scored):
            return StrategyOutcome(recommendations=[
                Recommendation(track=t, composite_score=s, discovery_score=0.0, similarity=0.0,
                               strategy=strategy, explanation="")
                for t, s in scored
            ])

        outcomes = {
            "catalog-seeded": outcome("catalog-seeded", (tied, 50.0)),
            "audio-dna": outcome("audio-dna", (shared, 40.0)),
            "contextual": outcome("contextual", (shared, 70.0)),
            "hidden-gems": outcome("hidden-gems", (tied, 50.0)),
            "exploratory": outcome("exploratory"),
        }
        for name, result in outcomes.items():
            orchestrator.strategy_factory.get_strategy(name).run = AsyncMock(return_value=result)

        result = await orchestrator.select_recommendations(
            [shared, tied], morning_context, RecommendationOptions(use_bandit=False)
        )

        assert [(rec.track_id, rec.strategy) for rec in result.tracks] == [
            ("shared", "contextual"),
            ("tied", "catalog-seeded"),
        ]

    async def test_failing_strategy_is_isolated(self, orchestrator, big_pool, morning_context):
        orchestrator.strategy_factory.get_strategy("audio-dna").run = AsyncMock(side_effect=RuntimeError("boom"))

        result = await orchestrator.select_recommendations(
            big_pool, morning_context, RecommendationOptions(use_bandit=False)
        )

        assert result.strategy_breakdown["audio-dna"] == 0
        assert result.tracks

    async def test_insufficient_candidates_warning(self, orchestrator, big_pool, morning_context):
        result = await orchestrator.select_recommendations(big_pool[:5], morning_context)

        assert "insufficient_candidates" in result.warnings

    async def test_empty_pool(self, orchestrator, morning_context):
        result = await orchestrator.select_recommendations([], morning_context)

        assert result.tracks == []
        assert result.warnings == ["no_candidates"]

    async def test_disliked_tracks_filtered(self, orchestrator, big_pool, morning_context):
        disliked = big_pool[0]
        orchestrator.record_feedback(disliked.id, FeedbackKind.DISLIKE, track=disliked)

        result = await orchestrator.select_recommendations(
            big_pool, morning_context, RecommendationOptions(use_bandit=False, limit=60, max_per_artist=10)
        )

        assert disliked.id not in {rec.track_id for rec in result.tracks}

    async def test_catalog_unavailable_reports_fallback(self, config, store, clock, big_pool, morning_context):
        catalog = AsyncMock()
        catalog.fetch_top_tracks.side_effect = CatalogEndpointUnavailable("gone", status=403)
        catalog.fetch_saved_tracks.return_value = []
        orchestrator = create_recommendation_orchestrator(config, catalog=catalog, store=store, clock=clock)

        result = await orchestrator.select_recommendations(
            big_pool, morning_context, RecommendationOptions(use_bandit=False)
        )

        assert result.fallback_triggered
        assert result.tracks


@pytest.fixture
def pool_with_malformed_tracks(feature_pool, track_factory):
    return feature_pool + [
        Track.from_catalog({"id": "bad", "tempo": "fast"}),
        track_factory("worse", energy="high", tempo="fast", key="C", mode=1),
    ]


@pytest.mark.asyncio
class TestMalformedFeatures:
    """Tracks with non-numeric attributes are scored as neutral, not fatal."""

    async def test_bandit_selection(self, orchestrator, pool_with_malformed_tracks, morning_context):
        result = await orchestrator.select_recommendations(
            pool_with_malformed_tracks, morning_context, RecommendationOptions(limit=10)
        )

        assert result.tracks
        assert "no_candidates" not in result.warnings

    async def test_blended_selection(self, orchestrator, pool_with_malformed_tracks, morning_context):
        result = await orchestrator.select_recommendations(
            pool_with_malformed_tracks, morning_context,
            RecommendationOptions(use_bandit=False, limit=50, max_per_artist=10)
        )

        assert result.strategy == "blended"
        assert result.tracks

    async def test_queue_and_mix(self, orchestrator, pool_with_malformed_tracks):
        seed = pool_with_malformed_tracks[-1]

        queue = await orchestrator.build_queue(seed, pool_with_malformed_tracks, length=10)
        mix = await orchestrator.build_mix("energy", {}, pool_with_malformed_tracks, size=5)

        assert 0 < len(queue) <= 10
        assert seed.id not in {entry.track.id for entry in queue}
        assert len(mix.tracks) == 5

    async def test_feedback_on_malformed_track(self, orchestrator, pool_with_malformed_tracks):
        track = pool_with_malformed_tracks[-1]

        orchestrator.record_feedback(track.id, FeedbackKind.LIKE, strategy="audio-dna", track=track)

        assert orchestrator.learner.model.sample_count == 1
        assert orchestrator.learner.model.vector.get("energy") == pytest.approx(0.5)


@pytest.mark.asyncio
class TestRecordFeedback:
    """Test feedback routing."""

    async def test_reward_mapping(self):
        assert FEEDBACK_REWARDS[FeedbackKind.LIKE] == 1.0
        assert FEEDBACK_REWARDS[FeedbackKind.LOVE] == 1.5
        assert FEEDBACK_REWARDS[FeedbackKind.PLAY] == 0.5
        assert FEEDBACK_REWARDS[FeedbackKind.SKIP] == -0.5
        assert FEEDBACK_REWARDS[FeedbackKind.DISLIKE] == -1.0

    async def test_feedback_on_recommended_track(self, orchestrator, big_pool, morning_context):
        result = await orchestrator.select_recommendations(big_pool, morning_context)
        rec = result.tracks[0]
        before = orchestrator.bandit.get_arm(rec.strategy)

        orchestrator.record_feedback(rec.track_id, FeedbackKind.LIKE)

        after = orchestrator.bandit.get_arm(rec.strategy)
        assert after.success_weight == before.success_weight + 1.0
        assert orchestrator.learner.model.sample_count == 1
        assert orchestrator.feedback.is_liked(rec.track_id)
        assert orchestrator.sessions.current_session.interactions[-1].track_id == rec.track_id

    async def test_explicit_strategy_and_skip(self, orchestrator, track_factory):
        track = track_factory("x", energy=0.9)

        orchestrator.record_feedback("x", FeedbackKind.SKIP, strategy="hidden-gems", track=track, played_ms=800)

        arm = orchestrator.bandit.get_arm("hidden-gems")
        assert arm.failure_weight == 1.5
        assert orchestrator.learner.model.sample_count == 1

    async def test_unknown_track_only_logged(self, orchestrator):
        orchestrator.record_feedback("ghost", FeedbackKind.PLAY)

        assert orchestrator.feedback.listening_stats()["feedback_count"] == 1
        assert orchestrator.learner.model.sample_count == 0


@pytest.mark.asyncio
class TestQueuesAndMixes:
    """Test queue building and mixes through the orchestrator."""

    async def test_build_queue(self, orchestrator, big_pool, store):
        seed = big_pool[0]

        queue = await orchestrator.build_queue(seed, big_pool, length=10)

        assert len(queue) == 10
        ids = [entry.track.id for entry in queue]
        assert seed.id not in ids
        assert len(ids) == len(set(ids))
        reasons = [entry.reason for entry in queue]
        assert reasons.count("similar") == 4
        assert reasons.count("contextual") == 3
        assert reasons.count("discovery") == 3

        history = store.get_all("queue_history")
        assert history[0]["seed_track_id"] == seed.id
        assert [item["id"] for item in history[0]["queue"]] == ids

    async def test_build_mix(self, orchestrator, big_pool):
        mix = await orchestrator.build_mix("discovery", {}, big_pool, size=5)

        assert len(mix.tracks) <= 5
        assert orchestrator.recommendation_stats()["mixes_generated"] == 1

    async def test_stats(self, orchestrator, big_pool, morning_context):
        await orchestrator.select_recommendations(big_pool, morning_context)

        stats = orchestrator.recommendation_stats()

        assert {arm["arm"] for arm in stats["bandit_arms"]} == set(orchestrator.strategy_factory.strategy_names())
        assert sum(arm["pulls"] for arm in stats["bandit_arms"]) == 1
        assert stats["current_context"]["time_of_day"] == "morning"


class TestEngineFactory:
    """Test wiring and state reload."""

    def test_state_survives_restart(self, config, store, clock, track_factory):
        first = create_recommendation_orchestrator(config, store=store, clock=clock)
        track = track_factory("liked", energy=1.0)
        first.record_feedback("liked", FeedbackKind.LIKE, strategy="audio-dna", track=track)

        second = create_recommendation_orchestrator(config, store=store, clock=clock)

        assert second.bandit.get_arm("audio-dna").success_weight == 2.0
        assert second.learner.model.vector.get("energy") == pytest.approx(0.55)
        assert second.feedback.is_liked("liked")
        assert len(second.sessions.sessions) >= 1

    def test_store_from_config(self, config):
        orchestrator = create_recommendation_orchestrator(config, load_state=False)
        try:
            assert orchestrator.store.available
            assert orchestrator.sessions.current_session is None
        finally:
            orchestrator.store.close()
