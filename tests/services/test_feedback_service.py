"""
Tests for the feedback service.

Validates:
- Liked/disliked records and their preference updates
- Listening history and quick-skip handling
- Stats, insights and data clearing
"""

from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest

from beatbandit.models.learning_models import FeedbackKind
from beatbandit.models.recommendation_models import Recommendation
from beatbandit.scoring import encode_track
from beatbandit.services import FeedbackService, PreferenceLearner, RecordStore


class Clock:
    """Clock that advances one minute per call."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(minutes=1)
        return self.now


@pytest.fixture
def store(tmp_path):
    record_store = RecordStore(str(tmp_path / "store"))
    yield record_store
    record_store.close()


@pytest.fixture
def service(store, fixed_now):
    clock = Clock(fixed_now)
    return FeedbackService(learner=PreferenceLearner(store=store, clock=clock), store=store, clock=clock)


@pytest.fixture
def song(track_factory):
    return track_factory("song", popularity=30, artist_id="band", energy=0.9, valence=0.2)


class TestFeedbackRecording:
    """Test how each feedback kind is recorded."""

    def test_like_stores_record_and_learns(self, service, song):
        service.record(song.id, FeedbackKind.LIKE, track=song)

        assert service.is_liked("song")
        record = service.liked_tracks()[0]
        assert record["artist_ids"] == ["band"]
        assert record["features"]["energy"] == 0.9
        assert service.learner.model.vector.get("energy") == pytest.approx(0.54)

    def test_love_counts_one_and_a_half_likes(self, service, song):
        service.record(song.id, FeedbackKind.LOVE, track=song)

        assert service.is_liked("song")
        assert service.learner.model.vector.get("energy") == pytest.approx(0.5 + 0.4 * 0.15)

    def test_like_keeps_recommendation_details(self, service, song):
        rec = Recommendation(
            track=song, composite_score=90.0, discovery_score=80.0, similarity=0.75,
            strategy="audio-dna", explanation="", features=encode_track(song),
        )

        service.record(song.id, FeedbackKind.LIKE, recommendation=rec)

        record = service.liked_tracks()[0]
        assert record["strategy"] == "audio-dna"
        assert record["similarity"] == 0.75
        assert record["discovery_score"] == 80.0

    def test_dislike_replaces_like(self, service, song):
        service.record(song.id, FeedbackKind.LIKE, track=song)
        service.record(song.id, FeedbackKind.DISLIKE, track=song)

        assert service.is_disliked("song")
        assert not service.is_liked("song")
        assert service.learner.model.sample_count == 2

    def test_plays_accumulate_history(self, service, song):
        service.record(song.id, FeedbackKind.PLAY, track=song, played_ms=1000)
        service.record(song.id, FeedbackKind.PLAY, track=song, played_ms=2000)

        stats = service.listening_stats()
        assert stats["unique_tracks_played"] == 1
        assert stats["total_plays"] == 2
        assert stats["total_duration"] == 3000
        assert stats["average_plays_per_track"] == 2
        assert not service.learner.model.is_trained

    def test_quick_skip_is_half_dislike(self, service, song):
        service.record(song.id, FeedbackKind.SKIP, track=song, played_ms=1200)

        assert service.learner.model.vector.get("energy") == pytest.approx(0.5 * 0.975 + 0.1 * 0.025)
        assert not service.is_disliked("song")

    def test_late_skip_leaves_preference(self, service, song):
        service.record(song.id, FeedbackKind.SKIP, track=song, played_ms=60000)

        assert not service.learner.model.is_trained

    def test_without_track_only_logs(self, service):
        service.record("ghost", FeedbackKind.LIKE)

        assert not service.is_liked("ghost")
        assert service.listening_stats()["feedback_count"] == 1


class TestFeedbackQueries:
    """Test query helpers."""

    def test_liked_tracks_most_recent_first(self, service, track_factory):
        for track_id in ("first", "second", "third"):
            track = track_factory(track_id)
            service.record(track.id, FeedbackKind.LIKE, track=track)

        assert [r["id"] for r in service.liked_tracks()] == ["third", "second", "first"]
        assert [r["id"] for r in service.liked_tracks(limit=1)] == ["third"]

    def test_remove_like(self, service, song):
        service.record(song.id, FeedbackKind.LIKE, track=song)

        service.remove_like("song")

        assert not service.is_liked("song")

    def test_filter_disliked(self, service, song, track_factory):
        other = track_factory("other")
        service.record(song.id, FeedbackKind.DISLIKE, track=song)

        assert service.filter_disliked([song, other]) == [other]

    def test_insights(self, service, track_factory):
        for i, (strategy, similarity) in enumerate([("audio-dna", 0.8), ("audio-dna", 0.6), ("hidden-gems", 0.4)]):
            track = track_factory(f"t{i}")
            rec = Recommendation(
                track=track, composite_score=1.0, discovery_score=50.0 + i,
                similarity=similarity, strategy=strategy, explanation="",
            )
            service.record(track.id, FeedbackKind.LIKE, recommendation=rec)

        insights = service.recommendation_insights()

        assert insights["total_likes"] == 3
        assert insights["strategy_counts"] == {"audio-dna": 2, "hidden-gems": 1}
        assert insights["avg_similarity"]["audio-dna"] == pytest.approx(0.7)
        assert insights["avg_discovery_score"]["audio-dna"] == pytest.approx(50.5)
        assert insights["most_successful_strategy"] == "audio-dna"

    def test_insights_without_likes(self, service):
        assert service.recommendation_insights()["most_successful_strategy"] == "unknown"

    def test_action_counts(self, service, song):
        service.record(song.id, FeedbackKind.PLAY, track=song, played_ms=10)
        service.record(song.id, FeedbackKind.SKIP, track=song, played_ms=9000)
        service.record(song.id, FeedbackKind.LIKE, track=song)

        assert service.listening_stats()["actions"] == {"play": 1, "skip": 1, "like": 1}


class TestFeedbackPersistence:
    """Test reload and clearing."""

    def test_reload_from_store(self, store, service, song, fixed_now):
        service.record(song.id, FeedbackKind.LIKE, track=song)
        service.record(song.id, FeedbackKind.PLAY, track=song, played_ms=500)

        reloaded = FeedbackService(learner=PreferenceLearner(store=store), store=store)
        reloaded.load_state()

        assert reloaded.is_liked("song")
        assert reloaded.listening_stats()["total_plays"] == 1
        assert reloaded.listening_stats()["feedback_count"] == 2

    def test_clear_all_data(self, store, service, song):
        service.record(song.id, FeedbackKind.LIKE, track=song)

        service.clear_all_data()

        assert not service.is_liked("song")
        assert not service.learner.model.is_trained
        assert store.get_all("feedback") == []
        assert store.get_all("liked_tracks") == []

    def test_works_without_working_store(self, song):
        broken = Mock()
        broken.put.return_value = False
        broken.append.return_value = None
        service = FeedbackService(learner=PreferenceLearner(), store=broken)

        service.record(song.id, FeedbackKind.LIKE, track=song)

        assert service.is_liked("song")
