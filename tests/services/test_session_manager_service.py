"""
Tests for the session manager.
"""

from datetime import datetime
from unittest.mock import Mock

import pytest

from beatbandit.models.learning_models import FeedbackKind
from beatbandit.services import ContextResolver, RecordStore, SessionManagerService
from beatbandit.services.context_resolver import resolve_context
from beatbandit.services.session_manager_service import context_similarity, extract_contextual_patterns


@pytest.fixture
def store(tmp_path):
    record_store = RecordStore(str(tmp_path / "store"))
    yield record_store
    record_store.close()


@pytest.fixture
def manager(store, clock):
    return SessionManagerService(store=store, context_resolver=ContextResolver(clock), flush_every=3, clock=clock)


class TestSessionLifecycle:
    """Test session start, interactions and flushing."""

    def test_start_uses_current_context(self, manager, morning_context):
        session = manager.start_new_session()

        assert session.context == morning_context
        assert manager.current_session is session

    def test_interaction_starts_session_when_missing(self, manager, track_factory):
        manager.add_interaction(track_factory("a"), FeedbackKind.PLAY)

        assert manager.current_session is not None
        assert len(manager.current_session.interactions) == 1

    def test_periodic_flush(self, manager, store, track_factory):
        manager.start_new_session()

        manager.add_interaction(track_factory("a"), FeedbackKind.PLAY)
        manager.add_interaction(track_factory("b"), FeedbackKind.PLAY)
        assert store.get_all("sessions") == []

        manager.add_interaction(track_factory("c"), FeedbackKind.PLAY)
        stored = store.get_all("sessions")
        assert len(stored) == 1
        assert [t["id"] for t in stored[0]["tracks"]] == ["a", "b", "c"]

    def test_like_flushes_immediately(self, manager, store, track_factory):
        manager.start_new_session()

        manager.add_interaction(track_factory("a"), FeedbackKind.LIKE)

        assert len(store.get_all("sessions")) == 1

    def test_open_session_duration_uses_clock(self, store):
        now = [datetime(2024, 6, 4, 8, 0)]
        manager = SessionManagerService(store=store, clock=lambda: now[0])
        session = manager.start_new_session()

        now[0] = datetime(2024, 6, 4, 8, 20)
        record = manager.save_session()

        assert record["ended_at"] == "2024-06-04T08:20:00"
        assert record["duration_seconds"] == 1200
        assert store.get("sessions", session.session_id)["ended_at"] == record["ended_at"]
        assert session.ended_at is None

    def test_repeat_track_recorded_once(self, manager, track_factory):
        manager.start_new_session()
        track = track_factory("a")

        manager.add_interaction(track, FeedbackKind.PLAY)
        manager.add_interaction(track, FeedbackKind.SKIP)

        assert len(manager.current_session.tracks) == 1
        assert len(manager.current_session.interactions) == 2

    def test_new_session_ends_previous(self, manager, store, track_factory):
        first = manager.start_new_session()
        manager.add_interaction(track_factory("a"), FeedbackKind.PLAY)

        second = manager.start_new_session()

        assert first.ended_at is not None
        assert first.session_id != second.session_id
        assert store.get("sessions", first.session_id)["tracks"][0]["id"] == "a"

    def test_store_failure_keeps_sessions_in_memory(self, clock, track_factory):
        broken = Mock()
        broken.put.return_value = False
        manager = SessionManagerService(store=broken, context_resolver=ContextResolver(clock), clock=clock)

        manager.add_interaction(track_factory("a"), FeedbackKind.LIKE)

        assert len(manager.sessions) == 1


class TestContextMining:
    """Test similar-session ranking and pattern extraction."""

    def test_context_similarity(self):
        tuesday_morning = resolve_context(datetime(2024, 6, 4, 8, 0))
        wednesday_morning = resolve_context(datetime(2024, 6, 5, 9, 0))
        saturday_night = resolve_context(datetime(2024, 6, 8, 23, 0))

        assert context_similarity(tuesday_morning, tuesday_morning) == 96
        assert context_similarity(tuesday_morning, wednesday_morning) == 93
        assert context_similarity(tuesday_morning, saturday_night) == 9

    def test_week_starts_on_sunday(self):
        saturday_night = resolve_context(datetime(2024, 6, 8, 23, 0))
        sunday_night = resolve_context(datetime(2024, 6, 9, 23, 0))

        assert (sunday_night.day_of_week, saturday_night.day_of_week) == (0, 6)
        assert context_similarity(saturday_night, sunday_night) == 78

    def test_extract_patterns(self):
        sessions = [
            {"tracks": [
                {"genres": ["shoegaze", "dream pop"], "audio_features": {"energy": 0.8, "valence": 0.2}},
                {"genres": ["shoegaze"], "audio_features": None},
            ]},
            {"tracks": [
                {"genres": ["ambient"], "audio_features": {"energy": 0.4, "valence": 0.6, "acousticness": 1.0}},
            ]},
        ]

        patterns = extract_contextual_patterns(sessions)

        assert patterns.preferred_genres[0] == "shoegaze"
        assert patterns.preferred_features["energy"] == pytest.approx(0.6)
        assert patterns.preferred_features["acousticness"] == pytest.approx(0.5)
        assert patterns.total_tracks == 3
        assert patterns.session_count == 2

    def test_patterns_without_features(self):
        patterns = extract_contextual_patterns([{"tracks": [{"genres": ["jazz"]}]}])

        assert patterns.preferred_features is None
        assert patterns.preferred_genres == ["jazz"]

    def test_similar_sessions_ranked_by_context(self, store, track_factory):
        moments = iter([datetime(2024, 6, 8, 23, 0), datetime(2024, 6, 4, 8, 0)])
        for moment in moments:
            manager = SessionManagerService(store=store, context_resolver=ContextResolver(lambda m=moment: m))
            manager.add_interaction(track_factory(f"t{moment.day}", genres=("g",)), FeedbackKind.LIKE)

        manager = SessionManagerService(store=store)
        manager.load_state()
        ranked = manager.similar_context_sessions(resolve_context(datetime(2024, 6, 4, 9, 0)))

        assert ranked[0]["tracks"][0]["id"] == "t4"
        assert manager.contextual_patterns(resolve_context(datetime(2024, 6, 4, 9, 0))).session_count == 2
