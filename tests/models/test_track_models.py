"""
Tests for track and learning models.

Validates:
- FeatureVector shape and clamping invariants
- Track construction from catalog payloads
- Bandit arm and preference model records
"""

import math
from datetime import datetime

import pytest

from beatbandit.models import (
    AudioFeatures,
    BanditArm,
    EngineConfig,
    FeatureVector,
    ListeningContext,
    PreferenceModel,
    RecommendationOptions,
    Track,
    deduplicate_tracks,
)
from beatbandit.models.learning_models import DayType, Mood, TimeOfDay


class TestFeatureVector:
    """Test FeatureVector invariants."""

    def test_requires_ten_components(self):
        with pytest.raises(ValueError):
            FeatureVector((0.1, 0.2))

    def test_clamps_and_replaces_non_finite(self):
        vector = FeatureVector((1.5, -0.2, math.nan, math.inf, 0.3, 0.3, 0.3, 0.3, 0.3, 0.3))

        assert vector[0] == 1.0
        assert vector[1] == 0.0
        assert vector[2] == 0.5
        assert vector[3] == 0.5
        assert all(0.0 <= value <= 1.0 for value in vector)

    def test_from_mapping_defaults_missing_to_neutral(self):
        vector = FeatureVector.from_mapping({"energy": 0.9})

        assert vector.get("energy") == 0.9
        assert vector.get("valence") == 0.5
        assert len(vector) == 10


class TestTrack:
    """Test Track creation."""

    def test_rejects_missing_identifier(self):
        with pytest.raises(ValueError):
            Track(id="")

    def test_from_catalog_payload(self):
        payload = {
            "id": "track-1",
            "name": "Windowlicker",
            "artists": [{"id": "artist-1", "name": "Aphex Twin", "genres": ["idm"]}],
            "album": {"name": "Windowlicker EP", "release_date": "1999-03-22"},
            "popularity": 42,
            "audio_features": {"energy": 0.8, "tempo": 127.0, "key": 5, "mode": 0},
        }

        track = Track.from_catalog(payload)

        assert track.id == "track-1"
        assert track.primary_artist_id == "artist-1"
        assert track.album == "Windowlicker EP"
        assert track.release_year == 1999
        assert track.release_day.isoformat() == "1999-03-22"
        assert track.artist_genres == ["idm"]
        assert track.audio_features.energy == 0.8
        assert track.audio_features.mode == 0

    def test_flattened_features_are_picked_up(self):
        track = Track.from_catalog({"id": "x", "energy": 0.4, "valence": 0.6})

        assert track.audio_features.energy == 0.4
        assert track.audio_features.valence == 0.6

    def test_year_precision_release_date(self, track_factory):
        track = track_factory("y", release_date="2001")

        assert track.release_year == 2001
        assert track.release_day is None

    def test_deduplicate_keeps_first(self, track_factory):
        first = track_factory("same", popularity=10)
        second = track_factory("same", popularity=90)

        unique = deduplicate_tracks([first, second, track_factory("other")])

        assert [t.id for t in unique] == ["same", "other"]
        assert unique[0].popularity == 10

    def test_audio_features_from_empty_payload(self):
        assert AudioFeatures.from_dict({}) is None
        assert AudioFeatures.from_dict({"name": "no features"}) is None


class TestLearningModels:
    """Test learning state records."""

    def test_bandit_arm_reward_updates(self):
        arm = BanditArm(arm_id="audio-dna")

        rewarded = arm.rewarded(1.0).rewarded(-0.5).rewarded(0.0)

        assert rewarded.success_weight == 2.0
        assert rewarded.failure_weight == 1.5
        assert rewarded.cumulative_reward == 0.5
        assert arm.success_weight == 1.0  # unchanged

    def test_bandit_arm_record_round_trip(self):
        when = datetime(2024, 1, 1, 12, 0)
        arm = BanditArm(arm_id="contextual", success_weight=3.0, pulls=4, last_pull=when)

        record = arm.to_record(datetime(2024, 1, 2, 9, 0))
        restored = BanditArm.from_record(record)

        assert record["last_updated"] == "2024-01-02T09:00:00"
        assert restored.arm_id == "contextual"
        assert restored.success_weight == 3.0
        assert restored.pulls == 4
        assert restored.last_pull == when

    def test_preference_model_record(self):
        model = PreferenceModel(vector=FeatureVector.from_mapping({"energy": 0.7}), sample_count=2)

        record = model.to_record()
        restored = PreferenceModel.from_record(record)

        assert record["key"] == "audio_features"
        assert restored.vector.get("energy") == pytest.approx(0.7)
        assert restored.sample_count == 2
        assert restored.is_trained
        assert not PreferenceModel().is_trained

    def test_context_dict_round_trip(self):
        context = ListeningContext(
            time_of_day=TimeOfDay.NIGHT,
            day_type=DayType.WEEKEND,
            suggested_mood=Mood.PARTY,
            day_of_week=6,
            hour=23,
            timestamp=datetime(2024, 6, 8, 23, 0),
        )

        assert ListeningContext.from_dict(context.to_dict()) == context


class TestConfigModels:
    """Test configuration loading and validation."""

    def test_defaults(self):
        config = EngineConfig()

        assert config.max_popularity == 60
        assert config.min_candidates == 50
        assert config.quick_skip_ms == 5000

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("BEATBANDIT_MAX_PER_ARTIST", "3")
        monkeypatch.setenv("BEATBANDIT_SERENDIPITY_LEVEL", "0.6")

        config = EngineConfig.from_env(str(tmp_path / "missing.env"))

        assert config.max_per_artist == 3
        assert config.serendipity_level == 0.6

    def test_rejects_out_of_range_options(self):
        with pytest.raises(ValueError):
            RecommendationOptions(serendipity_level=1.5)
        with pytest.raises(ValueError):
            EngineConfig(max_popularity=120)
