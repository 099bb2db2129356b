"""
Tests for similarity and discovery scoring.

Validates:
- Self-similarity is exactly 1 and similarity is symmetric
- Discovery score bounds, monotonicity and freshness bonus
- Mix discovery score and uniqueness
"""

import random
from datetime import date

import pytest

from beatbandit.models.track_models import FeatureVector
from beatbandit.scoring import (
    DEFAULT_FEATURE_WEIGHTS,
    DiscoveryScorer,
    cosine_similarity,
    discovery_score,
    explain_similarity,
    top_matching_features,
    weighted_similarity,
)


def random_vector(rng: random.Random) -> FeatureVector:
    return FeatureVector(tuple(rng.random() for _ in range(10)))


class TestWeightedSimilarity:
    """Test weighted Euclidean similarity."""

    def test_default_weights_sum_to_one(self):
        assert sum(DEFAULT_FEATURE_WEIGHTS.values()) == pytest.approx(1.0)

    def test_self_similarity_is_one(self, rng):
        for _ in range(50):
            vector = random_vector(rng)
            assert weighted_similarity(vector, vector) == 1.0

    def test_symmetric_and_bounded(self, rng):
        for _ in range(50):
            a, b = random_vector(rng), random_vector(rng)
            forward = weighted_similarity(a, b)
            assert forward == pytest.approx(weighted_similarity(b, a))
            assert 0.0 < forward <= 1.0

    def test_energy_outweighs_key(self):
        base = FeatureVector.neutral()
        energy_shift = FeatureVector.from_mapping({"energy": 1.0})
        key_shift = FeatureVector.from_mapping({"key": 1.0})

        assert weighted_similarity(base, energy_shift) < weighted_similarity(base, key_shift)


class TestCosineSimilarity:
    """Test cosine similarity edge cases."""

    def test_self_similarity(self, rng):
        vector = random_vector(rng)
        assert cosine_similarity(vector, vector) == pytest.approx(1.0)

    def test_zero_vector(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 0.5]) == 0.0

    def test_dimension_mismatch(self):
        assert cosine_similarity([1.0, 0.5], [1.0]) == 0.0


class TestExplanations:
    """Test similarity explanations."""

    def test_top_matching_features(self):
        features = FeatureVector.from_mapping({"energy": 0.9, "valence": 0.1})
        target = FeatureVector.from_mapping({"energy": 0.9, "valence": 0.9})

        top = top_matching_features(features, target, count=10)

        assert top[-1] == "mood"
        assert "energy" in top[:9]

    def test_explanation_text(self):
        vector = FeatureVector.neutral()

        text = explain_similarity(vector, vector, 0.876)

        assert text.startswith("Matches your taste in ")
        assert text.endswith("(88% similar)")


class TestDiscoveryScore:
    """Test discovery scoring."""

    @pytest.fixture
    def scorer(self, today):
        return DiscoveryScorer(today=lambda: today)

    def test_bounds(self, scorer, track_factory):
        for popularity in range(0, 101):
            for release_date in ("2024-01-01", "1990-05-05", None):
                track = track_factory("t", popularity=popularity, release_date=release_date)
                assert 0 <= scorer.calculate_discovery_score(track) <= 100

    def test_non_increasing_in_popularity(self, scorer, track_factory):
        for release_date in ("2024-02-01", "2023-02-01", "2000-01-01"):
            scores = [
                scorer.calculate_discovery_score(track_factory("t", popularity=p, release_date=release_date))
                for p in range(0, 101)
            ]
            assert all(a >= b for a, b in zip(scores, scores[1:]))

    def test_bonus_tiers(self, scorer, track_factory):
        assert scorer.calculate_discovery_score(track_factory("a", popularity=70)) == 30
        assert scorer.calculate_discovery_score(track_factory("b", popularity=30)) == 80
        assert scorer.calculate_discovery_score(track_factory("c", popularity=10)) == 100

    def test_freshness_bonus(self, scorer, track_factory):
        fresh = track_factory("fresh", popularity=25, release_date="2023-11-01")
        old = track_factory("old", popularity=25, release_date="2010-11-01")

        assert scorer.calculate_discovery_score(fresh) == 100
        assert scorer.calculate_discovery_score(old) == 85

    def test_missing_popularity_counts_as_zero(self, scorer, track_factory):
        assert scorer.calculate_discovery_score(track_factory("x", popularity=None)) == 100

    def test_module_function_with_date(self, track_factory):
        track = track_factory("x", popularity=25, release_date="2020-01-01")

        assert discovery_score(track, today=date(2020, 6, 1)) == 100
        assert discovery_score(track, today=date(2030, 6, 1)) == 85


class TestMixDiscoveryScore:
    """Test discovery mix ranking score."""

    def test_recent_release_bonus(self, track_factory):
        scorer = DiscoveryScorer(today=lambda: date(2024, 6, 4))
        recent = track_factory("r", popularity=40, release_date="2024-05-01")
        older = track_factory("o", popularity=40, release_date="2023-05-01")

        assert scorer.calculate_mix_discovery_score(recent) == 50
        assert scorer.calculate_mix_discovery_score(older) == 30

    def test_uniqueness_adds_to_score(self, track_factory):
        scorer = DiscoveryScorer(today=lambda: date(2024, 6, 4))
        extreme = track_factory(
            "e", popularity=40, release_date="2000-01-01",
            energy=1.0, valence=0.0, danceability=1.0, acousticness=1.0, instrumentalness=1.0,
        )

        assert scorer.calculate_uniqueness(extreme) == pytest.approx(0.7)
        assert scorer.calculate_mix_discovery_score(extreme) == pytest.approx(30 + 0.7 * 15)
