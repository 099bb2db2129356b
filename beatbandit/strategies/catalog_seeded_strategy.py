"""
Catalog-Seeded Strategy

Analyzes the listener's top tracks and artists, picks seeds (an anchor
track, a mid-popularity track, top artists, top genre) and asks the catalog
for seeded recommendations. When the catalog endpoint is unavailable or
slow, hidden gems are pulled from the listener's own library instead and
the outcome is flagged as a fallback.
"""

import asyncio
import random
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from ..api.base_client import CatalogEndpointUnavailable, CatalogServiceError
from ..api.catalog_client import CatalogService
from ..models.learning_models import ListeningContext
from ..models.recommendation_models import Recommendation
from ..models.track_models import Artist, FeatureVector, Track, deduplicate_tracks
from ..scoring.discovery_scorer import DiscoveryScorer
from ..scoring.feature_codec import encode_track
from ..scoring.similarity import weighted_similarity
from .base_strategy import BaseRecommendationStrategy, StrategyConstraints, StrategyOutcome

SEED_REQUEST_LIMIT = 20
FALLBACK_LIMIT = 20
MIN_SEED_POPULARITY = 20
DEFAULT_AVG_POPULARITY = 50.0
UNKNOWN_RELEASE_YEAR = 2020


@dataclass
class TasteAnalysis:
    """Summary of the listener's library used for seeding and scoring."""
    genres: Dict[str, int] = field(default_factory=dict)
    avg_popularity: float = DEFAULT_AVG_POPULARITY
    artist_frequency: Dict[str, int] = field(default_factory=dict)
    recent_trends: List[str] = field(default_factory=list)
    diversity_score: float = 0.0


@dataclass
class SeedSelection:
    tracks: List[str] = field(default_factory=list)
    artists: List[str] = field(default_factory=list)
    genres: List[str] = field(default_factory=list)


def analyze_taste(tracks: Sequence[Track], artists: Sequence[Artist]) -> TasteAnalysis:
    """
    Analyze the listener's taste.

    Genre counts come from top artists; artist frequency, average popularity
    and diversity (unique artists per track) from top tracks.
    """
    genre_counts: Counter = Counter()
    for artist in artists:
        genre_counts.update(artist.genres)

    artist_frequency: Counter = Counter()
    for track in tracks:
        artist_frequency.update(track.artist_ids)

    if tracks:
        avg_popularity = sum(track.popularity or 0 for track in tracks) / len(tracks)
        diversity = len(artist_frequency) / len(tracks)
    else:
        avg_popularity = DEFAULT_AVG_POPULARITY
        diversity = 0.0

    return TasteAnalysis(
        genres=dict(genre_counts),
        avg_popularity=avg_popularity,
        artist_frequency=dict(artist_frequency),
        recent_trends=[genre for genre, _ in genre_counts.most_common(5)],
        diversity_score=diversity,
    )


def select_seeds(
    tracks: Sequence[Track],
    artists: Sequence[Artist],
    analysis: TasteAnalysis,
    rng: random.Random
) -> SeedSelection:
    """Most popular track as anchor, one random track from the 30-70% band, top 2 artists, top genre."""
    seeds = SeedSelection()
    by_popularity = sorted(tracks, key=lambda t: t.popularity or 0, reverse=True)

    if by_popularity:
        seeds.tracks.append(by_popularity[0].id)

    mid_range = by_popularity[int(len(by_popularity) * 0.3):int(len(by_popularity) * 0.7)]
    if mid_range:
        seeds.tracks.append(rng.choice(mid_range).id)

    seeds.artists = [artist.id for artist in artists[:2] if artist.id]
    seeds.genres = analysis.recent_trends[:1]
    return seeds


def build_recommendation_params(
    seeds: SeedSelection,
    analysis: TasteAnalysis,
    max_popularity: int
) -> Dict[str, Any]:
    """Seed request capped below the listener's average popularity (never below 20)."""
    params: Dict[str, Any] = {"limit": SEED_REQUEST_LIMIT}

    if seeds.tracks:
        params["seed_tracks"] = ",".join(seeds.tracks[:2])
    if seeds.artists:
        params["seed_artists"] = ",".join(seeds.artists[:2])
    if seeds.genres:
        params["seed_genres"] = ",".join(seeds.genres[:1])

    capped = min(max_popularity, analysis.avg_popularity - 10)
    params["max_popularity"] = int(max(capped, MIN_SEED_POPULARITY))
    params["market"] = "US"
    return params


def catalog_score(track: Track, analysis: TasteAnalysis, today: date) -> float:
    """
    Hidden-gem score for catalog results.

    Base 100, -2 per popularity point above 60, +10 per trending genre,
    +20 when none of the artists is already in the listener's rotation,
    -2 per year for releases older than 10 years when the listener mostly
    plays popular music (an unknown release year counts as 2020). Floored
    at 0.
    """
    score = 100.0
    popularity = track.popularity or 0

    if popularity > 60:
        score -= (popularity - 60) * 2

    trends = set(analysis.recent_trends)
    score += sum(10 for genre in track.artist_genres if genre in trends)

    if not any(artist_id in analysis.artist_frequency for artist_id in track.artist_ids):
        score += 20

    release_year = track.release_year or UNKNOWN_RELEASE_YEAR
    years_old = today.year - release_year
    if years_old > 10 and analysis.avg_popularity > 50:
        score -= years_old * 2

    return max(score, 0.0)


class CatalogSeededStrategy(BaseRecommendationStrategy):
    """
    Catalog-backed strategy with a library fallback.

    Every catalog call is bounded by ``timeout_seconds``; timeouts and
    CatalogEndpointUnavailable switch to the fallback path.
    """

    name = "catalog-seeded"

    def __init__(
        self,
        catalog: Optional[CatalogService] = None,
        rng: Optional[random.Random] = None,
        timeout_seconds: float = 10.0,
        discovery_scorer: Optional[DiscoveryScorer] = None
    ):
        """
        Initialize the strategy.

        Args:
            catalog: Catalog service (the library fallback is always used without one)
            rng: Random generator for seed selection
            timeout_seconds: Upper bound for each catalog call
            discovery_scorer: Shared discovery scorer
        """
        super().__init__(discovery_scorer)
        self.catalog = catalog
        self.rng = rng or random.Random()
        self.timeout_seconds = timeout_seconds

    async def _call(self, factory: Callable[[], Awaitable[Any]]) -> Any:
        return await asyncio.wait_for(factory(), timeout=self.timeout_seconds)

    async def generate(
        self,
        pool: Sequence[Track],
        context: ListeningContext,
        preference: FeatureVector,
        constraints: StrategyConstraints
    ) -> List[Recommendation]:
        outcome = await self.run(pool, context, preference, constraints)
        return outcome.recommendations

    async def run(
        self,
        pool: Sequence[Track],
        context: ListeningContext,
        preference: FeatureVector,
        constraints: StrategyConstraints
    ) -> StrategyOutcome:
        top_tracks: List[Track] = []
        top_artists: List[Artist] = []
        fallback_triggered = self.catalog is None

        if self.catalog is not None:
            try:
                top_tracks = await self._call(self.catalog.fetch_top_tracks)
                top_artists = await self._call(self.catalog.fetch_top_artists)
            except (CatalogEndpointUnavailable, asyncio.TimeoutError) as e:
                self.logger.warning(
                    "Listener library unavailable, analyzing candidate pool instead",
                    error_type=type(e).__name__
                )
                fallback_triggered = True

        if not top_tracks:
            top_tracks = list(pool)

        analysis = analyze_taste(top_tracks, top_artists)
        today = self.discovery_scorer.today()

        fetched: List[Track] = []
        if not fallback_triggered:
            seeds = select_seeds(top_tracks, top_artists, analysis, self.rng)
            params = build_recommendation_params(seeds, analysis, constraints.max_popularity)
            self.logger.debug("Requesting seeded recommendations", params=params)
            try:
                fetched = await self._call(lambda: self.catalog.fetch_seeded_recommendations(params))
            except (CatalogEndpointUnavailable, asyncio.TimeoutError) as e:
                self.logger.warning(
                    "Seeded recommendations unavailable, using library fallback",
                    error_type=type(e).__name__
                )
                fallback_triggered = True

        if fallback_triggered:
            fetched = await self._library_fallback(top_tracks, pool, analysis, today)

        recommendations = [
            self._recommend(track, analysis, preference, today, fallback_triggered)
            for track in fetched
        ]

        self.logger.info(
            "Catalog-seeded recommendations generated",
            count=len(recommendations),
            fallback_triggered=fallback_triggered,
            avg_popularity=round(analysis.avg_popularity, 1)
        )
        return StrategyOutcome(
            recommendations=self._rank(recommendations, constraints.limit),
            fallback_triggered=fallback_triggered
        )

    async def _library_fallback(
        self,
        top_tracks: Sequence[Track],
        pool: Sequence[Track],
        analysis: TasteAnalysis,
        today: date
    ) -> List[Track]:
        """Lower-popularity library tracks from the listener's genres or artists."""
        saved: List[Track] = []
        if self.catalog is not None:
            try:
                saved = await self._call(self.catalog.fetch_saved_tracks)
            except (CatalogServiceError, asyncio.TimeoutError) as e:
                self.logger.warning("Saved tracks unavailable for fallback", error=str(e))

        library = deduplicate_tracks(list(top_tracks) + saved + list(pool))
        trends = set(analysis.recent_trends)

        below_average = [t for t in library if (t.popularity or 0) < analysis.avg_popularity]
        gems = [
            t for t in below_average
            if trends.intersection(t.artist_genres)
            or any(artist_id in analysis.artist_frequency for artist_id in t.artist_ids)
        ]

        if gems:
            gems.sort(key=lambda t: catalog_score(t, analysis, today), reverse=True)
            return gems[:FALLBACK_LIMIT]

        below_average.sort(key=lambda t: t.popularity or 0, reverse=True)
        return below_average[:FALLBACK_LIMIT]

    def _recommend(
        self,
        track: Track,
        analysis: TasteAnalysis,
        preference: FeatureVector,
        today: date,
        from_library: bool
    ) -> Recommendation:
        features = encode_track(track)
        score = catalog_score(track, analysis, today)
        source = "your library" if from_library else "the catalog"
        return Recommendation(
            track=track,
            composite_score=score,
            discovery_score=self.discovery_scorer.calculate_discovery_score(track),
            similarity=weighted_similarity(features, preference),
            strategy=self.name,
            explanation=f"Seeded from your favorites via {source} (score: {round(score)})",
            features=features,
        )
