"""
Mix Generator

Builds personalized mixes from a candidate pool:
- discovery: low-popularity tracks ranked by the mix discovery score
- mood: tracks ranked by fit to a mood (the context's by default)
- genre: tracks whose genres contain the requested genre
- artist: a share of seed-artist tracks padded with other artists
- decade: tracks released within a decade
- anything else: contextual recommendations
"""

import math
import random
import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

import structlog

from ..models.learning_models import ListeningContext, Mood
from ..models.recommendation_models import MixResult, Recommendation
from ..models.track_models import FeatureVector, Track
from ..scoring.discovery_scorer import DiscoveryScorer
from ..scoring.feature_codec import encode_track, resolved_audio_features
from ..scoring.mood_fit import mood_fit_score
from ..strategies.base_strategy import StrategyConstraints
from ..strategies.contextual_strategy import ContextualStrategy
from .record_store import RecordStore

logger = structlog.get_logger(__name__)

MIXES_COLLECTION = "mixes"

DISCOVERY_MIX_MAX_POPULARITY = 50
ARTIST_MIX_SEED_SHARE = 0.3


class MixGenerator:
    """Generates and stores typed mixes."""

    def __init__(
        self,
        contextual: Optional[ContextualStrategy] = None,
        store: Optional[RecordStore] = None,
        rng: Optional[random.Random] = None,
        discovery_scorer: Optional[DiscoveryScorer] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize mix generator.

        Args:
            contextual: Contextual strategy used for default mixes
            store: Record store for generated mixes
            rng: Random generator for shuffled mix types
            discovery_scorer: Shared discovery scorer
            clock: Clock for mix ids and timestamps
        """
        self.discovery_scorer = discovery_scorer or DiscoveryScorer()
        self.contextual = contextual or ContextualStrategy(discovery_scorer=self.discovery_scorer)
        self.store = store
        self.rng = rng or random.Random()
        self.clock = clock or datetime.now
        self.logger = logger.bind(component="MixGenerator")
        self._generated = 0

    @property
    def mixes_generated(self) -> int:
        """Mixes in the store, or generated in this process when it is down."""
        if self.store is not None and self.store.available:
            return self.store.count(MIXES_COLLECTION)
        return self._generated

    async def build_mix(
        self,
        mix_type: str,
        seed_data: Dict[str, Any],
        pool: Sequence[Track],
        context: ListeningContext,
        preference: FeatureVector,
        size: int = 50
    ) -> MixResult:
        """
        Build a mix and save it.

        Args:
            mix_type: discovery, mood, genre, artist, decade or anything else
            seed_data: Type-specific seed (``mood``, ``genre``, ``artist_id``, ``decade``)
            pool: Candidate tracks
            context: Current listening context
            preference: Preferred feature vector (default mixes)
            size: Maximum mix length

        Returns:
            The generated mix
        """
        seed_data = dict(seed_data or {})

        if mix_type == "discovery":
            tracks = self._discovery_mix(pool, size)
        elif mix_type == "mood":
            mood = self._seed_mood(seed_data.get("mood"), context)
            tracks = self._mood_mix(pool, mood, size)
        elif mix_type == "genre":
            tracks = self._genre_mix(pool, seed_data.get("genre"), size)
        elif mix_type == "artist":
            tracks = self._artist_mix(pool, seed_data.get("artist_id"), size)
        elif mix_type == "decade":
            tracks = self._decade_mix(pool, seed_data.get("decade"), size)
        else:
            tracks = await self.contextual.generate(
                pool, context, preference, StrategyConstraints(limit=size)
            )

        created = self.clock()
        mix = MixResult(
            mix_id=f"{mix_type}_{int(created.timestamp() * 1000)}",
            mix_type=mix_type,
            created=created,
            tracks=tracks,
            seed_data=seed_data,
            context=context,
        )
        self._save(mix)

        self.logger.info("Mix generated", mix_id=mix.mix_id, mix_type=mix_type, tracks=len(tracks))
        return mix

    def _seed_mood(self, value: Any, context: ListeningContext) -> Mood:
        if not value:
            return context.suggested_mood
        try:
            return Mood(value)
        except ValueError:
            self.logger.warning("Unknown mood for mood mix", mood=value, fallback=context.suggested_mood.value)
            return context.suggested_mood

    def _save(self, mix: MixResult) -> None:
        self._generated += 1
        if self.store is not None and not self.store.put(MIXES_COLLECTION, mix.mix_id, mix.to_record()):
            self.logger.warning("Mix not persisted", mix_id=mix.mix_id)

    def _recommend(self, track: Track, score: float, mix_type: str, explanation: str) -> Recommendation:
        return Recommendation(
            track=track,
            composite_score=score,
            discovery_score=self.discovery_scorer.calculate_discovery_score(track),
            similarity=0.0,
            strategy=f"{mix_type}-mix",
            explanation=explanation,
            features=encode_track(track),
        )

    def _discovery_mix(self, pool: Sequence[Track], size: int) -> List[Recommendation]:
        candidates = [
            track for track in pool
            if track.popularity is not None
            and track.popularity < DISCOVERY_MIX_MAX_POPULARITY
            and track.audio_features is not None
        ]
        scored = [
            self._recommend(
                track,
                self.discovery_scorer.calculate_mix_discovery_score(track),
                "discovery",
                "Fresh find for your discovery mix"
            )
            for track in candidates
        ]
        scored.sort(key=lambda rec: rec.composite_score, reverse=True)
        return scored[:size]

    def _mood_mix(self, pool: Sequence[Track], mood: Mood, size: int) -> List[Recommendation]:
        scored = [
            self._recommend(
                track,
                mood_fit_score(resolved_audio_features(track), mood),
                "mood",
                f"Fits a {mood.value} mood"
            )
            for track in pool
        ]
        scored.sort(key=lambda rec: rec.composite_score, reverse=True)
        return scored[:size]

    def _genre_mix(self, pool: Sequence[Track], genre: Optional[str], size: int) -> List[Recommendation]:
        if not genre:
            self.logger.warning("Genre mix requested without a genre")
            return []

        needle = genre.lower()
        matches = [
            track for track in pool
            if any(needle in candidate.lower() for candidate in track.artist_genres)
        ]
        self.rng.shuffle(matches)
        return [
            self._recommend(track, 0.0, "genre", f"Part of your {genre} mix")
            for track in matches[:size]
        ]

    def _artist_mix(self, pool: Sequence[Track], artist_id: Optional[str], size: int) -> List[Recommendation]:
        if not artist_id:
            self.logger.warning("Artist mix requested without an artist")
            return []

        seed_tracks = [track for track in pool if artist_id in track.artist_ids]
        others = [track for track in pool if artist_id not in track.artist_ids]
        self.rng.shuffle(others)

        seed_count = math.floor(size * ARTIST_MIX_SEED_SHARE)
        selected = seed_tracks[:seed_count]
        selected += others[:size - len(selected)]

        return [
            self._recommend(
                track,
                0.0,
                "artist",
                "From your seed artist" if artist_id in track.artist_ids else "Similar artist pick"
            )
            for track in selected
        ]

    def _decade_mix(self, pool: Sequence[Track], decade: Any, size: int) -> List[Recommendation]:
        # "2010s" and 2010 both mean the decade starting in 2010
        match = re.match(r"\d+", str(decade)) if decade is not None else None
        if match is None:
            self.logger.warning("Decade mix requested without a usable decade", decade=decade)
            return []

        decade = int(match.group())
        matches = [
            track for track in pool
            if track.release_year is not None and decade <= track.release_year <= decade + 9
        ]
        self.rng.shuffle(matches)
        return [
            self._recommend(track, 0.0, "decade", f"Straight from the {decade}s")
            for track in matches[:size]
        ]
