"""
Discovery Scorer for BeatBandit

Handles obscurity-oriented scoring:
- Discovery score (inverse popularity plus freshness bonus) used by strategies
- Mix discovery score used when building discovery mixes
- Audio uniqueness of a track's feature combination
"""

from datetime import date
from typing import Callable, Optional

import structlog

from ..models.track_models import Track
from .feature_codec import resolved_audio_features

logger = structlog.get_logger(__name__)


class DiscoveryScorer:
    """
    Discovery-specific scoring for obscurity and freshness.

    The clock is injectable so freshness bonuses can be tested against a
    fixed "today".
    """

    def __init__(self, today: Optional[Callable[[], date]] = None):
        """
        Initialize discovery scorer.

        Args:
            today: Callable returning the current date (date.today by default)
        """
        self.logger = logger.bind(component="DiscoveryScorer")
        self._today = today or date.today

    def today(self) -> date:
        return self._today()

    def calculate_discovery_score(self, track: Track) -> float:
        """
        Calculate the discovery score of a track.

        Base is 100 - popularity, +20 below popularity 20, +10 below 40,
        +15 for releases at most one calendar year old with popularity
        under 30. Unknown popularity counts as 0.

        Args:
            track: Track to score

        Returns:
            Discovery score (0 to 100)
        """
        popularity = track.popularity or 0
        score = 100 - popularity

        if popularity < 20:
            score += 20
        elif popularity < 40:
            score += 10

        release_year = track.release_year
        if release_year is not None:
            age = self._today().year - release_year
            if age <= 1 and popularity < 30:
                score += 15

        return float(min(max(score, 0), 100))

    def calculate_mix_discovery_score(self, track: Track) -> float:
        """
        Score used to rank discovery mixes.

        Half the inverse popularity (unknown popularity counts as 50), +20
        for releases in the last 90 days, plus 15 x audio uniqueness.
        """
        popularity = track.popularity if track.popularity is not None else 50
        score = (100 - popularity) * 0.5

        release_day = track.release_day
        if release_day is not None:
            days_since_release = (self._today() - release_day).days
            if days_since_release < 90:
                score += 20

        if track.audio_features is not None:
            score += self.calculate_uniqueness(track) * 15

        return score

    def calculate_uniqueness(self, track: Track) -> float:
        """How far the track's features sit from the middle of the range (0 to 1)."""
        features = resolved_audio_features(track)
        extremes = [
            abs(features.energy - 0.5),
            abs(features.valence - 0.5),
            abs(features.danceability - 0.5),
            features.instrumentalness,
            features.acousticness,
        ]
        return sum(extremes) / len(extremes)


_default_scorer = DiscoveryScorer()


def discovery_score(track: Track, today: Optional[date] = None) -> float:
    """Discovery score using today's date, or the given one."""
    if today is None:
        return _default_scorer.calculate_discovery_score(track)
    return DiscoveryScorer(today=lambda: today).calculate_discovery_score(track)
