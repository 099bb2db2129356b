"""
Shared fixtures for BeatBandit tests.
"""

import random
from datetime import date, datetime
from typing import Optional, Sequence

import pytest

from beatbandit.models.learning_models import ListeningContext
from beatbandit.models.track_models import Artist, AudioFeatures, Track
from beatbandit.services.context_resolver import resolve_context

# Tuesday morning
FIXED_NOW = datetime(2024, 6, 4, 8, 30)


def make_track(
    track_id: str,
    popularity: Optional[int] = 50,
    artist_id: Optional[str] = None,
    genres: Sequence[str] = (),
    release_date: Optional[str] = "2015-01-01",
    **features
) -> Track:
    """
    Build a track for tests.

    Keyword arguments are audio attributes (energy, valence, tempo, ...);
    without any the track has no audio features at all.
    """
    artist = Artist(id=artist_id or f"artist-{track_id}", name=f"Artist {track_id}", genres=tuple(genres))
    return Track(
        id=track_id,
        name=f"Track {track_id}",
        artists=(artist,),
        release_date=release_date,
        popularity=popularity,
        audio_features=AudioFeatures(**features) if features else None,
    )


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def today() -> date:
    return FIXED_NOW.date()


@pytest.fixture
def morning_context() -> ListeningContext:
    return resolve_context(FIXED_NOW)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


@pytest.fixture
def feature_pool():
    """Twenty tracks with full audio features and spread-out popularity."""
    tracks = []
    for i in range(20):
        tracks.append(make_track(
            f"t{i}",
            popularity=i * 5,
            artist_id=f"a{i % 7}",
            genres=("indie rock",) if i % 2 else ("ambient",),
            energy=(i % 10) / 10,
            valence=((i * 3) % 10) / 10,
            danceability=0.5,
            acousticness=((i * 7) % 10) / 10,
            instrumentalness=0.1,
            liveness=0.2,
            speechiness=0.05,
            tempo=80 + i * 5,
            loudness=-20 + (i % 5),
            key=i % 12,
            mode=i % 2,
        ))
    return tracks


@pytest.fixture
def track_factory():
    return make_track
