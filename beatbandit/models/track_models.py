"""
Track Models

Structured track, artist and feature-vector types shared by every scoring
component. Catalog payloads are converted once at the boundary so the
scoring code never has to guess at the shape of a track.
"""

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import structlog

logger = structlog.get_logger(__name__)


# Order matters: this is the layout of every FeatureVector.
FEATURE_NAMES: Tuple[str, ...] = (
    "energy",
    "valence",
    "danceability",
    "acousticness",
    "instrumentalness",
    "liveness",
    "speechiness",
    "tempo",
    "loudness",
    "key",
)

FEATURE_DIMENSIONS = len(FEATURE_NAMES)
NEUTRAL_FEATURE_VALUE = 0.5


def coerce_feature_value(value: Any) -> Optional[float]:
    """Finite float for a raw attribute; None when missing or not numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def coerce_pitch_class(value: Any) -> Optional[int]:
    number = coerce_feature_value(value)
    return None if number is None else int(number)


@dataclass(frozen=True)
class FeatureVector:
    """
    Ordered 10-dimensional summary of a track's musical character.

    Every component is finite and clamped to [0, 1]; non-finite values are
    replaced by the neutral value, and so are values that are not numbers.
    """
    values: Tuple[float, ...]

    def __post_init__(self):
        if len(self.values) != FEATURE_DIMENSIONS:
            raise ValueError(
                f"FeatureVector needs {FEATURE_DIMENSIONS} components, got {len(self.values)}"
            )
        cleaned = []
        for value in self.values:
            value = coerce_feature_value(value)
            if value is None:
                value = NEUTRAL_FEATURE_VALUE
            cleaned.append(min(1.0, max(0.0, value)))
        object.__setattr__(self, "values", tuple(cleaned))

    @classmethod
    def neutral(cls) -> "FeatureVector":
        return cls(tuple([NEUTRAL_FEATURE_VALUE] * FEATURE_DIMENSIONS))

    @classmethod
    def from_mapping(cls, data: Mapping[str, float]) -> "FeatureVector":
        """Build a vector from a name -> value mapping, neutral where missing."""
        return cls(tuple(
            data[name] if data.get(name) is not None else NEUTRAL_FEATURE_VALUE
            for name in FEATURE_NAMES
        ))

    def get(self, name: str) -> float:
        return self.values[FEATURE_NAMES.index(name)]

    def to_dict(self) -> Dict[str, float]:
        return dict(zip(FEATURE_NAMES, self.values))

    def __iter__(self) -> Iterator[float]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def __getitem__(self, index: int) -> float:
        return self.values[index]


@dataclass(frozen=True)
class AudioFeatures:
    """
    Raw audio attributes as reported by the catalog.

    Unit-interval attributes are already in [0, 1]; tempo is in BPM,
    loudness in dB and key is a pitch class 0-11 (None or -1 when unknown).
    """
    energy: Optional[float] = None
    valence: Optional[float] = None
    danceability: Optional[float] = None
    acousticness: Optional[float] = None
    instrumentalness: Optional[float] = None
    liveness: Optional[float] = None
    speechiness: Optional[float] = None
    tempo: Optional[float] = None
    loudness: Optional[float] = None
    key: Optional[int] = None
    mode: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["AudioFeatures"]:
        """Attributes from a catalog payload; unusable values count as missing."""
        if not data:
            return None
        known: Dict[str, Any] = {name: coerce_feature_value(data.get(name)) for name in FEATURE_NAMES}
        known["key"] = coerce_pitch_class(data.get("key"))
        known["mode"] = coerce_pitch_class(data.get("mode"))
        if all(value is None for value in known.values()):
            return None
        return cls(**known)

    def to_dict(self) -> Dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in FEATURE_NAMES + ("mode",)
            if getattr(self, name) is not None
        }


@dataclass(frozen=True)
class Artist:
    """Artist reference as attached to tracks or returned by top-artist calls."""
    id: Optional[str]
    name: str = ""
    genres: Tuple[str, ...] = ()
    popularity: Optional[int] = None

    @classmethod
    def from_catalog(cls, data: Mapping[str, Any]) -> "Artist":
        return cls(
            id=data.get("id"),
            name=data.get("name") or "",
            genres=tuple(data.get("genres") or ()),
            popularity=data.get("popularity"),
        )


@dataclass(frozen=True)
class Track:
    """
    Catalog track. Immutable once fetched.

    Only the identifier is required; everything else degrades to neutral
    defaults during scoring.
    """
    id: str
    name: str = ""
    artists: Tuple[Artist, ...] = ()
    album: Optional[str] = None
    release_date: Optional[str] = None
    popularity: Optional[int] = None
    genres: Tuple[str, ...] = ()
    audio_features: Optional[AudioFeatures] = None
    uri: Optional[str] = None
    preview_url: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            raise ValueError("Track requires a non-empty identifier")

    @property
    def primary_artist_id(self) -> Optional[str]:
        return self.artists[0].id if self.artists else None

    @property
    def artist_ids(self) -> List[str]:
        return [artist.id for artist in self.artists if artist.id]

    @property
    def artist_genres(self) -> List[str]:
        """Track genres plus the genres of its artists."""
        genres = list(self.genres)
        for artist in self.artists:
            genres.extend(artist.genres)
        return genres

    @property
    def release_year(self) -> Optional[int]:
        if not self.release_date:
            return None
        try:
            return int(str(self.release_date)[:4])
        except ValueError:
            return None

    @property
    def release_day(self) -> Optional[date]:
        """Full release date when the catalog gives day precision."""
        if not self.release_date or len(str(self.release_date)) < 10:
            return None
        try:
            return date.fromisoformat(str(self.release_date)[:10])
        except ValueError:
            return None

    @classmethod
    def from_catalog(cls, data: Mapping[str, Any]) -> "Track":
        """
        Create a track from a catalog (Spotify-shaped) payload.

        Audio features may be nested under ``audio_features`` or flattened
        onto the track object itself.

        Raises:
            ValueError: If the payload has no identifier
        """
        album = data.get("album") or {}
        if isinstance(album, str):
            album_name, release_date = album, data.get("release_date")
        else:
            album_name = album.get("name")
            release_date = album.get("release_date") or data.get("release_date")

        features = AudioFeatures.from_dict(data.get("audio_features")) \
            or AudioFeatures.from_dict(data)

        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            artists=tuple(Artist.from_catalog(a) for a in data.get("artists") or ()),
            album=album_name,
            release_date=release_date,
            popularity=data.get("popularity"),
            genres=tuple(data.get("genres") or ()),
            audio_features=features,
            uri=data.get("uri"),
            preview_url=data.get("preview_url"),
        )

    def to_snapshot(self) -> Dict[str, Any]:
        """Compact dictionary used for session and feedback records."""
        return {
            "id": self.id,
            "name": self.name,
            "artist_ids": self.artist_ids,
            "popularity": self.popularity,
            "genres": self.artist_genres,
            "audio_features": self.audio_features.to_dict() if self.audio_features else None,
        }


def deduplicate_tracks(tracks: List[Track]) -> List[Track]:
    """Drop repeated track ids, keeping the first occurrence."""
    seen = set()
    unique = []
    for track in tracks:
        if track.id in seen:
            continue
        seen.add(track.id)
        unique.append(track)
    return unique
