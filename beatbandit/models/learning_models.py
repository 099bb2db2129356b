"""
Learning Models for BeatBandit

State carried between requests: bandit arms, the learned preference model,
listening context snapshots and listening sessions. Arms, preferences and
contexts are immutable snapshots; updates produce new instances so that
concurrent readers never see a half-applied change.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .track_models import FeatureVector


class FeedbackKind(str, Enum):
    """Listener interactions the engine learns from."""
    LIKE = "like"
    LOVE = "love"
    DISLIKE = "dislike"
    PLAY = "play"
    SKIP = "skip"


class TimeOfDay(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


class DayType(str, Enum):
    WEEKDAY = "weekday"
    WEEKEND = "weekend"


class Mood(str, Enum):
    ENERGETIC = "energetic"
    FOCUS = "focus"
    RELAXED = "relaxed"
    PARTY = "party"
    CHILL = "chill"


@dataclass(frozen=True)
class ListeningContext:
    """Coarse listening context derived from wall-clock time."""
    time_of_day: TimeOfDay
    day_type: DayType
    suggested_mood: Mood
    day_of_week: int  # 0 = Sunday
    hour: int
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time_of_day": self.time_of_day.value,
            "day_type": self.day_type.value,
            "suggested_mood": self.suggested_mood.value,
            "day_of_week": self.day_of_week,
            "hour": self.hour,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ListeningContext":
        return cls(
            time_of_day=TimeOfDay(data["time_of_day"]),
            day_type=DayType(data["day_type"]),
            suggested_mood=Mood(data["suggested_mood"]),
            day_of_week=int(data.get("day_of_week", 0)),
            hour=int(data.get("hour", 0)),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass(frozen=True)
class BanditArm:
    """
    One selectable strategy with a Beta(success_weight, failure_weight) belief.

    Weights start at the neutral prior (1, 1) and only ever grow.
    """
    arm_id: str
    success_weight: float = 1.0
    failure_weight: float = 1.0
    pulls: int = 0
    cumulative_reward: float = 0.0
    last_pull: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        return self.success_weight / (self.success_weight + self.failure_weight)

    def pulled(self, when: datetime) -> "BanditArm":
        return replace(self, pulls=self.pulls + 1, last_pull=when)

    def rewarded(self, reward: float) -> "BanditArm":
        if reward > 0:
            return replace(
                self,
                success_weight=self.success_weight + reward,
                cumulative_reward=self.cumulative_reward + reward,
            )
        return replace(
            self,
            failure_weight=self.failure_weight + abs(reward),
            cumulative_reward=self.cumulative_reward + reward,
        )

    def to_record(self, saved_at: datetime) -> Dict[str, Any]:
        return {
            "arm_id": self.arm_id,
            "success_weight": self.success_weight,
            "failure_weight": self.failure_weight,
            "pulls": self.pulls,
            "cumulative_reward": self.cumulative_reward,
            "last_pull": self.last_pull.isoformat() if self.last_pull else None,
            "last_updated": saved_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "BanditArm":
        last_pull = record.get("last_pull")
        return cls(
            arm_id=record["arm_id"],
            success_weight=float(record.get("success_weight", 1.0)),
            failure_weight=float(record.get("failure_weight", 1.0)),
            pulls=int(record.get("pulls", 0)),
            cumulative_reward=float(record.get("cumulative_reward", 0.0)),
            last_pull=datetime.fromisoformat(last_pull) if last_pull else None,
        )


@dataclass(frozen=True)
class PreferenceModel:
    """Learned preferred feature values plus the number of updates applied."""
    vector: FeatureVector = field(default_factory=FeatureVector.neutral)
    sample_count: int = 0
    last_updated: Optional[datetime] = None

    @property
    def is_trained(self) -> bool:
        return self.sample_count > 0

    def to_record(self) -> Dict[str, Any]:
        return {
            "key": "audio_features",
            "value": self.vector.to_dict(),
            "sample_count": self.sample_count,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "PreferenceModel":
        last_updated = record.get("last_updated")
        return cls(
            vector=FeatureVector.from_mapping(record.get("value") or {}),
            sample_count=int(record.get("sample_count", 0)),
            last_updated=datetime.fromisoformat(last_updated) if last_updated else None,
        )


@dataclass(frozen=True)
class InteractionRecord:
    track_id: str
    kind: FeedbackKind
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "track_id": self.track_id,
            "kind": self.kind.value,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class Session:
    """
    One listening session, tied to the context it started in.

    Appended to while listening; terminal once a new session starts.
    """
    session_id: str
    context: ListeningContext
    started_at: datetime
    interactions: List[InteractionRecord] = field(default_factory=list)
    tracks: List[Dict[str, Any]] = field(default_factory=list)
    ended_at: Optional[datetime] = None

    def to_record(self, now: datetime) -> Dict[str, Any]:
        """Persisted form; an open session is measured up to ``now``."""
        end = self.ended_at or now
        return {
            "id": self.session_id,
            "context": self.context.to_dict(),
            "started_at": self.started_at.isoformat(),
            "ended_at": end.isoformat(),
            "duration_seconds": (end - self.started_at).total_seconds(),
            "interactions": [i.to_dict() for i in self.interactions],
            "tracks": list(self.tracks),
        }


@dataclass(frozen=True)
class ContextualPatterns:
    """What the listener tends to play in contexts like the current one."""
    preferred_genres: List[str] = field(default_factory=list)
    preferred_features: Optional[Dict[str, float]] = None
    total_tracks: int = 0
    session_count: int = 0
