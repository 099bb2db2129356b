"""
Recommendation Models

Results handed back to callers. A Recommendation is created once per
strategy invocation and never mutated; re-scoring creates a new one.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from .learning_models import ListeningContext
from .track_models import FeatureVector, Track


@dataclass(frozen=True)
class Recommendation:
    """A track plus the scores and reasoning that put it on the list."""
    track: Track
    composite_score: float
    discovery_score: float
    similarity: float
    strategy: str
    explanation: str
    features: Optional[FeatureVector] = None

    @property
    def track_id(self) -> str:
        return self.track.id

    def rescored(self, composite_score: float, **changes) -> "Recommendation":
        return replace(self, composite_score=composite_score, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "track_id": self.track.id,
            "name": self.track.name,
            "artist_ids": self.track.artist_ids,
            "composite_score": self.composite_score,
            "discovery_score": self.discovery_score,
            "similarity": self.similarity,
            "strategy": self.strategy,
            "explanation": self.explanation,
        }


@dataclass
class SelectionResult:
    """
    Outcome of a selectRecommendations call.

    ``warnings`` carries non-fatal conditions such as
    ``insufficient_candidates``; an empty ``tracks`` list with the
    ``no_candidates`` warning is the only terminal failure.
    """
    tracks: List[Recommendation]
    strategy: str
    confidence: float
    context: Optional[ListeningContext] = None
    warnings: List[str] = field(default_factory=list)
    fallback_triggered: bool = False
    strategy_breakdown: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def empty(cls, context: Optional[ListeningContext], reason: str) -> "SelectionResult":
        return cls(tracks=[], strategy="none", confidence=0.0, context=context, warnings=[reason])


@dataclass
class MixResult:
    """A generated personalized mix."""
    mix_id: str
    mix_type: str
    created: datetime
    tracks: List[Recommendation]
    seed_data: Dict[str, Any]
    context: ListeningContext

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.mix_id,
            "type": self.mix_type,
            "created": self.created.isoformat(),
            "tracks": [rec.to_dict() for rec in self.tracks],
            "seed_data": self.seed_data,
            "context": self.context.to_dict(),
        }


@dataclass(frozen=True)
class QueueEntry:
    """A queued track and why it was queued (similar/contextual/discovery)."""
    track: Track
    reason: str
