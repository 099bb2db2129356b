"""
Feedback Service

Records listener feedback (like, love, dislike, play, skip), keeps the
liked/disliked/listening-history collections and drives the preference
learner. In-memory collections are written through to the record store, so
the service keeps working when the store is down.
"""

import threading
from collections import Counter, defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

import structlog

from ..models.learning_models import FeedbackKind, ListeningContext
from ..models.recommendation_models import Recommendation
from ..models.track_models import Track
from ..scoring.discovery_scorer import DiscoveryScorer
from ..scoring.feature_codec import encode_track
from .preference_learner import PreferenceLearner
from .record_store import RecordStore

logger = structlog.get_logger(__name__)

LOVE_WEIGHT = 1.5
QUICK_SKIP_WEIGHT = 0.5

FEEDBACK_COLLECTIONS = ("feedback", "liked_tracks", "disliked_tracks", "listening_history")


class FeedbackService:
    """
    Feedback log plus preference learning.

    - like/love: liked-track record, preference pulled toward the track
      (love counts 1.5x)
    - dislike: disliked-track record, preference pushed away
    - play: listening-history update, preference unchanged
    - skip: an implicit half-weight dislike when skipped within
      ``quick_skip_ms``
    """

    def __init__(
        self,
        learner: PreferenceLearner,
        store: Optional[RecordStore] = None,
        quick_skip_ms: int = 5000,
        discovery_scorer: Optional[DiscoveryScorer] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.learner = learner
        self.store = store
        self.quick_skip_ms = quick_skip_ms
        self.discovery_scorer = discovery_scorer or DiscoveryScorer()
        self.clock = clock or datetime.now
        self.logger = logger.bind(component="FeedbackService")

        self._liked: Dict[str, Dict[str, Any]] = {}
        self._disliked: Dict[str, Dict[str, Any]] = {}
        self._history: Dict[str, Dict[str, Any]] = {}
        self._feedback: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def load_state(self) -> None:
        """Reload feedback collections from the store."""
        if self.store is None:
            return

        liked = {r["id"]: r for r in self.store.get_all("liked_tracks") if isinstance(r, dict) and "id" in r}
        disliked = {r["id"]: r for r in self.store.get_all("disliked_tracks") if isinstance(r, dict) and "id" in r}
        history = {
            r["track_id"]: r for r in self.store.get_all("listening_history")
            if isinstance(r, dict) and "track_id" in r
        }
        feedback = [r for r in self.store.get_all("feedback") if isinstance(r, dict)]

        with self._lock:
            self._liked, self._disliked, self._history, self._feedback = liked, disliked, history, feedback

        self.logger.info(
            "Feedback state loaded",
            liked=len(liked),
            disliked=len(disliked),
            history=len(history),
            feedback=len(feedback)
        )

    # Recording

    def record(
        self,
        track_id: str,
        kind: FeedbackKind,
        track: Optional[Track] = None,
        recommendation: Optional[Recommendation] = None,
        context: Optional[ListeningContext] = None,
        played_ms: Optional[int] = None
    ) -> None:
        """
        Record one feedback event.

        Args:
            track_id: Track the feedback is about
            kind: Interaction kind
            track: Track details, needed to learn from the event
            recommendation: The recommendation the track came from, if any
            context: Listening context at the time of the event
            played_ms: Milliseconds played (plays and skips)
        """
        kind = FeedbackKind(kind)
        track = track or (recommendation.track if recommendation else None)
        self._log_feedback(track_id, kind, recommendation, context, played_ms)

        if track is None:
            self.logger.debug("No track details, preference unchanged", track_id=track_id, kind=kind.value)
            return

        if kind in (FeedbackKind.LIKE, FeedbackKind.LOVE):
            self._store_liked(track, recommendation)
            weight = LOVE_WEIGHT if kind == FeedbackKind.LOVE else 1.0
            self.learner.learn_like(encode_track(track), weight)
        elif kind == FeedbackKind.DISLIKE:
            self._store_disliked(track, recommendation)
            self.learner.learn_dislike(encode_track(track))
        elif kind == FeedbackKind.PLAY:
            self._record_play(track, played_ms or 0)
        elif kind == FeedbackKind.SKIP:
            if (played_ms or 0) < self.quick_skip_ms:
                self.learner.learn_dislike(encode_track(track), QUICK_SKIP_WEIGHT)
                self.logger.debug("Quick skip counted as implicit dislike", track_id=track_id)

    def _log_feedback(
        self,
        track_id: str,
        kind: FeedbackKind,
        recommendation: Optional[Recommendation],
        context: Optional[ListeningContext],
        played_ms: Optional[int]
    ) -> None:
        entry = {
            "track_id": track_id,
            "action": kind.value,
            "strategy": recommendation.strategy if recommendation else None,
            "context": context.to_dict() if context else None,
            "played_ms": played_ms,
            "timestamp": self.clock().isoformat(),
        }
        with self._lock:
            self._feedback.append(entry)
        if self.store is not None and self.store.append("feedback", entry) is None:
            self.logger.warning("Feedback entry not persisted", track_id=track_id)

    def _store_liked(self, track: Track, recommendation: Optional[Recommendation]) -> None:
        record = {
            "id": track.id,
            "name": track.name,
            "artist_ids": track.artist_ids,
            "popularity": track.popularity or 0,
            "discovery_score": (
                recommendation.discovery_score if recommendation
                else self.discovery_scorer.calculate_discovery_score(track)
            ),
            "features": encode_track(track).to_dict(),
            "strategy": recommendation.strategy if recommendation else None,
            "similarity": recommendation.similarity if recommendation else None,
            "timestamp": self.clock().isoformat(),
        }
        with self._lock:
            self._liked[track.id] = record
            self._disliked.pop(track.id, None)
        self._write("liked_tracks", track.id, record)
        self._remove("disliked_tracks", track.id)

    def _store_disliked(self, track: Track, recommendation: Optional[Recommendation]) -> None:
        record = {
            "id": track.id,
            "name": track.name,
            "artist_ids": track.artist_ids,
            "features": encode_track(track).to_dict(),
            "strategy": recommendation.strategy if recommendation else None,
            "timestamp": self.clock().isoformat(),
        }
        with self._lock:
            self._disliked[track.id] = record
            self._liked.pop(track.id, None)
        self._write("disliked_tracks", track.id, record)
        self._remove("liked_tracks", track.id)

    def _record_play(self, track: Track, duration_ms: int) -> None:
        now = self.clock().isoformat()
        with self._lock:
            existing = self._history.get(track.id)
            if existing:
                entry = dict(existing)
                entry["play_count"] += 1
                entry["total_duration"] += duration_ms
                entry["last_played"] = now
            else:
                entry = {
                    "track_id": track.id,
                    "name": track.name,
                    "artist_ids": track.artist_ids,
                    "play_count": 1,
                    "total_duration": duration_ms,
                    "first_played": now,
                    "last_played": now,
                }
            self._history[track.id] = entry
        self._write("listening_history", track.id, entry)

    def _write(self, collection: str, key: str, record: Dict[str, Any]) -> None:
        if self.store is not None and not self.store.put(collection, key, record):
            self.logger.warning("Feedback record not persisted", collection=collection, key=key)

    def _remove(self, collection: str, key: str) -> None:
        if self.store is not None:
            self.store.delete(collection, key)

    # Queries

    def is_liked(self, track_id: str) -> bool:
        return track_id in self._liked

    def is_disliked(self, track_id: str) -> bool:
        return track_id in self._disliked

    def remove_like(self, track_id: str) -> None:
        with self._lock:
            self._liked.pop(track_id, None)
        self._remove("liked_tracks", track_id)

    def liked_tracks(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Liked-track records, most recent first."""
        records = sorted(self._liked.values(), key=lambda r: r["timestamp"], reverse=True)
        return records[:limit]

    def disliked_tracks(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Disliked-track records, most recent first."""
        records = sorted(self._disliked.values(), key=lambda r: r["timestamp"], reverse=True)
        return records[:limit]

    def filter_disliked(self, tracks: Sequence[Track]) -> List[Track]:
        """Drop disliked tracks from a candidate pool."""
        disliked = set(self._disliked)
        return [track for track in tracks if track.id not in disliked]

    def listening_stats(self) -> Dict[str, Any]:
        history = list(self._history.values())
        feedback = list(self._feedback)
        total_plays = sum(entry["play_count"] for entry in history)

        return {
            "liked_count": len(self._liked),
            "disliked_count": len(self._disliked),
            "unique_tracks_played": len(history),
            "total_plays": total_plays,
            "total_duration": sum(entry["total_duration"] for entry in history),
            "average_plays_per_track": total_plays / len(history) if history else 0,
            "actions": dict(Counter(entry["action"] for entry in feedback)),
            "feedback_count": len(feedback),
        }

    def recommendation_insights(self) -> Dict[str, Any]:
        """Which strategies produced the tracks the listener liked."""
        liked = list(self._liked.values())
        strategy_counts: Counter = Counter()
        similarities: Dict[str, List[float]] = defaultdict(list)
        discovery_scores: Dict[str, List[float]] = defaultdict(list)

        for record in liked:
            strategy = record.get("strategy") or "unknown"
            strategy_counts[strategy] += 1
            if record.get("similarity") is not None:
                similarities[strategy].append(record["similarity"])
            if record.get("discovery_score") is not None:
                discovery_scores[strategy].append(record["discovery_score"])

        most_common = strategy_counts.most_common(1)
        return {
            "total_likes": len(liked),
            "strategy_counts": dict(strategy_counts),
            "avg_similarity": {k: sum(v) / len(v) for k, v in similarities.items()},
            "avg_discovery_score": {k: sum(v) / len(v) for k, v in discovery_scores.items()},
            "most_successful_strategy": most_common[0][0] if most_common else "unknown",
        }

    def clear_all_data(self) -> None:
        """Wipe all feedback and reset the preference model to neutral."""
        with self._lock:
            self._liked, self._disliked, self._history, self._feedback = {}, {}, {}, []
        if self.store is not None:
            for collection in FEEDBACK_COLLECTIONS:
                self.store.clear(collection)
        self.learner.reset()
        self.logger.info("All feedback data cleared")
