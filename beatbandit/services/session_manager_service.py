"""
Session Manager Service for BeatBandit

Owns the current listening session and mines stored sessions for what the
listener plays in contexts like the current one:
- Session lifecycle tied to the context snapshot it started in
- Periodic flushes, plus immediate flushes on likes and dislikes
- Context-similarity ranking of past sessions
- Genre and feature patterns that feed the contextual strategy
"""

import threading
import uuid
from collections import Counter
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

import structlog

from ..models.learning_models import (
    ContextualPatterns,
    FeedbackKind,
    InteractionRecord,
    ListeningContext,
    Session,
)
from ..models.track_models import Track
from .context_resolver import ContextResolver
from .record_store import RecordStore

logger = structlog.get_logger(__name__)

SESSIONS_COLLECTION = "sessions"

# Features averaged across session tracks
PATTERN_FEATURES = ("energy", "valence", "danceability", "acousticness", "instrumentalness")

TOP_GENRES = 5


def context_similarity(first: ListeningContext, second: ListeningContext) -> float:
    """
    Similarity of two listening contexts.

    +30 same time of day, +20 same day type, +25 same mood, plus up to 21
    for being close in the week. Day numbers run Sunday (0) to Saturday (6)
    without wrapping, so Saturday and Sunday are six days apart.
    """
    score = 0.0
    if first.time_of_day == second.time_of_day:
        score += 30
    if first.day_type == second.day_type:
        score += 20
    if first.suggested_mood == second.suggested_mood:
        score += 25
    score += (7 - abs(first.day_of_week - second.day_of_week)) * 3
    return score


def extract_contextual_patterns(sessions: Iterable[Dict[str, Any]]) -> ContextualPatterns:
    """
    Top genres and average features across the tracks of stored sessions.

    Args:
        sessions: Session records as written by ``Session.to_record``

    Returns:
        Patterns; ``preferred_features`` is None when no track had features
    """
    genre_counts: Counter = Counter()
    totals = {name: 0.0 for name in PATTERN_FEATURES}
    with_features = 0
    total_tracks = 0
    session_count = 0

    for session in sessions:
        session_count += 1
        for track in session.get("tracks") or ():
            total_tracks += 1
            genre_counts.update(track.get("genres") or ())

            features = track.get("audio_features")
            if not features:
                continue
            with_features += 1
            for name in PATTERN_FEATURES:
                totals[name] += features.get(name) or 0.0

    preferred_features = None
    if with_features:
        preferred_features = {name: total / with_features for name, total in totals.items()}

    return ContextualPatterns(
        preferred_genres=[genre for genre, _ in genre_counts.most_common(TOP_GENRES)],
        preferred_features=preferred_features,
        total_tracks=total_tracks,
        session_count=session_count,
    )


class SessionManagerService:
    """
    Listening session manager.

    Stored sessions are mirrored in memory so context mining keeps working
    when the record store is unavailable.
    """

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        context_resolver: Optional[ContextResolver] = None,
        flush_every: int = 5,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize session manager.

        Args:
            store: Record store for session persistence
            context_resolver: Source of context snapshots for new sessions
            flush_every: Flush the session after this many tracks
            clock: Clock for session and interaction timestamps
        """
        self.store = store
        self.clock = clock or datetime.now
        self.context_resolver = context_resolver or ContextResolver(self.clock)
        self.flush_every = max(1, flush_every)
        self.logger = logger.bind(component="SessionManager")

        self._sessions: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self.current_session: Optional[Session] = None

    def load_state(self) -> int:
        """Reload stored sessions; returns how many were found."""
        if self.store is None:
            return 0

        records = {
            record["id"]: record for record in self.store.get_all(SESSIONS_COLLECTION)
            if isinstance(record, dict) and "id" in record
        }
        with self._lock:
            merged = dict(records)
            merged.update(self._sessions)
            self._sessions = merged

        self.logger.info("Sessions loaded", sessions=len(records))
        return len(records)

    @property
    def sessions(self) -> List[Dict[str, Any]]:
        """Stored session records (the current session once flushed)."""
        return list(self._sessions.values())

    def start_new_session(self) -> Session:
        """End the current session, if any, and start one in the current context."""
        if self.current_session is not None:
            self.current_session.ended_at = self.clock()
            self.save_session()

        now = self.clock()
        session = Session(
            session_id=f"session_{uuid.uuid4().hex[:12]}",
            context=self.context_resolver.current_context(),
            started_at=now,
        )
        self.current_session = session

        self.logger.info(
            "Session started",
            session_id=session.session_id,
            time_of_day=session.context.time_of_day.value,
            mood=session.context.suggested_mood.value
        )
        return session

    def add_interaction(self, track: Track, kind: FeedbackKind) -> None:
        """
        Append an interaction to the current session.

        Tracks are added once per session. The session is flushed every
        ``flush_every`` tracks and on every like or dislike.
        """
        if self.current_session is None:
            self.start_new_session()

        kind = FeedbackKind(kind)
        session = self.current_session
        session.interactions.append(InteractionRecord(track.id, kind, self.clock()))

        track_added = False
        if not any(entry.get("id") == track.id for entry in session.tracks):
            session.tracks.append(track.to_snapshot())
            track_added = True

        periodic = track_added and len(session.tracks) % self.flush_every == 0
        if periodic or kind in (FeedbackKind.LIKE, FeedbackKind.LOVE, FeedbackKind.DISLIKE):
            self.save_session()

    def save_session(self) -> Optional[Dict[str, Any]]:
        """Flush the current session; returns the stored record."""
        session = self.current_session
        if session is None:
            return None

        record = session.to_record(self.clock())
        with self._lock:
            updated = dict(self._sessions)
            updated[session.session_id] = record
            self._sessions = updated

        if self.store is not None and not self.store.put(SESSIONS_COLLECTION, session.session_id, record):
            self.logger.warning("Session not persisted, keeping in memory", session_id=session.session_id)
        else:
            self.logger.debug(
                "Session saved",
                session_id=session.session_id,
                tracks=len(session.tracks),
                interactions=len(session.interactions)
            )
        return record

    def similar_context_sessions(
        self,
        context: ListeningContext,
        limit: int = 10
    ) -> List[Dict[str, Any]]:
        """Stored sessions ranked by context similarity, best first."""
        scored = []
        for record in self._sessions.values():
            try:
                session_context = ListeningContext.from_dict(record["context"])
            except (KeyError, TypeError, ValueError) as e:
                self.logger.warning("Skipping session with unreadable context", error=str(e))
                continue
            scored.append((context_similarity(context, session_context), record))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [record for _, record in scored[:limit]]

    def contextual_patterns(self, context: ListeningContext) -> ContextualPatterns:
        """Patterns of sessions similar to ``context``; feeds the contextual strategy."""
        return extract_contextual_patterns(self.similar_context_sessions(context))

    def total_tracks(self) -> int:
        return sum(len(record.get("tracks") or ()) for record in self._sessions.values())
