"""
Preference Learner

Exponential-moving-average model of the listener's preferred feature
vector. Likes pull the preference toward a track's features, dislikes push
it toward their complement. Old feedback decays geometrically; the model is
only reset by explicitly clearing it.
"""

import threading
from datetime import datetime
from typing import Callable, Optional

import structlog

from ..models.learning_models import PreferenceModel
from ..models.track_models import FeatureVector
from .record_store import RecordStore

logger = structlog.get_logger(__name__)

PREFERENCES_COLLECTION = "preferences"
PREFERENCE_KEY = "audio_features"

LIKE_RATE = 0.1
DISLIKE_RATE = 0.05


class PreferenceLearner:
    """
    Single-model EMA learner.

    The model is an immutable snapshot; each update computes a new model
    under a lock and swaps it in, so concurrent readers never see a
    half-updated vector.
    """

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.store = store
        self.clock = clock or datetime.now
        self.logger = logger.bind(component="PreferenceLearner")

        self._model = PreferenceModel()
        self._lock = threading.Lock()

    @property
    def model(self) -> PreferenceModel:
        return self._model

    def load_state(self) -> bool:
        """Reload the model from the store; returns True if one was found."""
        if self.store is None:
            return False

        record = self.store.get(PREFERENCES_COLLECTION, PREFERENCE_KEY)
        if not record:
            return False

        try:
            model = PreferenceModel.from_record(record)
        except (KeyError, TypeError, ValueError) as e:
            self.logger.warning("Unreadable preference record, starting neutral", error=str(e))
            return False

        with self._lock:
            self._model = model
        self.logger.info("Preference model loaded", sample_count=model.sample_count)
        return True

    def learn_like(self, features: FeatureVector, weight: float = 1.0) -> PreferenceModel:
        """
        Move the preference toward a liked track.

        pref[i] = pref[i] * (1 - 0.1w) + f[i] * 0.1w

        Args:
            features: Encoded features of the liked track
            weight: Signal strength (1.0 explicit, lower for implicit signals)

        Returns:
            The updated model
        """
        rate = LIKE_RATE * weight
        return self._apply(
            lambda pref, f: pref * (1 - rate) + f * rate,
            features,
            kind="like",
            weight=weight
        )

    def learn_dislike(self, features: FeatureVector, weight: float = 1.0) -> PreferenceModel:
        """
        Move the preference toward the complement of a disliked track.

        pref[i] = pref[i] * (1 - 0.05w) + (1 - f[i]) * 0.05w
        """
        rate = DISLIKE_RATE * weight
        return self._apply(
            lambda pref, f: pref * (1 - rate) + (1 - f) * rate,
            features,
            kind="dislike",
            weight=weight
        )

    def _apply(
        self,
        rule: Callable[[float, float], float],
        features: FeatureVector,
        kind: str,
        weight: float
    ) -> PreferenceModel:
        """Apply an update rule to every component atomically and persist."""
        with self._lock:
            current = self._model
            vector = FeatureVector(tuple(
                rule(pref, value) for pref, value in zip(current.vector, features)
            ))
            updated = PreferenceModel(
                vector=vector,
                sample_count=current.sample_count + 1,
                last_updated=self.clock(),
            )
            self._model = updated
            self._persist(updated)

        self.logger.debug(
            "Preference updated",
            kind=kind,
            weight=weight,
            sample_count=updated.sample_count
        )
        return updated

    def reset(self) -> PreferenceModel:
        """Back to the neutral model (explicit data clearing only)."""
        with self._lock:
            self._model = PreferenceModel()
            model = self._model
        if self.store is not None:
            self.store.delete(PREFERENCES_COLLECTION, PREFERENCE_KEY)
        self.logger.info("Preference model reset")
        return model

    def _persist(self, model: PreferenceModel) -> None:
        if self.store is None:
            return
        if not self.store.put(PREFERENCES_COLLECTION, PREFERENCE_KEY, model.to_record()):
            self.logger.warning("Preference model not persisted, keeping in memory")
