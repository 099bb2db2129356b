"""
Bandit Orchestrator

Thompson-sampling multi-armed bandit over recommendation strategies. Each
arm carries a Beta(success_weight, failure_weight) belief; a request draws
one sample per arm and the highest sample wins.

Arm state is published copy-on-write: updates build a new mapping under a
lock and swap it in, so readers only ever see complete snapshots.
"""

import math
import random
import threading
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import structlog

from ..models.learning_models import BanditArm
from .record_store import RecordStore

logger = structlog.get_logger(__name__)

ARMS_COLLECTION = "bandit_arms"


class ThompsonSamplingBandit:
    """
    Thompson-sampling strategy selector.

    Arms are created lazily with the neutral Beta(1, 1) prior the first time
    a name is referenced and are never removed.
    """

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the bandit.

        Args:
            store: Record store for arm persistence (memory only if None)
            rng: Random generator; seed it for deterministic selection
            clock: Clock used for last-pull timestamps
        """
        self.store = store
        self.rng = rng or random.Random()
        self.clock = clock or datetime.now
        self.logger = logger.bind(component="BanditOrchestrator")

        self._arms: Dict[str, BanditArm] = {}
        self._lock = threading.Lock()

    def load_state(self) -> int:
        """Reload arms from the store; returns the number of arms loaded."""
        if self.store is None:
            return 0

        loaded = {}
        for record in self.store.get_all(ARMS_COLLECTION):
            try:
                arm = BanditArm.from_record(record)
            except (KeyError, TypeError, ValueError) as e:
                self.logger.warning("Skipping unreadable arm record", error=str(e))
                continue
            loaded[arm.arm_id] = arm

        with self._lock:
            merged = dict(self._arms)
            merged.update(loaded)
            self._arms = merged

        self.logger.info("Bandit state loaded", arms=len(loaded))
        return len(loaded)

    @property
    def arms(self) -> Dict[str, BanditArm]:
        """Snapshot of all arms."""
        return dict(self._arms)

    def get_arm(self, arm_id: str) -> BanditArm:
        return self._arms.get(arm_id) or BanditArm(arm_id=arm_id)

    def ensure_arms(self, arm_ids: Iterable[str]) -> None:
        """Create any missing arms with the neutral prior."""
        with self._lock:
            missing = [arm_id for arm_id in arm_ids if arm_id not in self._arms]
            if not missing:
                return
            updated = dict(self._arms)
            for arm_id in missing:
                updated[arm_id] = BanditArm(arm_id=arm_id)
            self._arms = updated

        for arm_id in missing:
            self.logger.debug("Arm created", arm=arm_id)

    # Sampling

    def _standard_normal(self) -> float:
        """Box-Muller transform; 1 - random() keeps log away from 0."""
        u1 = 1.0 - self.rng.random()
        u2 = self.rng.random()
        return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)

    def sample_gamma(self, shape: float) -> float:
        """
        Draw from Gamma(shape, 1) with the Marsaglia-Tsang method.

        Shapes below 1 are boosted: Gamma(a) = Gamma(a + 1) * U^(1/a).
        """
        if shape < 1:
            u = 1.0 - self.rng.random()
            return self.sample_gamma(shape + 1) * u ** (1.0 / shape)

        d = shape - 1.0 / 3.0
        c = 1.0 / math.sqrt(9.0 * d)

        while True:
            x = self._standard_normal()
            v = 1.0 + c * x
            while v <= 0:
                x = self._standard_normal()
                v = 1.0 + c * x

            v = v * v * v
            u = 1.0 - self.rng.random()

            if u < 1 - 0.0331 * x ** 4:
                return d * v
            if math.log(u) < 0.5 * x * x + d * (1 - v + math.log(v)):
                return d * v

    def sample_beta(self, alpha: float, beta: float) -> float:
        """Draw from Beta(alpha, beta) as a ratio of gamma draws."""
        gamma_alpha = self.sample_gamma(alpha)
        gamma_beta = self.sample_gamma(beta)
        return gamma_alpha / (gamma_alpha + gamma_beta)

    # Selection and reward

    def select_arm(self, arm_ids: List[str]) -> Tuple[str, float]:
        """
        Pick one arm by Thompson sampling and record the pull.

        Args:
            arm_ids: Candidate arms; ties go to the earliest in this list

        Returns:
            (selected arm id, its sampled success probability)

        Raises:
            ValueError: If no arms are given
        """
        if not arm_ids:
            raise ValueError("select_arm needs at least one arm")

        self.ensure_arms(arm_ids)
        snapshot = self._arms

        best_arm, best_sample = arm_ids[0], -1.0
        for arm_id in arm_ids:
            arm = snapshot[arm_id]
            sample = self.sample_beta(arm.success_weight, arm.failure_weight)
            if sample > best_sample:
                best_arm, best_sample = arm_id, sample

        with self._lock:
            pulled = self._arms[best_arm].pulled(self.clock())
            updated = dict(self._arms)
            updated[best_arm] = pulled
            self._arms = updated
            self._persist(pulled)

        self.logger.info("Arm selected", arm=best_arm, sample=round(best_sample, 4), pulls=pulled.pulls)
        return best_arm, best_sample

    def update_reward(self, arm_id: str, reward: float) -> BanditArm:
        """
        Apply a reward to an arm atomically.

        Positive rewards add to the success weight, zero or negative rewards
        add their magnitude to the failure weight.
        """
        with self._lock:
            arm = self._arms.get(arm_id) or BanditArm(arm_id=arm_id)
            rewarded = arm.rewarded(reward)
            updated = dict(self._arms)
            updated[arm_id] = rewarded
            self._arms = updated
            self._persist(rewarded)

        self.logger.debug(
            "Arm rewarded",
            arm=arm_id,
            reward=reward,
            success_weight=rewarded.success_weight,
            failure_weight=rewarded.failure_weight
        )
        return rewarded

    def stats(self) -> List[Dict[str, float]]:
        """Per-arm pulls, success rate and cumulative reward."""
        return [
            {
                "arm": arm.arm_id,
                "pulls": arm.pulls,
                "success_rate": arm.success_rate,
                "total_reward": arm.cumulative_reward,
            }
            for arm in self._arms.values()
        ]

    def _persist(self, arm: BanditArm) -> None:
        if self.store is None:
            return
        if not self.store.put(ARMS_COLLECTION, arm.arm_id, arm.to_record(self.clock())):
            self.logger.warning("Arm state not persisted, keeping in memory", arm=arm.arm_id)
