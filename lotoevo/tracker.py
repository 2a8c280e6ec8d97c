import logging
import threading
import time
from collections import deque
from typing import Callable, Dict, Iterable, List, Optional

from .config import TRACKER_CONFIG
from .errors import InvalidInput

logger = logging.getLogger(__name__)


class TemporalAccuracyTracker:
    """Bounded rolling log of per-round accuracy samples (FIFO eviction)."""

    def __init__(self, max_history: int = TRACKER_CONFIG["max_history"],
                 clock: Callable[[], float] = time.time):
        if max_history <= 0:
            raise InvalidInput("max_history must be positive")
        self.max_history = max_history
        self._clock = clock
        self._samples = deque(maxlen=max_history)
        self._lock = threading.Lock()

    def record_accuracy(self, matches: int, total: int) -> float:
        """Store matches/total stamped with the current time. Returns the accuracy."""
        if total <= 0:
            raise InvalidInput(f"total must be positive, got {total}")
        if not 0 <= matches <= total:
            raise InvalidInput(f"matches must be within [0, {total}], got {matches}")

        accuracy = matches / total
        with self._lock:
            self._samples.append({"timestamp": self._clock(), "accuracy": accuracy})
        return accuracy

    def get_average_accuracy(self, window_seconds: Optional[float] = None) -> float:
        """Mean accuracy of samples inside the window (all-time by default); 0.0 when empty."""
        with self._lock:
            samples = list(self._samples)
        if window_seconds is not None:
            cutoff = self._clock() - window_seconds
            samples = [s for s in samples if s["timestamp"] >= cutoff]
        if not samples:
            return 0.0
        return sum(s["accuracy"] for s in samples) / len(samples)

    def get_recent_accuracy(self, window_seconds: float = TRACKER_CONFIG["recent_window"]) -> float:
        return self.get_average_accuracy(window_seconds)

    def samples(self) -> List[Dict[str, float]]:
        with self._lock:
            return [dict(s) for s in self._samples]

    def load_samples(self, samples: Iterable[Dict[str, float]]):
        """Replace the buffer with previously saved samples (oldest first)."""
        restored = []
        for s in samples:
            accuracy = float(s["accuracy"])
            if not 0.0 <= accuracy <= 1.0:
                raise InvalidInput(f"Accuracy sample out of range: {accuracy}")
            restored.append({"timestamp": float(s["timestamp"]), "accuracy": accuracy})
        with self._lock:
            self._samples = deque(restored, maxlen=self.max_history)
        logger.debug(f"Restored {len(self)} accuracy samples.")

    def reset(self):
        with self._lock:
            self._samples.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)
