"""
Contextual heuristic scorers.

Every scorer is a deterministic function ``(number, context) -> float`` with
its own TTL cache. Cache keys are tuples of normalized inputs, so a cache hit
always returns exactly what the uncached computation would.
"""
import logging
import threading
import time
from typing import Callable, Hashable, Optional

from cachetools import TTLCache

from .config import CACHE_CONFIG, HEURISTIC_CONFIG
from .context import LunarPhase, PatternContext, parse_pattern_context
from .errors import InvalidInput

logger = logging.getLogger(__name__)

BASELINE_SCORE = 0.5


class HeuristicScorer:
    """Callable scorer wrapping a pure function with an independent TTL cache."""

    def __init__(self, name: str, func: Callable, key_func: Callable[..., Optional[Hashable]],
                 ttl: float = CACHE_CONFIG["ttl"],
                 check_period: float = CACHE_CONFIG["check_period"],
                 max_size: int = CACHE_CONFIG["max_size"],
                 timer: Callable[[], float] = time.monotonic):
        self.name = name
        self._func = func
        self._key_func = key_func
        self._timer = timer
        self.check_period = check_period
        self.cache = TTLCache(maxsize=max_size, ttl=ttl, timer=timer)
        self._lock = threading.Lock()
        self._last_sweep = timer()
        self.hits = 0
        self.misses = 0

    def __call__(self, number: int, context=None) -> float:
        key = self._key_func(number, context)
        if key is None:
            # Not cacheable (malformed context); compute directly
            return self._func(number, context)

        with self._lock:
            self._maybe_sweep()
            try:
                value = self.cache[key]
                self.hits += 1
                return value
            except KeyError:
                self.misses += 1

        value = self._func(number, context)
        with self._lock:
            self.cache[key] = value
        return value

    def _maybe_sweep(self):
        now = self._timer()
        if now - self._last_sweep >= self.check_period:
            self.cache.expire()
            self._last_sweep = now

    def sweep(self):
        """Drop expired entries now."""
        with self._lock:
            self.cache.expire()
            self._last_sweep = self._timer()

    def clear(self):
        with self._lock:
            self.cache.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        return len(self.cache)


def _coerce_pattern(context) -> Optional[PatternContext]:
    try:
        return parse_pattern_context(context)
    except InvalidInput as e:
        logger.debug(f"Malformed pattern context ignored: {e}")
        return None


def _pattern_key(number, context):
    pattern = _coerce_pattern(context)
    if pattern is None:
        return None if context is not None else (int(number), None)
    return (int(number), pattern.consecutive, pattern.even_odd)


def _phase_key(number, phase):
    value = phase.value if isinstance(phase, LunarPhase) else phase
    if not isinstance(value, str):
        return None
    return (int(number), value)


def _pattern_score(number: int, context) -> float:
    pattern = _coerce_pattern(context)
    if pattern is None:
        return 0.0
    is_even = number % 2 == 0
    parity = pattern.even_odd if is_even else 1 - pattern.even_odd
    return (pattern.consecutive * 0.5) + (parity * 0.5)


def _lunar_weight(number: int, phase) -> float:
    value = phase.value if isinstance(phase, LunarPhase) else phase
    try:
        return float(HEURISTIC_CONFIG["lunar_weights"].get(value, 1.0))
    except TypeError:
        return 1.0


def _baseline(number: int, context) -> float:
    return BASELINE_SCORE


pattern_score = HeuristicScorer("pattern", _pattern_score, _pattern_key)
lunar_weight = HeuristicScorer("lunar", _lunar_weight, _phase_key)
consistency_score = HeuristicScorer("consistency", _baseline, _pattern_key)
variability_score = HeuristicScorer("variability", _baseline, _pattern_key)

SCORERS = (pattern_score, lunar_weight, consistency_score, variability_score)


def clear_caches():
    for scorer in SCORERS:
        scorer.clear()


def heuristic_multiplier(number: int, lunar_phase=None, pattern_context=None,
                         config: dict = HEURISTIC_CONFIG) -> float:
    """
    Combine the scorers into one multiplicative adjustment for a number.

    Consistency and variability are centered on the baseline, so at 0.5 they
    leave the weighted probability unchanged. Without a pattern context the
    pattern term is 1, making the multiplier identical for every number.
    """
    multiplier = lunar_weight(number, lunar_phase) if lunar_phase is not None else 1.0
    multiplier *= 1 + config["pattern_influence"] * pattern_score(number, pattern_context)
    multiplier *= 1 + config["consistency_influence"] * (consistency_score(number, pattern_context) - BASELINE_SCORE)
    multiplier *= 1 + config["variability_influence"] * (variability_score(number, pattern_context) - BASELINE_SCORE)
    return multiplier
