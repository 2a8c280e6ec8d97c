import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from .config import EngineConfig, MIN_NUMBER, MAX_NUMBER, NUMBERS_PER_GAME
from .context import DrawContext
from .errors import InvalidInput, PartialBatchFailure
from .heuristics import heuristic_multiplier
from .notifications import Notifier, safe_log

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Per-player predictions plus the players that failed, with reasons."""
    predictions: Dict[int, List[int]] = field(default_factory=dict)
    failures: Dict[int, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def failed_ids(self) -> List[int]:
        return sorted(self.failures)

    def raise_for_failures(self):
        if self.failures:
            raise PartialBatchFailure(self.failures)


class PredictionSynthesizer:
    """Blend model probabilities, player weights and heuristics into a number set."""

    def __init__(self, min_number: int = MIN_NUMBER, max_number: int = MAX_NUMBER,
                 numbers_per_game: int = NUMBERS_PER_GAME,
                 notifier: Optional[Notifier] = None,
                 use_heuristics: bool = True,
                 max_workers: int = 1):
        self.min_number = min_number
        self.max_number = max_number
        self.numbers_per_game = numbers_per_game
        self.notifier = notifier
        self.use_heuristics = use_heuristics
        self.max_workers = max(1, max_workers)

    @classmethod
    def from_config(cls, config: EngineConfig, notifier: Optional[Notifier] = None) -> "PredictionSynthesizer":
        return cls(
            min_number=config.min_number,
            max_number=config.max_number,
            numbers_per_game=config.numbers_per_game,
            notifier=notifier,
            use_heuristics=config.use_heuristics,
            max_workers=config.max_workers
        )

    def weighted_probabilities(self, raw_probs: Sequence[float], weights: Sequence[float],
                               context: Optional[DrawContext] = None) -> np.ndarray:
        """
        Score every number: raw[n-1] * weights[(n-1) % len(weights)], times the
        heuristic multiplier when a context is given.

        Returns an array aligned with raw_probs (index i -> number i+1).
        """
        raw = np.asarray(raw_probs, dtype=np.float64)
        w = np.asarray(weights, dtype=np.float64)
        if raw.ndim != 1 or raw.size == 0:
            raise InvalidInput(f"Probability vector must be 1-D and non-empty, got shape {raw.shape}")
        if w.ndim != 1 or w.size == 0:
            raise InvalidInput("Player weight vector is empty or malformed")
        if not np.all(np.isfinite(w)):
            raise InvalidInput("Player weight vector contains non-finite values")

        # Wrap the weight vector around the number range
        weighted = raw * w[np.arange(raw.size) % w.size]

        if context is not None and self.use_heuristics:
            multipliers = np.array([
                heuristic_multiplier(n, context.lunar_phase, context.pattern_context)
                for n in range(1, raw.size + 1)
            ])
            weighted = weighted * multipliers
        return weighted

    def synthesize(self, raw_probs: Sequence[float], weights: Sequence[float],
                   context: Optional[DrawContext] = None) -> List[int]:
        """
        Pick up to numbers_per_game distinct numbers by descending weighted
        probability (ties: lower number first). The result is ascending and may
        be shorter than numbers_per_game when the model output is degenerate.
        """
        weighted = self.weighted_probabilities(raw_probs, weights, context)
        numbers = np.arange(1, weighted.size + 1)

        # lexsort: last key is primary
        order = np.lexsort((numbers, -weighted))
        selected = []
        for idx in order:
            number = int(numbers[idx])
            if not self.min_number <= number <= self.max_number:
                continue
            if not np.isfinite(weighted[idx]):
                continue
            selected.append(number)
            if len(selected) == self.numbers_per_game:
                break

        if len(selected) < self.numbers_per_game:
            logger.warning(f"Degenerate model output: only {len(selected)} of {self.numbers_per_game} numbers selectable.")

        mean_prob = float(np.mean(weighted[np.array(selected) - 1])) if selected else 0.0
        safe_log(self.notifier, "prediction_feedback", "Prediction generated", {
            "selected_numbers": sorted(selected),
            "weights": [float(x) for x in weights],
            "mean_selected_probability": mean_prob
        })
        return sorted(selected)

    def synthesize_batch(self, players: Sequence, raw_probs: Sequence[float],
                         context: Optional[DrawContext] = None) -> BatchResult:
        """One independent prediction per player; failures are isolated per player."""
        result = BatchResult()

        def _run(player):
            return self.synthesize(raw_probs, player.weights, context)

        if self.max_workers > 1 and len(players) > 1:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(players))) as pool:
                futures = [(player, pool.submit(_run, player)) for player in players]
                # Collected in player order so results stay deterministic
                for player, future in futures:
                    try:
                        result.predictions[player.id] = future.result()
                    except Exception as e:
                        result.failures[player.id] = f"{type(e).__name__}: {e}"
        else:
            for player in players:
                try:
                    result.predictions[player.id] = _run(player)
                except Exception as e:
                    result.failures[player.id] = f"{type(e).__name__}: {e}"

        if result.failures:
            logger.warning(f"Prediction failed for {len(result.failures)} player(s): {result.failed_ids}")
        return result
