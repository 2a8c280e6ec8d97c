"""
Weight vectors for players.

Vectors are created normalized (sum 1) and afterwards adapted component by
component. Adaptation never renormalizes; it only clamps each component to
[0, 1].
"""
from typing import List, Optional, Sequence, Union

import numpy as np

from .config import FEATURE_COUNT, PLAYER_BASE_WEIGHTS
from .errors import InvalidInput

SeedLike = Union[None, int, np.random.Generator]


def _rng(seed: SeedLike) -> np.random.Generator:
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(seed)


def create_weights(seed: SeedLike = None,
                   base: Union[None, bool, Sequence[float]] = None,
                   feature_count: int = FEATURE_COUNT) -> List[float]:
    """
    Build a weight vector that sums to 1.

    Args:
        seed: RNG seed (or Generator) for uniform random weights.
        base: True for the default base-weight table, or explicit magnitudes.
            When given, the seed is ignored.
        feature_count: Length of random vectors.
    """
    if base is True:
        magnitudes = np.array(list(PLAYER_BASE_WEIGHTS.values()), dtype=np.float64)
    elif base is not None and base is not False:
        magnitudes = np.array(list(base), dtype=np.float64)
    else:
        if feature_count <= 0:
            raise InvalidInput("feature_count must be positive")
        # Strictly positive draws so the total can never be zero
        magnitudes = 1.0 - _rng(seed).random(feature_count)

    if magnitudes.size == 0:
        raise InvalidInput("Base weights must not be empty")
    if not np.all(np.isfinite(magnitudes)) or np.any(magnitudes < 0):
        raise InvalidInput("Base weights must be finite and non-negative")
    total = magnitudes.sum()
    if total <= 0:
        raise InvalidInput("Base weights must not sum to zero")
    return (magnitudes / total).tolist()


def update_weights(player, performance: float, learning_rate: float = 0.01) -> List[float]:
    """Shift every weight by (performance - 0.5) * learning_rate, clamped to [0, 1]."""
    if not 0.0 <= performance <= 1.0:
        raise InvalidInput(f"performance must be within [0, 1], got {performance}")
    weights = np.asarray(player.weights, dtype=np.float64)
    adjustment = (performance - 0.5) * learning_rate
    return np.clip(weights + adjustment, 0.0, 1.0).tolist()


def mutate_weights(weights: Sequence[float], rate: float = 0.1, scale: float = 0.1,
                   rng: SeedLike = None) -> List[float]:
    """Perturb each component with probability ``rate`` by up to +/- scale/2."""
    rng = _rng(rng)
    values = np.asarray(weights, dtype=np.float64)
    mask = rng.random(values.size) < rate
    noise = (rng.random(values.size) - 0.5) * scale
    return np.clip(np.where(mask, values + noise, values), 0.0, 1.0).tolist()


def crossover_weights(parent1: Sequence[float], parent2: Sequence[float],
                      rng: SeedLike = None) -> List[float]:
    """Uniform crossover: each component comes from either parent with p=0.5."""
    a = np.asarray(parent1, dtype=np.float64)
    b = np.asarray(parent2, dtype=np.float64)
    if a.shape != b.shape:
        raise InvalidInput("Parents must have weight vectors of the same length")
    pick = _rng(rng).random(a.size) > 0.5
    return np.clip(np.where(pick, a, b), 0.0, 1.0).tolist()
