import logging
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

import numpy as np

from .config import EVOLUTION_CONFIG, FEATURE_COUNT
from .weights import create_weights

logger = logging.getLogger(__name__)


@dataclass
class MatchRecord:
    round: int
    matches: int
    score: float
    predictions: List[int]
    drawn_numbers: List[int]


@dataclass
class Player:
    """One candidate predictor: its own weight vector, score and history."""
    id: int
    weights: List[float]
    score: float = 0.0
    fitness: float = 0.0
    generation: int = 1
    predictions: List[int] = field(default_factory=list)
    match_history: List[MatchRecord] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "Player":
        return cls(
            id=int(data["id"]),
            weights=[float(w) for w in data["weights"]],
            score=float(data.get("score", 0.0)),
            fitness=float(data.get("fitness", 0.0)),
            generation=int(data.get("generation", 1)),
            predictions=[int(n) for n in data.get("predictions", [])],
            match_history=[MatchRecord(**record) for record in data.get("match_history", [])]
        )


def initialize_population(size: int = EVOLUTION_CONFIG["population_size"],
                          seed: Optional[int] = None,
                          use_base_weights: bool = False,
                          feature_count: int = FEATURE_COUNT) -> List[Player]:
    """Create the initial population with ids 1..size."""
    if size <= 0:
        raise ValueError("Population size must be positive.")

    logger.info(f"Creating {size} players (base weights: {use_base_weights})")
    rng = np.random.default_rng(seed)
    players = []
    for player_id in range(1, size + 1):
        if use_base_weights:
            weights = create_weights(base=True)
        else:
            weights = create_weights(seed=rng, feature_count=feature_count)
        players.append(Player(id=player_id, weights=weights))
    return players


def find_champion(players: List[Player]) -> Optional[Player]:
    """Highest score wins; ties go to the lowest id."""
    if not players:
        return None
    return min(players, key=lambda p: (-p.score, p.id))
