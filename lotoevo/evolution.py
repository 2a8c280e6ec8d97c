import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from .config import EVOLUTION_CONFIG
from .notifications import Notifier, safe_log
from .weights import crossover_weights, mutate_weights

logger = logging.getLogger(__name__)


@dataclass
class GenerationState:
    generation_index: int = 1
    evolution_log: List[Dict] = field(default_factory=list)


def select_best_players(players: Sequence) -> List:
    """Top half of the population by fitness (ties: score, then lower id)."""
    ranked = sorted(players, key=lambda p: (-p.fitness, -p.score, p.id))
    return ranked[:math.ceil(len(players) / 2)]


class PopulationEvolver:
    """
    Advances the population across generations.

    By default an evolution event only records lineage: one log entry per
    player and a generation bump. With ``selection`` enabled, the weaker half
    additionally receives mutated crossovers of the stronger half's weights;
    ids, scores and histories are kept.
    """

    def __init__(self, notifier: Optional[Notifier] = None,
                 selection: bool = EVOLUTION_CONFIG["selection"],
                 mutation_rate: float = EVOLUTION_CONFIG["mutation_rate"],
                 mutation_scale: float = EVOLUTION_CONFIG["mutation_scale"],
                 rng: Optional[np.random.Generator] = None):
        self.notifier = notifier
        self.selection = selection
        self.mutation_rate = mutation_rate
        self.mutation_scale = mutation_scale
        self.rng = rng if rng is not None else np.random.default_rng()
        self.state = GenerationState()

    @property
    def generation(self) -> int:
        return self.state.generation_index

    def evolve_generation(self, players: Sequence):
        current = self.state.generation_index
        entries = [{
            "generation": current,
            "player_id": p.id,
            "score": p.score,
            "fitness": p.fitness
        } for p in players]

        replaced = self._rebalance_weights(players) if self.selection else []

        self.state.evolution_log.extend(entries)
        self.state.generation_index = current + 1
        for p in players:
            p.generation = self.state.generation_index

        safe_log(self.notifier, "evolution", "Generation evolved", {
            "new_generation": self.state.generation_index,
            "players_evolved": len(players),
            "weights_replaced": len(replaced)
        })

    def _rebalance_weights(self, players: Sequence) -> List[int]:
        """Give the weaker half offspring weights bred from the stronger half."""
        parents = select_best_players(players)
        parent_ids = {p.id for p in parents}
        if len(parents) < 2:
            return []

        replaced = []
        for player in players:
            if player.id in parent_ids:
                continue
            i, j = self.rng.choice(len(parents), size=2, replace=False)
            child = crossover_weights(parents[i].weights, parents[j].weights, self.rng)
            player.weights = mutate_weights(child, self.mutation_rate, self.mutation_scale, self.rng)
            replaced.append(player.id)
        logger.debug(f"Replaced weights of {len(replaced)} players from {len(parents)} parents.")
        return replaced

    def history(self, player_id: Optional[int] = None) -> List[Dict]:
        if player_id is None:
            return list(self.state.evolution_log)
        return [e for e in self.state.evolution_log if e["player_id"] == player_id]

    def snapshot(self) -> Dict:
        return {
            "generation_index": self.state.generation_index,
            "evolution_log": [dict(e) for e in self.state.evolution_log]
        }

    def restore(self, state: Dict):
        self.state = GenerationState(
            generation_index=int(state.get("generation_index", 1)),
            evolution_log=[dict(e) for e in state.get("evolution_log", [])]
        )

    def reset(self):
        self.state = GenerationState()
