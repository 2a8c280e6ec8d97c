from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import EngineConfigError

# Game Rules (Lotofácil)
MIN_NUMBER = 1
MAX_NUMBER = 25
NUMBERS_PER_GAME = 15

# File Paths
PROJECT_ROOT = Path(__file__).parent.parent.absolute()
DATA_DIR = PROJECT_ROOT / "lottery_data"
DATA_FILE = DATA_DIR / "lotofacil.csv"
MODELS_DIR = PROJECT_ROOT / "models"
LOGS_DIR = PROJECT_ROOT / "logs"
CHECKPOINTS_DIR = PROJECT_ROOT / "checkpoints"

# Ensure directories exist
for directory in [MODELS_DIR, LOGS_DIR, CHECKPOINTS_DIR]:
    directory.mkdir(exist_ok=True)

# Player feature magnitudes; normalized to sum 1 when used as seed weights
PLAYER_BASE_WEIGHTS = {
    "base_learning": 509,    # learning from historical data
    "adaptability": 517,     # speed of adapting to changes
    "memory": 985,           # retention of important patterns
    "intuition": 341,        # detection of subtle patterns
    "precision": 658,
    "consistency": 979,
    "innovation": 717,
    "balance": 453,          # exploration vs exploitation
    "focus": 117,
    "resilience": 235,       # recovery after misses
    "optimization": 371,
    "cooperation": 126,
    "specialization": 372,
    "generalization": 50,
    "evolution": 668,
    "stability": 444,
    "creativity": 178
}
FEATURE_COUNT = len(PLAYER_BASE_WEIGHTS)

# Model Configuration
NEURAL_MODEL_PARAMS = {
    "input_dim": NUMBERS_PER_GAME + 2,   # previous draw + round + day of year
    "hidden_units": 128,
    "dropout": 0.2,
    "batch_size": 32,
    "epochs": 50,
    "learning_rate": 0.001,
    "max_concurso": 3184,                # round index normalization
    "device": "auto",                    # auto | cpu | gpu
    "retrain_every": 50,                 # rounds between in-play model updates (0 disables)
    "retrain_epochs": 10
}

EVOLUTION_CONFIG = {
    "population_size": 100,
    "evolve_every": 10,        # rounds between generation events
    "learning_rate": 0.01,     # per-round weight adaptation
    "selection": False,        # opt-in weight crossover/mutation on evolution
    "mutation_rate": 0.1,
    "mutation_scale": 0.1
}

REWARD_CONFIG = {
    "reward_threshold": 11,      # matches that start paying out and get logged
    "high_performance": 13       # matches that raise a high-severity notification
}

HEURISTIC_CONFIG = {
    "pattern_influence": 0.5,
    "consistency_influence": 0.2,
    "variability_influence": 0.1,
    "lunar_weights": {
        "Nova": 0.8,
        "Crescente": 1.2,
        "Cheia": 1.0,
        "Minguante": 0.9
    }
}

CACHE_CONFIG = {
    "ttl": 3600,          # seconds
    "check_period": 120,  # seconds between expiry sweeps
    "max_size": 10000
}

TRACKER_CONFIG = {
    "max_history": 1000,
    "recent_window": 3600  # seconds
}


@dataclass
class EngineConfig:
    """Per-engine settings; defaults come from the module constants."""
    min_number: int = MIN_NUMBER
    max_number: int = MAX_NUMBER
    numbers_per_game: int = NUMBERS_PER_GAME
    population_size: int = EVOLUTION_CONFIG["population_size"]
    feature_count: int = FEATURE_COUNT
    evolve_every: int = EVOLUTION_CONFIG["evolve_every"]
    learning_rate: float = EVOLUTION_CONFIG["learning_rate"]
    adapt_weights: bool = True
    selection: bool = EVOLUTION_CONFIG["selection"]
    use_base_weights: bool = False
    use_heuristics: bool = True
    max_workers: int = 1
    model_timeout: Optional[float] = None
    retrain_every: int = NEURAL_MODEL_PARAMS["retrain_every"]
    retrain_epochs: int = NEURAL_MODEL_PARAMS["retrain_epochs"]
    seed: Optional[int] = None

    def validate(self) -> bool:
        """Validate configuration parameters"""
        try:
            assert self.min_number >= 1
            assert self.max_number > self.min_number
            assert 0 < self.numbers_per_game <= self.max_number - self.min_number + 1
            assert self.population_size > 0
            assert self.feature_count > 0
            assert not self.use_base_weights or self.feature_count == FEATURE_COUNT
            assert self.evolve_every > 0
            assert self.learning_rate >= 0
            assert self.max_workers > 0
            assert self.model_timeout is None or self.model_timeout > 0
            assert self.retrain_every >= 0
            assert self.retrain_epochs > 0
            return True
        except AssertionError:
            raise EngineConfigError("Invalid engine configuration parameters")
