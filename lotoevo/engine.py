import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

import numpy as np
import pandas as pd

from .config import EngineConfig
from .context import DrawContext
from .errors import InvalidInput, ModelInferenceFailure
from .evolution import PopulationEvolver
from .notifications import LoggingNotifier, Notifier, safe_log, safe_notify
from .players import Player, find_champion, initialize_population
from .rewards import RewardEvaluator
from .synthesizer import PredictionSynthesizer
from .tracker import TemporalAccuracyTracker
from .weights import update_weights

logger = logging.getLogger(__name__)


class ModelInference(Protocol):
    """Probability oracle driven by the engine."""

    def predict(self, input_vector) -> Sequence[float]: ...

    def train(self, dataset, config: Optional[Dict] = None): ...


@dataclass
class RoundMetrics:
    total_matches: int
    random_matches: int
    current_game_matches: int
    current_game_random_matches: int
    total_predictions: int


@dataclass
class RoundResult:
    round_index: int
    status: str
    metrics: Optional[RoundMetrics] = None
    failures: Dict[int, str] = field(default_factory=dict)
    evolved: bool = False
    generation: int = 1
    champion_id: Optional[int] = None
    best_matches: int = 0
    evaluated_players: int = 0
    error: Optional[str] = None
    retrained: bool = False

    @property
    def completed(self) -> bool:
        return self.status == "completed"

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "RoundResult":
        data = dict(data)
        metrics = data.pop("metrics", None)
        failures = data.pop("failures", {}) or {}
        return cls(
            metrics=RoundMetrics(**metrics) if metrics else None,
            failures={int(pid): reason for pid, reason in failures.items()},
            **data
        )


class EvolutionEngine:
    """
    Drives rounds end to end: inference, synthesis, evaluation, weight
    adaptation and (on cadence) generational evolution.

    A round either commits fully or, when model inference fails, leaves players,
    tracker and generation state untouched.

    Every model call runs on one long-lived worker thread, so an inference that
    overran its deadline is serialized ahead of the next call instead of
    overlapping it. Call close() (or use the engine as a context manager) to
    release the worker.
    """

    def __init__(self, model: ModelInference, config: Optional[EngineConfig] = None,
                 players: Optional[List[Player]] = None,
                 notifier: Optional[Notifier] = None,
                 tracker: Optional[TemporalAccuracyTracker] = None,
                 evolver: Optional[PopulationEvolver] = None):
        self.config = config or EngineConfig()
        self.config.validate()
        self.model = model
        self.rng = np.random.default_rng(self.config.seed)
        self.notifier = notifier if notifier is not None else LoggingNotifier()
        self.tracker = tracker if tracker is not None else TemporalAccuracyTracker()
        self.evolver = evolver if evolver is not None else PopulationEvolver(
            notifier=self.notifier, selection=self.config.selection, rng=self.rng
        )
        self.synthesizer = PredictionSynthesizer.from_config(self.config, self.notifier)
        self.evaluator = RewardEvaluator(
            notifier=self.notifier,
            rng=self.rng,
            min_number=self.config.min_number,
            max_number=self.config.max_number,
            numbers_per_game=self.config.numbers_per_game
        )
        self.players = players if players is not None else self._new_population()
        self.rounds_played = 0
        self.total_matches = 0
        self.random_matches = 0
        self.history: List[RoundResult] = []
        self._stop_requested = False
        self._training_inputs: List[List[float]] = []
        self._training_targets: List[List[float]] = []
        self._executor: Optional[ThreadPoolExecutor] = None

    def _new_population(self) -> List[Player]:
        return initialize_population(
            size=self.config.population_size,
            seed=self.config.seed,
            use_base_weights=self.config.use_base_weights,
            feature_count=self.config.feature_count
        )

    @property
    def generation(self) -> int:
        return self.evolver.generation

    @property
    def champion(self) -> Optional[Player]:
        return find_champion(self.players)

    def _validate_context(self, context: DrawContext):
        if not isinstance(context, DrawContext):
            raise InvalidInput(f"Expected a DrawContext, got {type(context).__name__}")
        cfg = self.config
        if len(context.drawn_numbers) != cfg.numbers_per_game:
            raise InvalidInput(f"Draw has {len(context.drawn_numbers)} numbers, expected {cfg.numbers_per_game}")
        if any(not cfg.min_number <= n <= cfg.max_number for n in context.drawn_numbers):
            raise InvalidInput("Draw contains numbers outside the configured range")
        if context.input_vector is None:
            raise InvalidInput(f"Round {context.round_index} carries no model input vector")

    def _model_worker(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="lotoevo-model")
        return self._executor

    def _infer(self, context: DrawContext) -> np.ndarray:
        vector = np.asarray(context.input_vector, dtype=np.float32)
        timeout = self.config.model_timeout
        try:
            raw = self._model_worker().submit(self.model.predict, vector).result(timeout=timeout)
        except FuturesTimeoutError:
            raise ModelInferenceFailure(f"Model inference exceeded the {timeout}s deadline")
        except Exception as e:
            raise ModelInferenceFailure(f"Model inference failed: {e}") from e

        try:
            probs = np.asarray(raw, dtype=np.float64).ravel()
        except (TypeError, ValueError) as e:
            raise ModelInferenceFailure(f"Model returned a non-numeric output: {e}") from e
        if probs.size == 0:
            raise ModelInferenceFailure("Model returned an empty probability vector")
        return probs

    def play_round(self, context: DrawContext) -> RoundResult:
        """Run one full round against ``context``."""
        self._validate_context(context)
        cfg = self.config
        logger.info(f"Starting round {context.round_index} (generation {self.generation})")

        try:
            raw_probs = self._infer(context)
        except ModelInferenceFailure as e:
            logger.error(f"Round {context.round_index} aborted: {e}")
            safe_notify(self.notifier, "error", "Round aborted", str(e))
            result = RoundResult(
                round_index=context.round_index,
                status="aborted",
                generation=self.generation,
                error=str(e)
            )
            self.history.append(result)
            return result

        batch = self.synthesizer.synthesize_batch(self.players, raw_probs, context)
        evaluation = self.evaluator.score_round(
            self.players, batch.predictions, context.drawn_numbers, context.round_index
        )
        failures = dict(evaluation.failures)
        failures.update(batch.failures)

        # Commit
        self.evaluator.apply(evaluation, self.players, self.tracker)
        if cfg.adapt_weights:
            by_id = {p.id: p for p in self.players}
            for outcome in evaluation.outcomes:
                player = by_id[outcome.player_id]
                player.weights = update_weights(
                    player, outcome.matches / cfg.numbers_per_game, cfg.learning_rate
                )

        self.rounds_played += 1
        self.total_matches += evaluation.current_game_matches
        self.random_matches += evaluation.current_game_random_matches

        evolved = False
        if self.rounds_played % cfg.evolve_every == 0:
            self.evolver.evolve_generation(self.players)
            evolved = True

        self._record_training_pair(context)
        retrained = self._maybe_retrain()

        best = evaluation.best()
        champion = self.champion
        result = RoundResult(
            round_index=context.round_index,
            status="completed",
            metrics=RoundMetrics(
                total_matches=self.total_matches,
                random_matches=self.random_matches,
                current_game_matches=evaluation.current_game_matches,
                current_game_random_matches=evaluation.current_game_random_matches,
                total_predictions=evaluation.total_predictions
            ),
            failures=failures,
            evolved=evolved,
            generation=self.generation,
            champion_id=champion.id if champion else None,
            best_matches=best.matches if best else 0,
            evaluated_players=len(evaluation.outcomes),
            retrained=retrained
        )
        self.history.append(result)

        safe_log(self.notifier, "round", f"Round {context.round_index} completed", {
            "matches": result.metrics.current_game_matches,
            "random_matches": result.metrics.current_game_random_matches,
            "best_matches": result.best_matches,
            "failed_players": sorted(failures),
            "generation": result.generation,
            "retrained": result.retrained
        })
        return result

    def _record_training_pair(self, context: DrawContext):
        target = [0.0] * (self.config.max_number - self.config.min_number + 1)
        for number in context.drawn_numbers:
            target[number - self.config.min_number] = 1.0
        self._training_inputs.append(list(context.input_vector))
        self._training_targets.append(target)

    def _maybe_retrain(self) -> bool:
        """
        Update the model on the draws played since the last update, every
        ``retrain_every`` rounds. A failed update is reported and the pairs are
        kept for the next attempt; the round itself is already committed.
        """
        cfg = self.config
        if not cfg.retrain_every or self.rounds_played % cfg.retrain_every != 0:
            return False
        if not self._training_inputs:
            return False

        logger.info(f"Updating model on {len(self._training_inputs)} recent draws...")
        try:
            X = np.array(self._training_inputs, dtype=np.float32)
            y = np.array(self._training_targets, dtype=np.float32)
            self._model_worker().submit(self.model.train, (X, y), {"epochs": cfg.retrain_epochs}).result()
        except Exception as e:
            logger.error(f"Model update failed: {e}")
            safe_notify(self.notifier, "error", "Model update failed", str(e))
            return False

        safe_log(self.notifier, "training", "Model updated", {
            "samples": len(self._training_inputs),
            "epochs": cfg.retrain_epochs
        })
        self._training_inputs = []
        self._training_targets = []
        return True

    def run(self, contexts: Iterable[DrawContext], max_rounds: Optional[int] = None) -> List[RoundResult]:
        """Play contexts in order. A stop request takes effect between rounds."""
        self._stop_requested = False
        results = []
        for context in contexts:
            if self._stop_requested:
                logger.info("Stop requested; halting before the next round.")
                break
            if max_rounds is not None and len(results) >= max_rounds:
                break
            results.append(self.play_round(context))
        return results

    def stop(self):
        self._stop_requested = True

    def snapshot(self) -> Dict:
        """Plain-data engine state for persistence."""
        return {
            "rounds_played": self.rounds_played,
            "total_matches": self.total_matches,
            "random_matches": self.random_matches,
            "players": [p.to_dict() for p in self.players],
            "generation": self.evolver.snapshot(),
            "tracker": self.tracker.samples(),
            "history": [r.to_dict() for r in self.history],
            "training_buffer": {
                "inputs": [list(x) for x in self._training_inputs],
                "targets": [list(t) for t in self._training_targets]
            },
            "config": asdict(self.config)
        }

    def restore(self, state: Dict):
        players = [Player.from_dict(p) for p in state["players"]]
        history = [RoundResult.from_dict(r) for r in state.get("history", [])]
        buffer = state.get("training_buffer", {})
        self.tracker.load_samples(state.get("tracker", []))
        self.evolver.restore(state.get("generation", {}))
        self.players = players
        self.rounds_played = int(state.get("rounds_played", 0))
        self.total_matches = int(state.get("total_matches", 0))
        self.random_matches = int(state.get("random_matches", 0))
        self.history = history
        self._training_inputs = [list(x) for x in buffer.get("inputs", [])]
        self._training_targets = [list(t) for t in buffer.get("targets", [])]
        logger.info(f"Restored engine: {len(players)} players, generation {self.generation}, "
                    f"{self.rounds_played} rounds played.")

    def reset(self):
        """Fresh population, empty tracker and generation state."""
        self.players = self._new_population()
        self.tracker.reset()
        self.evolver.reset()
        self.rounds_played = 0
        self.total_matches = 0
        self.random_matches = 0
        self.history = []
        self._stop_requested = False
        self._training_inputs = []
        self._training_targets = []

    def close(self):
        """
        Release the model worker. Queued calls are cancelled; an overdue call
        that is still running is drained before this returns.
        """
        if self._executor is not None:
            self._executor.shutdown(wait=True, cancel_futures=True)
            self._executor = None

    def __enter__(self) -> "EvolutionEngine":
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def history_frame(self) -> pd.DataFrame:
        rows = []
        for r in self.history:
            row = {
                "round_index": r.round_index,
                "status": r.status,
                "generation": r.generation,
                "best_matches": r.best_matches,
                "evaluated_players": r.evaluated_players,
                "failed_players": len(r.failures)
            }
            if r.metrics is not None:
                row["matches"] = r.metrics.current_game_matches
                row["random_matches"] = r.metrics.current_game_random_matches
            rows.append(row)
        return pd.DataFrame(rows)

    def report(self) -> List[str]:
        """Summarize played rounds: hit distribution and model vs random baseline."""
        df = self.history_frame()
        if df.empty or not (df["status"] == "completed").any():
            logger.warning("No completed rounds to report.")
            return []

        completed = df[df["status"] == "completed"]
        hits = pd.Series([
            record.matches for p in self.players for record in p.match_history
        ], dtype="int64")
        evaluated = int(completed["evaluated_players"].sum())

        def per_ticket(col: str) -> float:
            return float(completed[col].sum()) / evaluated if evaluated else 0.0

        report_lines = []
        report_lines.append("=== Evolution Report ===")
        report_lines.append(f"Rounds Completed: {len(completed)}")
        report_lines.append(f"Rounds Aborted: {int((df['status'] == 'aborted').sum())}")
        report_lines.append(f"Generation: {self.generation}")
        report_lines.append("Hits Distribution:")
        for matches, count in hits.value_counts().sort_index().items():
            percentage = (count / len(hits)) * 100
            report_lines.append(f"{matches} Matches: {count} ({percentage:.1f}%)")
        report_lines.append(f"Average Hits (model): {per_ticket('matches'):.2f}")
        report_lines.append(f"Average Hits (random): {per_ticket('random_matches'):.2f}")
        report_lines.append(f"Recent Accuracy: {self.tracker.get_recent_accuracy():.3f}")
        champion = self.champion
        if champion is not None:
            report_lines.append(f"Champion: Player #{champion.id} (score {champion.score:.0f})")

        logger.info(" | ".join(report_lines))
        return report_lines
