import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from .config import MIN_NUMBER, MAX_NUMBER, NUMBERS_PER_GAME, REWARD_CONFIG
from .errors import InvalidInput
from .notifications import Notifier, safe_log, safe_notify
from .players import MatchRecord
from .tracker import TemporalAccuracyTracker

logger = logging.getLogger(__name__)


def count_matches(prediction: Iterable[int], drawn: Iterable[int]) -> int:
    """Set intersection size; order and duplicates in the prediction do not matter."""
    return len(set(prediction) & set(drawn))


def calculate_reward(matches: int, numbers_per_game: int = NUMBERS_PER_GAME) -> int:
    """
    Points earned for a round.

    11 matches pay 1 point, 12 pay 2, ... 15 pay 5. Anything below the
    threshold pays nothing, so a player's score never decreases.
    """
    if not 0 <= matches <= numbers_per_game:
        raise InvalidInput(f"matches must be within [0, {numbers_per_game}], got {matches}")
    threshold = REWARD_CONFIG["reward_threshold"]
    if matches >= threshold:
        return matches - (threshold - 1)
    return 0


def describe_reward(matches: int, player_id: int) -> str:
    reward = calculate_reward(matches)
    if reward > 0:
        return f"[Player #{player_id}] Reward: +{reward} points for hitting {matches} numbers!"
    return f"[Player #{player_id}] No points: {matches} matches."


@dataclass
class PlayerOutcome:
    player_id: int
    predictions: List[int]
    matches: int
    reward: int
    random_matches: int


@dataclass
class RoundEvaluation:
    """Everything a round produces, computed before any state is touched."""
    round_index: int
    drawn_numbers: List[int]
    outcomes: List[PlayerOutcome] = field(default_factory=list)
    failures: Dict[int, str] = field(default_factory=dict)
    applied: bool = False

    @property
    def current_game_matches(self) -> int:
        return sum(o.matches for o in self.outcomes)

    @property
    def current_game_random_matches(self) -> int:
        return sum(o.random_matches for o in self.outcomes)

    @property
    def total_predictions(self) -> int:
        return len(self.outcomes) * (self.round_index + 1)

    def best(self) -> Optional[PlayerOutcome]:
        if not self.outcomes:
            return None
        return max(self.outcomes, key=lambda o: (o.matches, -o.player_id))


class RewardEvaluator:
    """Scores predictions against a draw and commits rewards to players."""

    def __init__(self, notifier: Optional[Notifier] = None,
                 rng: Optional[np.random.Generator] = None,
                 min_number: int = MIN_NUMBER, max_number: int = MAX_NUMBER,
                 numbers_per_game: int = NUMBERS_PER_GAME):
        self.notifier = notifier
        self.rng = rng if rng is not None else np.random.default_rng()
        self.min_number = min_number
        self.max_number = max_number
        self.numbers_per_game = numbers_per_game

    def random_draw(self) -> List[int]:
        """Uniform random same-size draw used as the chance baseline."""
        pool = np.arange(self.min_number, self.max_number + 1)
        return sorted(self.rng.choice(pool, size=self.numbers_per_game, replace=False).tolist())

    def score_round(self, players: Sequence, predictions: Dict[int, List[int]],
                    drawn_numbers: Iterable[int], round_index: int) -> RoundEvaluation:
        """Pure scoring step. Players without a prediction are reported as failures."""
        drawn = set(drawn_numbers)
        evaluation = RoundEvaluation(round_index=round_index, drawn_numbers=sorted(drawn))

        for player in players:
            prediction = predictions.get(player.id)
            if prediction is None:
                evaluation.failures[player.id] = "no prediction"
                continue
            try:
                matches = count_matches(prediction, drawn)
                reward = calculate_reward(matches, self.numbers_per_game)
            except Exception as e:
                evaluation.failures[player.id] = f"{type(e).__name__}: {e}"
                continue
            # Baseline is redrawn for every player, every round
            random_matches = count_matches(self.random_draw(), drawn)
            evaluation.outcomes.append(PlayerOutcome(
                player_id=player.id,
                predictions=sorted(int(n) for n in prediction),
                matches=matches,
                reward=reward,
                random_matches=random_matches
            ))
        return evaluation

    def apply(self, evaluation: RoundEvaluation, players: Sequence,
              tracker: Optional[TemporalAccuracyTracker] = None):
        """Commit an evaluation: player scores, history, tracker and notifications."""
        if evaluation.applied:
            raise InvalidInput(f"Round {evaluation.round_index} evaluation already applied")
        by_id = {p.id: p for p in players}
        missing = [o.player_id for o in evaluation.outcomes if o.player_id not in by_id]
        if missing:
            raise InvalidInput(f"Evaluation refers to unknown players: {missing}")

        for outcome in evaluation.outcomes:
            player = by_id[outcome.player_id]
            player.score += outcome.reward
            player.fitness = outcome.matches
            player.predictions = list(outcome.predictions)
            player.match_history.append(MatchRecord(
                round=evaluation.round_index,
                matches=outcome.matches,
                score=outcome.reward,
                predictions=list(outcome.predictions),
                drawn_numbers=list(evaluation.drawn_numbers)
            ))
            if tracker is not None:
                tracker.record_accuracy(outcome.matches, self.numbers_per_game)
            self._announce(outcome)

        evaluation.applied = True
        logger.debug(f"Round {evaluation.round_index}: applied {len(evaluation.outcomes)} outcomes.")

    def evaluate_round(self, players: Sequence, predictions: Dict[int, List[int]],
                       drawn_numbers: Iterable[int], round_index: int,
                       tracker: Optional[TemporalAccuracyTracker] = None) -> RoundEvaluation:
        evaluation = self.score_round(players, predictions, drawn_numbers, round_index)
        self.apply(evaluation, players, tracker)
        return evaluation

    def _announce(self, outcome: PlayerOutcome):
        if outcome.matches >= REWARD_CONFIG["reward_threshold"]:
            safe_log(self.notifier, "reward", describe_reward(outcome.matches, outcome.player_id), {
                "player_id": outcome.player_id,
                "matches": outcome.matches,
                "reward": outcome.reward
            })
        if outcome.matches >= REWARD_CONFIG["high_performance"]:
            safe_notify(self.notifier, "high", "Exceptional performance",
                        f"Player {outcome.player_id} hit {outcome.matches} numbers!")
