import numpy as np
import pytest

from lotoevo.errors import InvalidInput
from lotoevo.players import Player
from lotoevo.rewards import RewardEvaluator, calculate_reward, count_matches, describe_reward
from lotoevo.tracker import TemporalAccuracyTracker

DRAWN = list(range(1, 16))


def test_reward_is_non_negative_and_non_decreasing():
    rewards = [calculate_reward(m) for m in range(16)]
    assert rewards[0] >= 0
    assert all(b >= a for a, b in zip(rewards, rewards[1:]))
    assert rewards[10] == 0
    assert rewards[11:] == [1, 2, 3, 4, 5]


@pytest.mark.parametrize("matches", [-1, 16])
def test_reward_rejects_impossible_counts(matches):
    with pytest.raises(InvalidInput):
        calculate_reward(matches)


def test_count_matches_uses_set_semantics():
    assert count_matches([3, 2, 1], [1, 2, 3, 4]) == 3
    assert count_matches([1, 1, 2], [1, 2]) == 2
    assert count_matches(reversed(DRAWN), DRAWN) == 15


def test_describe_reward():
    assert "+5 points" in describe_reward(15, 7)
    assert "No points" in describe_reward(4, 7)


def test_random_draw_is_valid():
    evaluator = RewardEvaluator(rng=np.random.default_rng(0))
    for _ in range(50):
        draw = evaluator.random_draw()
        assert len(draw) == 15
        assert len(set(draw)) == 15
        assert all(1 <= n <= 25 for n in draw)


def test_perfect_round(notifier):
    tracker = TemporalAccuracyTracker()
    player = Player(id=1, weights=[1.0])
    evaluator = RewardEvaluator(notifier=notifier, rng=np.random.default_rng(1))

    evaluation = evaluator.evaluate_round([player], {1: DRAWN}, DRAWN, 0, tracker)

    assert player.score == 5
    assert player.fitness == 15
    assert player.predictions == DRAWN
    assert player.match_history[-1].matches == 15
    assert player.match_history[-1].round == 0
    assert tracker.get_average_accuracy() == 1.0
    assert evaluation.current_game_matches == 15
    assert 0 <= evaluation.current_game_random_matches <= 15

    high = [n for n in notifier.notifications if n["severity"] == "high"]
    assert len(high) == 1
    assert high[0]["title"] == "Exceptional performance"
    assert len(notifier.of_kind("reward")) == 1


@pytest.mark.parametrize("matches", [11, 12])
def test_threshold_logs_without_high_alert(notifier, matches):
    prediction = list(range(1, matches + 1)) + list(range(16, 16 + 15 - matches))
    player = Player(id=4, weights=[1.0])
    RewardEvaluator(notifier=notifier).evaluate_round([player], {4: prediction}, DRAWN, 2)

    assert player.score == matches - 10
    assert len(notifier.of_kind("reward")) == 1
    assert notifier.notifications == []


def test_low_matches_are_silent(notifier):
    player = Player(id=1, weights=[1.0], score=3)
    RewardEvaluator(notifier=notifier).evaluate_round([player], {1: list(range(11, 26))}, DRAWN, 0)
    assert player.fitness == 5
    assert player.score == 3
    assert notifier.logs == [] and notifier.notifications == []


def test_reordered_prediction_scores_the_same():
    a, b = Player(id=1, weights=[1.0]), Player(id=2, weights=[1.0])
    prediction = [2, 4, 6, 8, 10, 12, 14, 16, 18, 20, 22, 24, 1, 3, 5]
    evaluation = RewardEvaluator().score_round(
        [a, b], {1: prediction, 2: list(reversed(prediction))}, DRAWN, 0
    )
    assert [o.matches for o in evaluation.outcomes] == [10, 10]


def test_missing_prediction_is_a_failure():
    players = [Player(id=1, weights=[1.0]), Player(id=2, weights=[1.0])]
    evaluator = RewardEvaluator()
    evaluation = evaluator.score_round(players, {1: DRAWN}, DRAWN, 5)

    assert evaluation.failures == {2: "no prediction"}
    assert [o.player_id for o in evaluation.outcomes] == [1]
    assert evaluation.total_predictions == 6

    evaluator.apply(evaluation, players)
    assert players[1].match_history == []
    assert players[1].score == 0


def test_score_round_is_pure():
    player = Player(id=1, weights=[1.0])
    RewardEvaluator().score_round([player], {1: DRAWN}, DRAWN, 0)
    assert player.score == 0
    assert player.match_history == []


def test_apply_twice_is_rejected():
    player = Player(id=1, weights=[1.0])
    evaluator = RewardEvaluator()
    evaluation = evaluator.score_round([player], {1: DRAWN}, DRAWN, 0)
    evaluator.apply(evaluation, [player])
    with pytest.raises(InvalidInput):
        evaluator.apply(evaluation, [player])
    assert player.score == 5


def test_best_outcome_prefers_lower_id_on_ties():
    players = [Player(id=i, weights=[1.0]) for i in (3, 1, 2)]
    predictions = {3: DRAWN, 1: DRAWN, 2: list(range(11, 26))}
    evaluation = RewardEvaluator().score_round(players, predictions, DRAWN, 0)
    assert evaluation.best().player_id == 1
