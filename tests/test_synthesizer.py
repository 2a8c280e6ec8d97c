import numpy as np
import pytest

from lotoevo.config import EngineConfig
from lotoevo.errors import InvalidInput, PartialBatchFailure
from lotoevo.notifications import Notifier
from lotoevo.players import Player
from lotoevo.synthesizer import PredictionSynthesizer

from conftest import make_context

ASCENDING = np.arange(1, 26) / 26.0
UNIFORM = [1.0 / 17] * 17


class BrokenNotifier(Notifier):
    def notify(self, severity, title, message):
        raise RuntimeError("sink down")

    def log(self, kind, message, details=None):
        raise RuntimeError("sink down")


def test_picks_top_fifteen_sorted():
    result = PredictionSynthesizer().synthesize(ASCENDING, UNIFORM)
    assert result == list(range(11, 26))


def test_neutral_context_keeps_ranking():
    ctx = make_context()
    assert PredictionSynthesizer().synthesize(ASCENDING, UNIFORM, ctx) == list(range(11, 26))


def test_weights_wrap_around_number_range():
    # Even numbers get weight 0; ties among them go to the lower numbers
    result = PredictionSynthesizer().synthesize(ASCENDING, [1.0, 0.0])
    odds = list(range(1, 26, 2))
    assert result == sorted(odds + [2, 4])


def test_ties_break_by_lower_number():
    result = PredictionSynthesizer().synthesize([0.5] * 25, UNIFORM)
    assert result == list(range(1, 16))


def test_result_is_distinct_and_in_range():
    rng = np.random.default_rng(11)
    synth = PredictionSynthesizer()
    for _ in range(20):
        result = synth.synthesize(rng.random(25), rng.random(17))
        assert len(result) == 15
        assert len(set(result)) == 15
        assert all(1 <= n <= 25 for n in result)
        assert result == sorted(result)


def test_short_probability_vector_yields_short_prediction():
    result = PredictionSynthesizer().synthesize(np.linspace(0.1, 0.9, 10), UNIFORM)
    assert result == list(range(1, 11))


def test_non_finite_probabilities_are_skipped():
    raw = ASCENDING.copy()
    raw[:11] = np.nan
    result = PredictionSynthesizer().synthesize(raw, UNIFORM)
    assert result == list(range(12, 26))


def test_numbers_beyond_range_are_ignored():
    raw = np.arange(1, 31) / 30.0
    result = PredictionSynthesizer().synthesize(raw, UNIFORM)
    assert result == list(range(11, 26))


@pytest.mark.parametrize("weights", [[], [np.nan, 1.0], [[0.1, 0.2]]])
def test_malformed_weights_raise(weights):
    with pytest.raises(InvalidInput):
        PredictionSynthesizer().synthesize(ASCENDING, weights)


def test_emits_feedback_event(notifier):
    PredictionSynthesizer(notifier=notifier).synthesize(ASCENDING, UNIFORM)
    events = notifier.of_kind("prediction_feedback")
    assert len(events) == 1
    assert events[0]["details"]["selected_numbers"] == list(range(11, 26))
    assert events[0]["details"]["mean_selected_probability"] > 0


def test_sink_failure_does_not_break_synthesis():
    result = PredictionSynthesizer(notifier=BrokenNotifier()).synthesize(ASCENDING, UNIFORM)
    assert result == list(range(11, 26))


@pytest.mark.parametrize("max_workers", [1, 4])
def test_batch_isolates_failures(max_workers):
    players = [
        Player(id=1, weights=UNIFORM),
        Player(id=2, weights=[]),
        Player(id=3, weights=[0.3] * 17),
    ]
    synth = PredictionSynthesizer(max_workers=max_workers)
    batch = synth.synthesize_batch(players, ASCENDING, make_context())

    assert sorted(batch.predictions) == [1, 3]
    assert batch.failed_ids == [2]
    assert "InvalidInput" in batch.failures[2]
    assert not batch.ok
    assert batch.predictions[1] == list(range(11, 26))

    with pytest.raises(PartialBatchFailure) as exc_info:
        batch.raise_for_failures()
    assert list(exc_info.value.failures) == [2]


def test_from_config():
    config = EngineConfig(max_workers=3, use_heuristics=False)
    synth = PredictionSynthesizer.from_config(config)
    assert synth.max_workers == 3
    assert synth.use_heuristics is False
    assert synth.numbers_per_game == 15
