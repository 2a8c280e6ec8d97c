import numpy as np
import pytest

from lotoevo.context import DrawContext
from lotoevo.heuristics import clear_caches
from lotoevo.notifications import RecordingNotifier


class FakeModel:
    """Returns a fixed probability vector; counts calls and records training."""

    def __init__(self, probs=None, error=None, train_error=None):
        self.probs = np.linspace(0.01, 0.99, 25) if probs is None else np.asarray(probs)
        self.error = error
        self.train_error = train_error
        self.calls = 0
        self.train_calls = []

    def predict(self, input_vector):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.probs

    def train(self, dataset, config=None):
        if self.train_error is not None:
            raise self.train_error
        X, y = dataset
        self.train_calls.append((np.array(X), np.array(y), config))
        return self


def make_context(drawn=range(1, 16), round_index=0, **kwargs):
    kwargs.setdefault("input_vector", [0.5] * 17)
    return DrawContext.create(drawn_numbers=list(drawn), round_index=round_index, **kwargs)


@pytest.fixture(autouse=True)
def fresh_caches():
    clear_caches()
    yield
    clear_caches()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def ascending_model():
    # Probability grows with the number: top 15 are 11..25
    return FakeModel(probs=np.arange(1, 26) / 26.0)
