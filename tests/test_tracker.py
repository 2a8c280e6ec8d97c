import threading

import pytest

from lotoevo.errors import InvalidInput
from lotoevo.tracker import TemporalAccuracyTracker


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_average_is_zero_without_samples():
    assert TemporalAccuracyTracker().get_average_accuracy() == 0
    assert TemporalAccuracyTracker().get_recent_accuracy() == 0


def test_records_ratio():
    tracker = TemporalAccuracyTracker()
    assert tracker.record_accuracy(15, 15) == 1.0
    tracker.record_accuracy(0, 15)
    assert tracker.get_average_accuracy() == pytest.approx(0.5)


@pytest.mark.parametrize("matches,total", [(1, 0), (0, -3), (-1, 15), (16, 15)])
def test_rejects_invalid_samples(matches, total):
    tracker = TemporalAccuracyTracker()
    with pytest.raises(InvalidInput):
        tracker.record_accuracy(matches, total)
    assert len(tracker) == 0


def test_buffer_is_capped_with_fifo_eviction():
    clock = FakeClock()
    tracker = TemporalAccuracyTracker(clock=clock)
    tracker.record_accuracy(15, 15)  # the oldest, distinctive sample
    for _ in range(1000):
        clock.now += 1
        tracker.record_accuracy(0, 15)

    samples = tracker.samples()
    assert len(samples) == 1000
    assert all(s["accuracy"] == 0.0 for s in samples)
    assert samples[0]["timestamp"] == 1001.0


def test_window_filters_old_samples():
    clock = FakeClock()
    tracker = TemporalAccuracyTracker(clock=clock)
    tracker.record_accuracy(15, 15)
    clock.now += 7200
    tracker.record_accuracy(5, 10)

    assert tracker.get_average_accuracy() == pytest.approx(0.75)
    assert tracker.get_average_accuracy(window_seconds=3600) == pytest.approx(0.5)
    assert tracker.get_average_accuracy(window_seconds=1) == pytest.approx(0.5)


def test_concurrent_writers_do_not_lose_samples():
    tracker = TemporalAccuracyTracker(max_history=5000)

    def worker():
        for _ in range(500):
            tracker.record_accuracy(7, 15)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(tracker) == 4000


def test_load_samples_and_reset():
    tracker = TemporalAccuracyTracker(max_history=2)
    tracker.load_samples([
        {"timestamp": 1.0, "accuracy": 0.1},
        {"timestamp": 2.0, "accuracy": 0.2},
        {"timestamp": 3.0, "accuracy": 0.3},
    ])
    assert [s["accuracy"] for s in tracker.samples()] == [0.2, 0.3]

    with pytest.raises(InvalidInput):
        tracker.load_samples([{"timestamp": 1.0, "accuracy": 2.0}])
    assert len(tracker) == 2

    tracker.reset()
    assert len(tracker) == 0
