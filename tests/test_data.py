import numpy as np
import pytest

from lotoevo.context import LunarPhase, PatternContext
from lotoevo.data import LotteryDataManager

DRAWS = [
    list(range(1, 16)),
    list(range(11, 26)),
    [1, 3, 5, 7, 9, 11, 13, 15, 17, 19, 21, 23, 25, 2, 4],
]


@pytest.fixture
def csv_file(tmp_path):
    path = tmp_path / "lotofacil.csv"
    header = "Concurso,Data," + ",".join(f"Bola{i}" for i in range(1, 16))
    rows = [
        "2,10/01/2024," + ",".join(str(n) for n in DRAWS[1]),
        "1,03/01/2024," + ",".join(str(n) for n in reversed(DRAWS[0])),
        "3,25/01/2024," + ",".join(str(n) for n in DRAWS[2]),
        "4,01/02/2024," + ",".join(["x"] * 15),
    ]
    path.write_text("\n".join([header] + rows) + "\n")
    return path


def test_load_data_sorts_and_cleans(csv_file):
    manager = LotteryDataManager(str(csv_file))
    data = manager.load_data()

    assert list(data["concurso"]) == [1, 2, 3]
    assert data["numbers"].iloc[0] == list(range(1, 16))
    assert data["date"].iloc[0].day == 3
    assert data["date"].iloc[0].month == 1
    assert manager.load_data() is data


def test_load_data_rejects_narrow_files(tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text("a,b,c\n1,2,3\n")
    with pytest.raises(ValueError):
        LotteryDataManager(str(path)).load_data()


def test_input_vector_layout():
    manager = LotteryDataManager()
    vector = manager.build_input_vector(list(range(25, 10, -1)), concurso=3184)
    assert vector.dtype == np.float32
    assert vector.shape == (17,)
    assert vector[0] == pytest.approx(11 / 25)
    assert vector[15] == pytest.approx(1.0)
    assert vector[16] == 0.0


def test_training_set_shapes():
    manager = LotteryDataManager()
    X, y = manager.build_training_set(LotteryDataManager.from_draws(DRAWS))
    assert X.shape == (2, 17)
    assert y.shape == (2, 25)
    assert y[0].sum() == 15
    assert y[0][10:].tolist() == [1.0] * 15


def test_iter_contexts_uses_previous_draw(csv_file):
    manager = LotteryDataManager(str(csv_file))
    contexts = list(manager.iter_contexts(manager.load_data()))

    assert [c.round_index for c in contexts] == [1, 2]
    first = contexts[0]
    assert first.drawn_numbers == frozenset(DRAWS[1])
    assert first.pattern_context == PatternContext.from_numbers(DRAWS[0])
    assert first.lunar_phase is LunarPhase.CRESCENTE
    assert first.input_vector[0] == pytest.approx(1 / 25)
    assert contexts[1].lunar_phase is LunarPhase.MINGUANTE


def test_iter_contexts_without_dates():
    data = LotteryDataManager.from_draws(DRAWS)
    contexts = list(LotteryDataManager().iter_contexts(data, start=2))
    assert len(contexts) == 1
    assert contexts[0].lunar_phase is LunarPhase.CHEIA
    assert contexts[0].draw_date is None


def test_load_data_drops_rows_with_invalid_concurso(tmp_path):
    path = tmp_path / "lotofacil.csv"
    header = "Concurso,Data," + ",".join(f"Bola{i}" for i in range(1, 16))
    balls = ",".join(str(n) for n in DRAWS[0])
    path.write_text("\n".join([header, f"1,03/01/2024,{balls}", f"abc,10/01/2024,{balls}"]) + "\n")

    data = LotteryDataManager(str(path)).load_data()

    assert list(data["concurso"]) == [1]
    assert data["numbers"].iloc[0] == DRAWS[0]
