import pandas as pd
import numpy as np
import logging
from typing import Iterator, List, Optional, Tuple
from .config import DATA_FILE, NUMBERS_PER_GAME, MAX_NUMBER, NEURAL_MODEL_PARAMS
from .context import DrawContext, PatternContext, lunar_phase_for_date

logger = logging.getLogger(__name__)


class LotteryDataManager:
    """Draw-history loader and feature builder for the evolution engine."""

    def __init__(self, file_path: str = str(DATA_FILE)):
        self.file_path = file_path
        self.data = None

    def load_data(self) -> pd.DataFrame:
        """
        Load the draw history CSV.

        Expected layout (header row required): concurso, date, then the 15
        drawn numbers. Rows with missing or non-numeric balls are dropped.
        """
        if self.data is not None:
            return self.data

        try:
            raw = pd.read_csv(self.file_path)
            if raw.shape[1] < 2 + NUMBERS_PER_GAME:
                raise ValueError(f"Expected at least {2 + NUMBERS_PER_GAME} columns, found {raw.shape[1]}")

            balls = raw.iloc[:, 2:2 + NUMBERS_PER_GAME].apply(pd.to_numeric, errors='coerce')
            concurso = pd.to_numeric(raw.iloc[:, 0], errors='coerce')
            valid = balls.notna().all(axis=1) & concurso.notna()
            if not valid.all():
                logger.warning(f"Dropping {int((~valid).sum())} rows with an invalid concurso or ball values.")

            self.data = pd.DataFrame({
                'concurso': concurso[valid].astype(int),
                'date': pd.to_datetime(raw.iloc[:, 1], dayfirst=True, errors='coerce')[valid],
                'numbers': [sorted(int(n) for n in row) for row in balls[valid].values]
            })
            self.data.sort_values('concurso', inplace=True)
            self.data.reset_index(drop=True, inplace=True)

            if self.data.empty:
                raise ValueError("No valid draws found.")

            logger.info(f"Successfully loaded {len(self.data)} draws.")
            return self.data

        except Exception as e:
            logger.error(f"Error loading data: {str(e)}")
            raise

    @staticmethod
    def from_draws(draws: List[List[int]], dates: Optional[List] = None) -> pd.DataFrame:
        """Build a history frame from in-memory draws (concurso numbered from 1)."""
        return pd.DataFrame({
            'concurso': np.arange(1, len(draws) + 1),
            'date': pd.to_datetime(dates) if dates is not None else pd.NaT,
            'numbers': [sorted(int(n) for n in d) for d in draws]
        })

    def build_input_vector(self, previous_numbers: List[int], concurso: int, date=None) -> np.ndarray:
        """
        Model input for a round: the previous draw normalized by MAX_NUMBER,
        the normalized round index and the normalized day of the year.
        """
        numbers = sorted(previous_numbers)[:NUMBERS_PER_GAME]
        normalized = [n / MAX_NUMBER for n in numbers]
        normalized += [0.0] * (NUMBERS_PER_GAME - len(normalized))
        concurso_norm = concurso / NEURAL_MODEL_PARAMS["max_concurso"]
        day_norm = date.timetuple().tm_yday / 366 if date is not None and not pd.isna(date) else 0.0
        return np.array(normalized + [concurso_norm, day_norm], dtype=np.float32)

    def build_training_set(self, data: pd.DataFrame) -> Tuple[np.ndarray, np.ndarray]:
        """Pairs (features of draw t, multi-hot draw t+1) for supervised training."""
        X, y = [], []
        for i in range(1, len(data)):
            prev_row = data.iloc[i - 1]
            row = data.iloc[i]
            X.append(self.build_input_vector(prev_row['numbers'], int(row['concurso']), row['date']))
            target = np.zeros(MAX_NUMBER)
            for num in row['numbers']:
                if 1 <= num <= MAX_NUMBER:
                    target[num - 1] = 1
            y.append(target)
        return np.array(X, dtype=np.float32), np.array(y, dtype=np.float32)

    def iter_contexts(self, data: pd.DataFrame, start: int = 1) -> Iterator[DrawContext]:
        """
        Yield one DrawContext per draw from ``start`` on, in round order.

        Each context's pattern signals and model input come from the previous
        draw, so nothing about the target draw leaks into its own prediction.
        """
        for i in range(max(1, start), len(data)):
            prev_row = data.iloc[i - 1]
            row = data.iloc[i]
            date = row['date'] if not pd.isna(row['date']) else None
            yield DrawContext.create(
                drawn_numbers=row['numbers'],
                round_index=i,
                lunar_phase=lunar_phase_for_date(date) if date is not None else "Cheia",
                pattern_context=PatternContext.from_numbers(prev_row['numbers']),
                input_vector=self.build_input_vector(prev_row['numbers'], int(row['concurso']), date),
                draw_date=date.date() if date is not None else None
            )
