import math
from dataclasses import dataclass
from datetime import date
from enum import Enum
from numbers import Integral
from typing import Iterable, Mapping, Optional, Sequence, Tuple

from .config import MIN_NUMBER, MAX_NUMBER, NUMBERS_PER_GAME
from .errors import InvalidInput


class LunarPhase(str, Enum):
    NOVA = "Nova"
    CRESCENTE = "Crescente"
    CHEIA = "Cheia"
    MINGUANTE = "Minguante"


def lunar_phase_for_date(day: date) -> LunarPhase:
    """Simplified lunar calendar: quarter of the month the draw falls in."""
    if day.day <= 7:
        return LunarPhase.NOVA
    if day.day <= 14:
        return LunarPhase.CRESCENTE
    if day.day <= 21:
        return LunarPhase.CHEIA
    return LunarPhase.MINGUANTE


@dataclass(frozen=True)
class PatternContext:
    """Pattern signals of a draw consumed by the pattern scorer.

    consecutive: fraction of adjacent (sorted) pairs that are consecutive.
    even_odd: fraction of even numbers.
    """
    consecutive: float
    even_odd: float

    def __post_init__(self):
        for name in ("consecutive", "even_odd"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidInput(f"PatternContext.{name} must be a number, got {value!r}")
            if not math.isfinite(value) or not 0.0 <= value <= 1.0:
                raise InvalidInput(f"PatternContext.{name} must be in [0, 1], got {value!r}")
        object.__setattr__(self, "consecutive", float(self.consecutive))
        object.__setattr__(self, "even_odd", float(self.even_odd))

    @classmethod
    def from_numbers(cls, numbers: Iterable[int]) -> "PatternContext":
        nums = sorted(set(int(n) for n in numbers))
        if not nums:
            raise InvalidInput("Cannot derive a pattern context from an empty draw")
        pairs = len(nums) - 1
        consecutive = 0
        for i in range(pairs):
            if nums[i + 1] - nums[i] == 1:
                consecutive += 1
        evens = sum(1 for n in nums if n % 2 == 0)
        return cls(
            consecutive=consecutive / pairs if pairs else 0.0,
            even_odd=evens / len(nums)
        )


_EVEN_ODD_KEYS = ("even_odd", "evenOdd")


def parse_pattern_context(payload) -> Optional[PatternContext]:
    """Accept None, a PatternContext, or a {consecutive, even_odd} mapping."""
    if payload is None or isinstance(payload, PatternContext):
        return payload
    if isinstance(payload, Mapping):
        keys = set(payload.keys())
        for even_key in _EVEN_ODD_KEYS:
            if keys == {"consecutive", even_key}:
                return PatternContext(payload["consecutive"], payload[even_key])
        raise InvalidInput(f"Unrecognized pattern context keys: {sorted(map(str, keys))}")
    raise InvalidInput(f"Unrecognized pattern context type: {type(payload).__name__}")


def parse_lunar_phase(value) -> LunarPhase:
    if isinstance(value, LunarPhase):
        return value
    try:
        return LunarPhase(value)
    except ValueError:
        raise InvalidInput(f"Unknown lunar phase: {value!r}")


@dataclass(frozen=True)
class DrawContext:
    """Read-only description of one round: the actual draw plus auxiliary signals."""
    drawn_numbers: frozenset
    round_index: int
    lunar_phase: LunarPhase = LunarPhase.CHEIA
    pattern_context: Optional[PatternContext] = None
    input_vector: Optional[Tuple[float, ...]] = None
    draw_date: Optional[date] = None

    @classmethod
    def create(
        cls,
        drawn_numbers: Sequence[int],
        round_index: int,
        lunar_phase=LunarPhase.CHEIA,
        pattern_context=None,
        input_vector: Optional[Sequence[float]] = None,
        draw_date: Optional[date] = None,
        numbers_per_game: int = NUMBERS_PER_GAME,
        min_number: int = MIN_NUMBER,
        max_number: int = MAX_NUMBER
    ) -> "DrawContext":
        """Validate raw inputs and build a context; raises InvalidInput on bad shapes."""
        if isinstance(round_index, bool) or not isinstance(round_index, Integral) or round_index < 0:
            raise InvalidInput(f"round_index must be a non-negative integer, got {round_index!r}")

        numbers = list(drawn_numbers)
        if any(isinstance(n, bool) or not isinstance(n, Integral) for n in numbers):
            raise InvalidInput("Drawn numbers must be integers")
        drawn = frozenset(int(n) for n in numbers)
        if len(drawn) != len(numbers):
            raise InvalidInput("Drawn numbers contain duplicates")
        if len(drawn) != numbers_per_game:
            raise InvalidInput(f"Expected {numbers_per_game} drawn numbers, got {len(drawn)}")
        out_of_range = [n for n in drawn if not min_number <= n <= max_number]
        if out_of_range:
            raise InvalidInput(f"Drawn numbers out of range: {sorted(out_of_range)}")

        vector = None
        if input_vector is not None:
            try:
                vector = tuple(float(v) for v in input_vector)
            except (TypeError, ValueError):
                raise InvalidInput("input_vector must be a sequence of numbers")
            if not vector or not all(math.isfinite(v) for v in vector):
                raise InvalidInput("input_vector must be non-empty and finite")

        return cls(
            drawn_numbers=drawn,
            round_index=int(round_index),
            lunar_phase=parse_lunar_phase(lunar_phase),
            pattern_context=parse_pattern_context(pattern_context),
            input_vector=vector,
            draw_date=draw_date
        )
