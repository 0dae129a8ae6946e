# learner_analytics/utils/stats.py
import math
from typing import Iterable, List, Sequence, TypeVar

T = TypeVar("T")


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    """Rounds .5 away from zero for positive values (round() would go to even)."""
    return int(math.floor(value + 0.5))


def success_rate(events: Sequence) -> float:
    """Percentage (0-100) of events with success=True; 0 for an empty list."""
    if not events:
        return 0.0
    successes = sum(1 for e in events if e.success)
    return successes / len(events) * 100


def std_dev(values: Sequence[float]) -> float:
    """Population standard deviation."""
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return math.sqrt(variance)


def sliding_windows(items: Sequence[T], size: int) -> Iterable[Sequence[T]]:
    for i in range(len(items) - size + 1):
        yield items[i:i + size]


def split_halves(items: Sequence[T]) -> tuple[List[T], List[T]]:
    """Splits at floor(n/2); the second half gets the extra item."""
    midpoint = len(items) // 2
    return list(items[:midpoint]), list(items[midpoint:])
