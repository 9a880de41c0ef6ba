"""
Statistical primitives shared by the per-user and group aggregations.

Every function here is total: empty or degenerate input yields a sentinel
(0 or None) instead of raising.
"""

from __future__ import annotations

import math
from typing import Iterable, Mapping, Sequence

from .config import DEFAULT_JITTER_SPREAD, JITTER_BUCKETS, MIN_CORRELATION_PAIRS

_DJB2_SEED = 5381
_UINT32_MASK = 0xFFFFFFFF


def clamp(n: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, n))


def linspace(a: float, b: float, n: int) -> list[float]:
    """n evenly spaced values from a to b inclusive."""
    if n <= 0:
        return []
    if n == 1:
        return [float(a)]
    return [a + (i * (b - a)) / (n - 1) for i in range(n)]


def round_half_up(x: float, ndigits: int = 0) -> float:
    """Round halves towards +inf (0.5 -> 1, -0.5 -> 0, 2.5 -> 3)."""
    factor = 10 ** ndigits
    return math.floor(x * factor + 0.5) / factor


def round_to_quarter(n: float) -> float:
    return round_half_up(n / 0.25) * 0.25


def mean(xs: Sequence[float]) -> float:
    """Arithmetic mean; 0 for empty input."""
    return sum(xs) / len(xs) if xs else 0.0


def variance(xs: Sequence[float]) -> float:
    """Population variance (divides by n); 0 for empty input."""
    if not xs:
        return 0.0
    m = mean(xs)
    return sum((x - m) * (x - m) for x in xs) / len(xs)


def stdev(xs: Sequence[float]) -> float:
    return math.sqrt(variance(xs))


def sample_stdev(xs: Sequence[float]) -> float | None:
    """Sample standard deviation (n - 1); None with fewer than 2 values."""
    if len(xs) < 2:
        return None
    m = sum(xs) / len(xs)
    return math.sqrt(sum((x - m) ** 2 for x in xs) / (len(xs) - 1))


def median(xs: Iterable[float]) -> float | None:
    ordered = sorted(xs)
    if not ordered:
        return None
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def _is_constant(xs: Sequence[float]) -> bool:
    return len(set(xs)) <= 1


def pearson(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Pearson correlation of two equally long series.

    Returns 0 when either series has zero variance (no measurable
    relationship) instead of signalling an error.
    """
    if _is_constant(x) or _is_constant(y):
        return 0.0
    mx, my = mean(x), mean(y)
    num = dx = dy = 0.0
    for a, b in zip(x, y):
        da, db = a - mx, b - my
        num += da * db
        dx += da * da
        dy += db * db
    den = math.sqrt(dx * dy)
    return 0.0 if den == 0 else num / den


def correlation(x: Sequence[float], y: Sequence[float]) -> float | None:
    """
    Correlation for reporting: None when it cannot be measured.

    Uses the common prefix of both series, requires at least two pairs and
    non-zero variance on both sides, and rounds to two decimals.
    """
    n = min(len(x), len(y))
    if n < MIN_CORRELATION_PAIRS:
        return None
    xs, ys = list(x[:n]), list(y[:n])
    if _is_constant(xs) or _is_constant(ys):
        return None
    return round_half_up(pearson(xs, ys), 2)


def djb2(text: str) -> int:
    """djb2 string hash over UTF-16 code units, as an unsigned 32-bit int."""
    h = _DJB2_SEED
    data = text.encode("utf-16-le", errors="surrogatepass")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 33 + unit) & _UINT32_MASK
    return h


def seeded_jitter(key: str, spread: float = DEFAULT_JITTER_SPREAD) -> float:
    """Stable pseudo-random offset in [-spread, spread) derived from key."""
    r = (djb2(key) % JITTER_BUCKETS) / JITTER_BUCKETS
    return (r - 0.5) * 2 * spread


def average_rating(ratings: Mapping[str, float] | None) -> float | None:
    """Mean of the finite values of a ratings mapping; None if there are none."""
    if not ratings:
        return None
    vals = [
        v for v in ratings.values()
        if isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)
    ]
    if not vals:
        return None
    return sum(vals) / len(vals)
