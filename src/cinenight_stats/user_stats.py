"""
Per-user statistics derived from a viewing history.

Every public function takes `(history, user)` where history is either raw
viewing records or already-normalized `Viewing` objects. The history is
normalized on entry and never mutated; entries that lack the field a metric
needs are skipped rather than aborting the computation.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable

from .config import (
    AFFINITY_SIZE,
    MIN_BIAS_SAMPLES,
    RUNTIME_MEDIUM_MAX,
    RUNTIME_SHORT_MAX,
    TOP_PICKS_SIZE,
    WIN_THRESHOLD,
)
from .math_utils import average_rating, correlation, mean, round_half_up, sample_stdev
from .normalize import Viewing, is_picked_by, norm_user, normalize_history

logger = logging.getLogger(__name__)

RUNTIME_LABELS = {
    "short": f"Short (<{RUNTIME_SHORT_MAX})",
    "medium": f"Medium ({RUNTIME_SHORT_MAX}-{RUNTIME_MEDIUM_MAX})",
    "long": f"Long (>{RUNTIME_MEDIUM_MAX})",
}


@dataclass
class SparkItem:
    """One point of a per-user time series."""
    t: int
    val: float
    title: str | None = None
    label: str | None = None


@dataclass
class TitledScore:
    title: str
    avg: float


@dataclass
class AffinityRow:
    user: str
    corr: float


@dataclass
class Affinity:
    """Most and least aligned raters relative to one user."""
    most: list[AffinityRow] = field(default_factory=list)
    least: list[AffinityRow] = field(default_factory=list)


@dataclass
class CrowdComparison:
    avg_user: float | None = None
    avg_crowd: float | None = None

    @property
    def delta(self) -> float | None:
        if self.avg_user is None or self.avg_crowd is None:
            return None
        return self.avg_user - self.avg_crowd


def _views(history: Iterable[Any] | None) -> list[Viewing]:
    return normalize_history(history)


def _picks(views: list[Viewing], user: str) -> list[Viewing]:
    return [v for v in views if is_picked_by(v, user)]


def _pick_averages(views: list[Viewing], user: str) -> list[tuple[Viewing, float]]:
    rows = []
    for v in _picks(views, user):
        avg = average_rating(v.ratings)
        if avg is not None:
            rows.append((v, avg))
    return rows


# ---------------------------------------------------------------------------
# Time series
# ---------------------------------------------------------------------------

def build_votes_given(history, user: str) -> list[SparkItem]:
    """The user's own ratings, in history order, indexed by original position."""
    return [
        SparkItem(t=v.index, val=v.ratings[user], title=v.movie.title)
        for v in _views(history)
        if user in v.ratings
    ]


def build_votes_received(history, user: str) -> list[SparkItem]:
    """
    Average score of each viewing the user picked.

    The average includes the picker's own rating when present; picks without
    any rating are skipped.
    """
    items = []
    for i, v in enumerate(_picks(_views(history), user)):
        avg = average_rating(v.ratings)
        if avg is None:
            continue
        items.append(SparkItem(t=i, val=avg, title=v.movie.title, label=f"{len(v.ratings)} votes"))
    return items


def win_rate_series(history, user: str) -> list[SparkItem]:
    """Cumulative share of winning picks after each pick."""
    items = []
    wins = 0
    for i, v in enumerate(_picks(_views(history), user)):
        avg = average_rating(v.ratings) or 0.0
        if avg >= WIN_THRESHOLD:
            wins += 1
        items.append(SparkItem(
            t=i,
            val=round_half_up(wins / (i + 1), 2),
            title=v.movie.title,
            label=f"{wins}/{i + 1}",
        ))
    return items


def ref_bias_series(history, user: str) -> list[SparkItem]:
    """Per pick: group average minus the reference score."""
    items = []
    for v, avg in _pick_averages(_views(history), user):
        if v.movie.ref_score is None:
            continue
        items.append(SparkItem(
            t=len(items),
            val=round_half_up(avg - v.movie.ref_score, 2),
            title=v.movie.title,
        ))
    return items


# ---------------------------------------------------------------------------
# Distributions over the user's picks
# ---------------------------------------------------------------------------

def build_year_distribution(history, user: str, by_decade: bool = False) -> list[dict]:
    dist: dict[int | float, int] = defaultdict(int)
    for v in _picks(_views(history), user):
        year = v.movie.year
        if year is None:
            continue
        key = int(year // 10) * 10 if by_decade else year
        dist[key] += 1
    return [
        {"name": f"{key}s" if by_decade else str(key), "count": count}
        for key, count in sorted(dist.items())
    ]


def runtime_bucket(runtime: float) -> str:
    """Bucket key for a runtime in minutes: short, medium (90-120) or long."""
    if runtime < RUNTIME_SHORT_MAX:
        return "short"
    if runtime <= RUNTIME_MEDIUM_MAX:
        return "medium"
    return "long"


def runtime_buckets(history, user: str) -> list[dict]:
    counts = {"short": 0, "medium": 0, "long": 0}
    for v in _picks(_views(history), user):
        # zero means "unknown" in most sources
        if not v.movie.runtime:
            continue
        counts[runtime_bucket(v.movie.runtime)] += 1
    return [{"name": RUNTIME_LABELS[key], "count": count} for key, count in counts.items()]


def country_distribution(history, user: str) -> list[dict]:
    dist: dict[str, int] = {}
    for v in _picks(_views(history), user):
        country = v.movie.country
        if not country:
            continue
        dist[country] = dist.get(country, 0) + 1
    rows = [{"name": name, "count": count} for name, count in dist.items()]
    rows.sort(key=lambda row: -row["count"])
    return rows


def votes_received_histogram(history, user: str) -> list[float]:
    return [avg for _, avg in _pick_averages(_views(history), user)]


def collect_received_votes_on_picks(history, user: str, include_self: bool = False) -> list[float]:
    """
    Flatten every rating cast on the user's picks.

    The picker's own rating is left out unless include_self is set; rater
    names are compared case-insensitively.
    """
    me = norm_user(user)
    out = []
    for v in _picks(_views(history), user):
        for rater, score in v.ratings.items():
            if not include_self and norm_user(rater) == me:
                continue
            out.append(score)
    return out


# ---------------------------------------------------------------------------
# Scalar summaries
# ---------------------------------------------------------------------------

def years_summary(history, user: str) -> dict:
    years = [v.movie.year for v in _picks(_views(history), user) if v.movie.year is not None]
    if not years:
        return {"avg": None, "min": None, "max": None}
    return {
        "avg": int(round_half_up(sum(years) / len(years))),
        "min": min(years),
        "max": max(years),
    }


def average_runtime(history, user: str) -> int | None:
    """Rounded mean runtime of the viewings the user rated."""
    runtimes = [
        v.movie.runtime for v in _views(history)
        if user in v.ratings and v.movie.runtime is not None
    ]
    if not runtimes:
        return None
    return int(round_half_up(sum(runtimes) / len(runtimes)))


def average_ref_score_for_picks(history, user: str) -> float | None:
    refs = [v.movie.ref_score for v in _picks(_views(history), user) if v.movie.ref_score is not None]
    if not refs:
        return None
    return round_half_up(sum(refs) / len(refs), 2)


def pick_win_rate(history, user: str) -> int | None:
    """Percentage of picks whose average reached the win threshold."""
    picks = _picks(_views(history), user)
    if not picks:
        return None
    winners = 0
    for v in picks:
        avg = average_rating(v.ratings)
        if avg is not None and avg >= WIN_THRESHOLD:
            winners += 1
    return int(round_half_up(winners / len(picks) * 100))


def hit_rate(history, user: str) -> int | None:
    """Percentage of the user's own ratings at or above the win threshold."""
    scores = [item.val for item in build_votes_given(history, user)]
    if not scores:
        return None
    hits = sum(1 for s in scores if s >= WIN_THRESHOLD)
    return int(round_half_up(hits / len(scores) * 100))


def top_rated_picks(history, user: str, n: int = TOP_PICKS_SIZE) -> list[TitledScore]:
    rows = [TitledScore(title=v.movie.title, avg=avg) for v, avg in _pick_averages(_views(history), user)]
    rows.sort(key=lambda row: -row.avg)
    return rows[:n]


def pick_polarization(history, user: str) -> float | None:
    """Mean per-viewing spread of the ratings on the user's picks."""
    spreads = []
    for v in _picks(_views(history), user):
        spread = sample_stdev(list(v.ratings.values()))
        if spread is not None:
            spreads.append(spread)
    if not spreads:
        return None
    return round_half_up(mean(spreads), 2)


def pick_bias_vs_ref(history, user: str) -> float | None:
    """Mean of (group average - reference score) over the user's picks."""
    diffs = [
        avg - v.movie.ref_score
        for v, avg in _pick_averages(_views(history), user)
        if v.movie.ref_score is not None
    ]
    if not diffs:
        return None
    return round_half_up(mean(diffs), 2)


# ---------------------------------------------------------------------------
# Cross-user comparisons
# ---------------------------------------------------------------------------

def _raters(views: list[Viewing]) -> list[str]:
    # first-seen order
    return list(dict.fromkeys(u for v in views for u in v.ratings))


def affinity_with_others(history, user: str, n: int = AFFINITY_SIZE) -> Affinity:
    """
    Correlate the user with every other rater over co-rated viewings.

    Raters whose correlation cannot be measured (fewer than two shared
    viewings, or no variance on either side) are left out of both lists.
    Ties keep first-seen order.
    """
    views = _views(history)
    rows = []
    for other in _raters(views):
        if other == user:
            continue
        xs, ys = [], []
        for v in views:
            if user in v.ratings and other in v.ratings:
                xs.append(v.ratings[user])
                ys.append(v.ratings[other])
        corr = correlation(xs, ys)
        if corr is None:
            logger.debug("No measurable affinity between %s and %s (%d shared)", user, other, len(xs))
            continue
        rows.append(AffinityRow(user=other, corr=corr))

    most = sorted(rows, key=lambda row: -row.corr)[:n]
    least = sorted(rows, key=lambda row: row.corr)[:n]
    return Affinity(most=most, least=least)


def user_vs_crowd_averages(history, user: str) -> CrowdComparison:
    """Mean of the user's ratings next to the mean crowd average on the same viewings."""
    mine, crowd = [], []
    for v in _views(history):
        if user not in v.ratings:
            continue
        mine.append(v.ratings[user])
        crowd.append(average_rating(v.ratings))
    if not mine:
        return CrowdComparison()
    return CrowdComparison(avg_user=mean(mine), avg_crowd=mean(crowd))


def corr_with_group(history, user: str) -> float | None:
    """Correlation between the user's rating and the mean of the other raters."""
    xs, ys = [], []
    for v in _views(history):
        if user not in v.ratings:
            continue
        others = [score for rater, score in v.ratings.items() if rater != user]
        if not others:
            continue
        xs.append(v.ratings[user])
        ys.append(mean(others))
    return correlation(xs, ys)


def corr_with_ref(history, user: str) -> float | None:
    xs, ys = [], []
    for v in _views(history):
        if user in v.ratings and v.movie.ref_score is not None:
            xs.append(v.ratings[user])
            ys.append(v.movie.ref_score)
    return correlation(xs, ys)


def bias_z_score(history, user: str) -> float | None:
    """
    How far the user's average bias (rating minus viewing average) sits
    from the group's, in units of the group's bias spread.
    """
    mine, everyone = [], []
    for v in _views(history):
        avg = average_rating(v.ratings)
        if avg is None:
            continue
        for rater, score in v.ratings.items():
            bias = score - avg
            if rater == user:
                mine.append(bias)
            everyone.append(bias)
    if not mine or len(everyone) < MIN_BIAS_SAMPLES:
        return None
    spread = sample_stdev(everyone)
    if not spread:
        return None
    return round_half_up((mean(mine) - mean(everyone)) / spread, 2)


# ---------------------------------------------------------------------------
# Bundled report
# ---------------------------------------------------------------------------

@dataclass
class UserReport:
    """Everything the personal stats panel shows for one user."""
    user: str
    votes_given: list[SparkItem] = field(default_factory=list)
    votes_received: list[SparkItem] = field(default_factory=list)
    win_rate_series: list[SparkItem] = field(default_factory=list)
    ref_bias_series: list[SparkItem] = field(default_factory=list)
    year_distribution: list[dict] = field(default_factory=list)
    decade_distribution: list[dict] = field(default_factory=list)
    runtime_buckets: list[dict] = field(default_factory=list)
    country_distribution: list[dict] = field(default_factory=list)
    years: dict = field(default_factory=dict)
    average_runtime: int | None = None
    average_ref_score: float | None = None
    pick_win_rate: int | None = None
    hit_rate: int | None = None
    top_picks: list[TitledScore] = field(default_factory=list)
    received_votes: list[float] = field(default_factory=list)
    received_spread: float | None = None
    polarization: float | None = None
    bias_vs_ref: float | None = None
    affinity: Affinity = field(default_factory=Affinity)
    crowd: CrowdComparison = field(default_factory=CrowdComparison)
    corr_with_group: float | None = None
    corr_with_ref: float | None = None
    bias_z: float | None = None

    @property
    def n_given(self) -> int:
        return len(self.votes_given)

    @property
    def n_picks_rated(self) -> int:
        return len(self.votes_received)


def build_user_report(history, user: str) -> UserReport:
    views = _views(history)
    received = collect_received_votes_on_picks(views, user)
    return UserReport(
        user=user,
        votes_given=build_votes_given(views, user),
        votes_received=build_votes_received(views, user),
        win_rate_series=win_rate_series(views, user),
        ref_bias_series=ref_bias_series(views, user),
        year_distribution=build_year_distribution(views, user),
        decade_distribution=build_year_distribution(views, user, by_decade=True),
        runtime_buckets=runtime_buckets(views, user),
        country_distribution=country_distribution(views, user),
        years=years_summary(views, user),
        average_runtime=average_runtime(views, user),
        average_ref_score=average_ref_score_for_picks(views, user),
        pick_win_rate=pick_win_rate(views, user),
        hit_rate=hit_rate(views, user),
        top_picks=top_rated_picks(views, user),
        received_votes=received,
        received_spread=sample_stdev(received),
        polarization=pick_polarization(views, user),
        bias_vs_ref=pick_bias_vs_ref(views, user),
        affinity=affinity_with_others(views, user),
        crowd=user_vs_crowd_averages(views, user),
        corr_with_group=corr_with_group(views, user),
        corr_with_ref=corr_with_ref(views, user),
        bias_z=bias_z_score(views, user),
    )
