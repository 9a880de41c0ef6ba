"""
Group-wide aggregates for the general stats page.

Genre counts, best and worst nights, the group-vs-reference comparison,
the rater similarity matrix, per-user genre radars and achievements.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

import numpy as np

from .config import (
    GENRE_RADAR_AXES,
    GROUP_REF_SIZE,
    MILESTONE_PICKS,
    MILESTONE_VIEWINGS,
    SPREAD_SPLIT,
    SPREAD_TIGHT,
    STREAK_THRESHOLD,
    TOP_PICKS_SIZE,
    WEEK_SECONDS,
    WIN_THRESHOLD,
)
from .math_utils import average_rating, pearson
from .normalize import Viewing, epoch_seconds, normalize_history

logger = logging.getLogger(__name__)


@dataclass
class MovieStat:
    """One rated viewing, flattened for tables and charts."""
    id: Any
    title: str
    avg: float
    votes: int
    started_at: datetime | None = None
    picker: str = ""
    runtime: float | None = None
    ref: float | None = None


@dataclass
class RefComparison:
    id: Any
    title: str
    avg: float
    ref: float

    @property
    def diff(self) -> float:
        return abs(self.avg - self.ref)


@dataclass
class SimilarityMatrix:
    """
    Pairwise rater correlations.

    `users` is ordered by mean correlation with everyone else (most
    agreeable first); `corr[i][j]` and `shared[i][j]` follow that order.
    """
    users: list[str] = field(default_factory=list)
    corr: np.ndarray = field(default_factory=lambda: np.zeros((0, 0)))
    shared: np.ndarray = field(default_factory=lambda: np.zeros((0, 0), dtype=int))

    def cells(self) -> list[dict]:
        return [
            {"i": i, "j": j, "corr": float(self.corr[i, j]), "n": int(self.shared[i, j])}
            for i in range(len(self.users))
            for j in range(len(self.users))
        ]


@dataclass
class Achievements:
    best_streak: int = 0
    streak_threshold: float = STREAK_THRESHOLD
    record_night: MovieStat | None = None
    milestones: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.milestones) + (1 if self.record_night else 0) + (1 if self.best_streak > 0 else 0)


def movie_stats(history: Iterable[Any] | None) -> list[MovieStat]:
    rows = []
    for v in normalize_history(history):
        avg = average_rating(v.ratings)
        if avg is None:
            continue
        runtime = v.movie.runtime
        rows.append(MovieStat(
            id=v.id,
            title=v.movie.title,
            avg=avg,
            votes=len(v.ratings),
            started_at=v.started_at,
            picker=v.picker,
            runtime=runtime if runtime and runtime > 0 else None,
            ref=v.movie.ref_score,
        ))
    return rows


def top_and_flop(history, n: int = TOP_PICKS_SIZE) -> tuple[list[MovieStat], list[MovieStat]]:
    """Best and worst nights; more votes wins a tie on the average."""
    stats = movie_stats(history)
    best = sorted(stats, key=lambda m: (-m.avg, -m.votes))[:n]
    worst = sorted(stats, key=lambda m: (m.avg, -m.votes))[:n]
    return best, worst


def genre_counts(history) -> list[dict]:
    counts: dict[str, int] = defaultdict(int)
    for v in normalize_history(history):
        for genre in v.movie.genres:
            counts[genre] += 1
    rows = [{"name": name, "count": count} for name, count in counts.items()]
    rows.sort(key=lambda row: (-row["count"], row["name"]))
    return rows


def runtime_totals(history) -> tuple[float, int]:
    """(total minutes, films with a known runtime)."""
    runtimes = [
        v.movie.runtime for v in normalize_history(history)
        if v.movie.runtime is not None and v.movie.runtime > 0
    ]
    return sum(runtimes), len(runtimes)


def total_votes(history) -> int:
    return sum(len(v.ratings) for v in normalize_history(history))


def timeline(history) -> list[dict]:
    """Dated viewings as {t, avg, title}, oldest first."""
    points = [
        {"t": m.started_at, "avg": m.avg, "title": m.title}
        for m in movie_stats(history)
        if m.started_at is not None
    ]
    points.sort(key=lambda p: p["t"])
    return points


def ref_delta_timeline(history) -> list[dict]:
    """Dated viewings with a reference score as {t, val: avg - ref, title}."""
    points = [
        {"t": m.started_at, "val": m.avg - m.ref, "title": m.title}
        for m in movie_stats(history)
        if m.started_at is not None and m.ref is not None
    ]
    points.sort(key=lambda p: p["t"])
    return points


def runtime_scatter(history) -> list[dict]:
    return [
        {"x": m.runtime, "y": m.avg, "size": m.votes, "title": m.title}
        for m in movie_stats(history)
        if m.runtime is not None
    ]


def group_vs_ref(history, n: int = GROUP_REF_SIZE) -> tuple[list[RefComparison], list[RefComparison]]:
    """Viewings where the group agreed most and least with the reference score."""
    rows = [
        RefComparison(id=m.id, title=m.title, avg=m.avg, ref=m.ref)
        for m in movie_stats(history)
        if m.ref is not None
    ]
    closest = sorted(rows, key=lambda r: r.diff)[:n]
    farthest = sorted(rows, key=lambda r: -r.diff)[:n]
    return closest, farthest


def _ratings_matrix(views: list[Viewing], users: list[str]) -> np.ndarray:
    """users x viewings matrix of ratings, NaN where a user did not rate."""
    matrix = np.full((len(users), len(views)), np.nan)
    index = {u: i for i, u in enumerate(users)}
    for j, v in enumerate(views):
        for user, score in v.ratings.items():
            if user in index:
                matrix[index[user], j] = score
    return matrix


def similarity_matrix(history, users: list[str] | None = None) -> SimilarityMatrix:
    """
    Pearson correlation for every pair of raters over their co-rated viewings.

    Pairs sharing fewer than two viewings get 0. Users default to every
    rater, sorted by name.
    """
    views = normalize_history(history)
    if users is None:
        users = sorted({u for v in views for u in v.ratings})
    if not users:
        return SimilarityMatrix()

    ratings = _ratings_matrix(views, users)

    n = len(users)
    corr = np.zeros((n, n))
    shared = np.zeros((n, n), dtype=int)
    for i in range(n):
        for j in range(n):
            ra, rb = ratings[i], ratings[j]
            mask = ~np.isnan(ra) & ~np.isnan(rb)
            shared[i, j] = int(mask.sum())
            if shared[i, j] >= 2:
                corr[i, j] = pearson(ra[mask].tolist(), rb[mask].tolist())

    # mean off-diagonal correlation decides the display order
    off_diag = corr.sum(axis=1) - np.diag(corr)
    agreeableness = off_diag / max(1, n - 1)
    order = sorted(range(n), key=lambda i: -agreeableness[i])
    logger.debug("Similarity matrix over %d users", n)
    return SimilarityMatrix(
        users=[users[i] for i in order],
        corr=corr[np.ix_(order, order)],
        shared=shared[np.ix_(order, order)],
    )


def genre_radar(history, max_axes: int = GENRE_RADAR_AXES) -> dict[str, list[dict]]:
    """
    Per rater: their most-rated genres with the share of ratings at or above
    the win threshold, as radar axes {label, value}.
    """
    likes: dict[str, dict[str, list[int]]] = defaultdict(dict)
    for v in normalize_history(history):
        for user, score in v.ratings.items():
            genres = likes[user]
            for genre in v.movie.genres:
                pos_tot = genres.setdefault(genre, [0, 0])
                pos_tot[1] += 1
                if score >= WIN_THRESHOLD:
                    pos_tot[0] += 1

    radar = {}
    for user, genres in likes.items():
        ranked = sorted(genres.items(), key=lambda item: -item[1][1])[:max_axes]
        radar[user] = [
            {"label": genre, "value": pos / tot if tot else 0.0}
            for genre, (pos, tot) in ranked
        ]
    return radar


def _weekly_averages(views: list[Viewing]) -> list[float]:
    buckets: dict[int, list[float]] = defaultdict(list)
    for v in sorted((v for v in views if v.started_at), key=lambda v: v.started_at):
        avg = average_rating(v.ratings)
        if avg is None:
            continue
        week = int(epoch_seconds(v.started_at) // WEEK_SECONDS)
        buckets[week].append(avg)
    return [sum(vals) / len(vals) for _, vals in sorted(buckets.items())]


def best_streak(history, threshold: float = STREAK_THRESHOLD) -> int:
    """Longest run of consecutive recorded weeks whose average reached threshold."""
    best = current = 0
    for avg in _weekly_averages(normalize_history(history)):
        if avg >= threshold:
            current += 1
            best = max(best, current)
        else:
            current = 0
    return best


def achievements(history) -> Achievements:
    views = normalize_history(history)
    stats = movie_stats(views)

    record = None
    for m in stats:
        if record is None or m.avg > record.avg:
            record = m

    milestones = [f"{count}th film" for count in MILESTONE_VIEWINGS if len(views) >= count]
    pick_counts: dict[str, int] = defaultdict(int)
    for m in stats:
        if m.picker:
            pick_counts[m.picker] += 1
    milestones.extend(
        f"{user}: {MILESTONE_PICKS}th pick"
        for user, count in pick_counts.items()
        if count >= MILESTONE_PICKS
    )

    return Achievements(
        best_streak=best_streak(views),
        record_night=record,
        milestones=milestones,
    )


def spread_tone(value: float) -> str:
    """Agreement tone for a rating spread: tight, moderate or split."""
    if value < SPREAD_TIGHT:
        return "positive"
    if value > SPREAD_SPLIT:
        return "negative"
    return "warning"


def delta_tone(delta: float | None, lower_is_better: bool = False) -> str:
    if delta is None or delta == 0:
        return "default"
    improved = delta < 0 if lower_is_better else delta > 0
    return "positive" if improved else "negative"
