"""
Rankings and leaderboards over a viewing history.

Ranks are assigned by position in the sorted sequence: viewings that tie on
their average share the rank of the first one, and the next distinct value
resumes at its absolute position ({9, 9, 7} ranks as 1, 1, 3).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from .config import LEADERBOARD_SIZE
from .math_utils import average_rating
from .normalize import normalize_history

logger = logging.getLogger(__name__)


@dataclass
class DenseRanking:
    """Viewing id -> rank, plus how many viewings were rankable."""
    ranks: dict[Any, int] = field(default_factory=dict)
    total: int = 0

    def rank_of(self, viewing_id: Any) -> int | None:
        return self.ranks.get(viewing_id)


@dataclass
class UserSummary:
    """Average and count of a user's ratings (given or received)."""
    user: str
    average: float
    count: int
    scores: list[float] = field(default_factory=list)


@dataclass
class Leaderboards:
    most_active: list[UserSummary] = field(default_factory=list)
    harshest: list[UserSummary] = field(default_factory=list)
    kindest: list[UserSummary] = field(default_factory=list)


def build_dense_ranking(history: Iterable[Any] | None) -> DenseRanking:
    """
    Rank every viewing that has at least one rating by its average.

    Sorting is stable, so equal averages keep history order.
    """
    items = []
    for v in normalize_history(history):
        avg = average_rating(v.ratings)
        if avg is not None:
            items.append((v.id, avg))
    items.sort(key=lambda item: -item[1])

    ranking = DenseRanking(total=len(items))
    prev = None
    rank = 0
    for idx, (view_id, avg) in enumerate(items):
        if prev is None or avg != prev:
            rank = idx + 1
            prev = avg
        ranking.ranks[view_id] = rank
    return ranking


def given_summaries(history: Iterable[Any] | None) -> list[UserSummary]:
    """Per rater: how many ratings they gave and their average, busiest first."""
    scores: dict[str, list[float]] = defaultdict(list)
    for v in normalize_history(history):
        for user, score in v.ratings.items():
            scores[user].append(score)
    rows = [
        UserSummary(user=user, average=sum(vals) / len(vals), count=len(vals), scores=vals)
        for user, vals in scores.items()
    ]
    rows.sort(key=lambda row: (-row.count, row.user))
    return rows


def received_summaries(history: Iterable[Any] | None) -> list[UserSummary]:
    """Per picker: average group score of their picks, best first."""
    scores: dict[str, list[float]] = defaultdict(list)
    for v in normalize_history(history):
        avg = average_rating(v.ratings)
        picker = v.picker.strip()
        if avg is None or not picker:
            continue
        scores[picker].append(avg)
    rows = [
        UserSummary(user=user, average=sum(vals) / len(vals), count=len(vals), scores=vals)
        for user, vals in scores.items()
    ]
    rows.sort(key=lambda row: (-row.average, -row.count))
    return rows


def build_leaderboards(summaries: Sequence[UserSummary], n: int = LEADERBOARD_SIZE) -> Leaderboards:
    """
    Top-n views over per-user summaries.

    Each list is an independent stable sort; equal keys keep the order of
    `summaries`.
    """
    boards = Leaderboards(
        most_active=sorted(summaries, key=lambda s: -s.count)[:n],
        harshest=sorted(summaries, key=lambda s: s.average)[:n],
        kindest=sorted(summaries, key=lambda s: -s.average)[:n],
    )
    logger.debug("Built leaderboards over %d users", len(summaries))
    return boards
