import pytest

from cinenight_stats.ranking import (
    UserSummary,
    build_dense_ranking,
    build_leaderboards,
    given_summaries,
    received_summaries,
)


def test_dense_ranking_over_sample(history):
    ranking = build_dense_ranking(history)

    assert ranking.total == 4
    assert ranking.ranks == {"v3": 1, "v1": 2, "v4": 3, "v2": 4}
    # unrated viewing is not ranked
    assert ranking.rank_of("v5") is None


def test_ties_share_the_first_position():
    history = [
        {"id": "a", "ratings": {"u": 9}},
        {"id": "b", "ratings": {"u": 9}},
        {"id": "c", "ratings": {"u": 7}},
    ]
    ranking = build_dense_ranking(history)
    assert [ranking.rank_of(i) for i in "abc"] == [1, 1, 3]


def test_dense_ranking_tolerates_unhashable_ids():
    history = [
        {"id": ["a", 1], "ratings": {"u": 9}},
        {"id": {"k": 2}, "ratings": {"u": 7}},
    ]
    ranking = build_dense_ranking(history)

    assert ranking.ranks == {0: 1, 1: 2}
    assert ranking.total == 2


def test_dense_ranking_on_empty_history():
    ranking = build_dense_ranking(None)
    assert ranking.total == 0
    assert ranking.ranks == {}


def test_given_summaries(history):
    rows = given_summaries(history)

    assert [(r.user, r.count) for r in rows] == [("alice", 4), ("bob", 4), ("carol", 3)]
    assert rows[0].average == pytest.approx(7.0)
    assert rows[1].average == pytest.approx(8.0)
    assert rows[2].scores == [7, 5, 9]


def test_received_summaries_group_by_picker(history):
    rows = received_summaries(history)

    assert [r.user for r in rows] == ["alice", "carol", "Bob"]
    assert rows[0].average == pytest.approx(8.75)
    assert rows[0].count == 2


def test_leaderboards(history):
    boards = build_leaderboards(given_summaries(history))

    assert [s.user for s in boards.most_active] == ["alice", "bob", "carol"]
    assert [s.user for s in boards.harshest] == ["alice", "carol", "bob"]
    assert [s.user for s in boards.kindest] == ["bob", "alice", "carol"]


def test_leaderboards_are_stable_and_truncated():
    summaries = [UserSummary(user=name, average=7.0, count=2) for name in ("x", "y", "z")]
    boards = build_leaderboards(summaries, n=2)

    assert [s.user for s in boards.most_active] == ["x", "y"]
    assert [s.user for s in boards.harshest] == ["x", "y"]
    assert [s.user for s in boards.kindest] == ["x", "y"]
    assert build_leaderboards([]).kindest == []
