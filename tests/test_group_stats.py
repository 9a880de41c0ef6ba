from datetime import datetime, timedelta

import numpy as np
import pytest

from cinenight_stats.group_stats import (
    Achievements,
    achievements,
    best_streak,
    delta_tone,
    genre_counts,
    genre_radar,
    group_vs_ref,
    movie_stats,
    ref_delta_timeline,
    runtime_scatter,
    runtime_totals,
    similarity_matrix,
    spread_tone,
    timeline,
    top_and_flop,
    total_votes,
)


def _weekly_history(averages, start=datetime(2024, 3, 7, 21)):
    return [
        {"id": f"w{i}", "started_at": (start + timedelta(weeks=i)).isoformat(), "ratings": {"u": avg}}
        for i, avg in enumerate(averages)
    ]


def test_movie_stats_skip_unrated(history):
    stats = movie_stats(history)

    assert [m.id for m in stats] == ["v1", "v2", "v3", "v4"]
    assert stats[3].avg == pytest.approx(20 / 3)
    assert stats[2].votes == 2


def test_top_and_flop(history):
    best, worst = top_and_flop(history)

    assert [m.id for m in best] == ["v3", "v1", "v4", "v2"]
    assert [m.id for m in worst] == ["v2", "v4", "v1", "v3"]
    assert len(top_and_flop(history, n=2)[0]) == 2


def test_top_breaks_ties_on_votes():
    history = [
        {"id": "few", "ratings": {"a": 8}},
        {"id": "many", "ratings": {"a": 8, "b": 8, "c": 8}},
    ]
    best, worst = top_and_flop(history)
    assert [m.id for m in best] == ["many", "few"]
    assert [m.id for m in worst] == ["many", "few"]


def test_genre_and_runtime_totals(history):
    assert genre_counts(history) == [{"name": "Drama", "count": 2}, {"name": "Comedy", "count": 1}]
    assert runtime_totals(history) == (425, 4)
    assert total_votes(history) == 11


def test_timelines_are_chronological(history):
    points = timeline(history)
    assert [p["title"] for p in points] == ["Amarcord", "Brazil", "Cure"]

    deltas = ref_delta_timeline(history)
    assert [p["val"] for p in deltas] == pytest.approx([0.5, 0.0, 1.5])


def test_runtime_scatter(history):
    points = runtime_scatter(history)
    assert len(points) == 4
    assert points[0] == {"x": 89, "y": 8, "size": 3, "title": "Amarcord"}


def test_group_vs_ref(history):
    closest, farthest = group_vs_ref(history)

    assert [r.id for r in closest] == ["v2", "v4", "v1", "v3"]
    assert [r.id for r in farthest] == ["v3", "v1", "v4", "v2"]
    assert closest[0].diff == 0


def test_similarity_matrix_orders_by_agreeableness(history):
    matrix = similarity_matrix(history)

    assert matrix.users[-1] == "carol"
    assert set(matrix.users[:2]) == {"alice", "bob"}
    assert np.allclose(matrix.corr, matrix.corr.T)
    assert np.allclose(np.diag(matrix.corr), 1.0)

    i, j = matrix.users.index("alice"), matrix.users.index("bob")
    assert matrix.corr[i, j] == pytest.approx(1.0)
    assert matrix.shared[i, j] == 4
    assert matrix.shared[2, 2] == 3
    assert len(matrix.cells()) == 9


def test_similarity_matrix_needs_two_shared_viewings():
    history = [
        {"ratings": {"a": 5, "b": 9}},
        {"ratings": {"a": 7}},
    ]
    matrix = similarity_matrix(history)
    assert matrix.shared[0, 1] == 1
    assert matrix.corr[0, 1] == 0


def test_similarity_matrix_with_explicit_users(history):
    matrix = similarity_matrix(history, users=["carol", "bob", "mallory"])
    assert sorted(matrix.users) == ["bob", "carol", "mallory"]
    assert similarity_matrix([]).users == []


def test_genre_radar(history):
    radar = genre_radar(history)

    assert radar["alice"] == [{"label": "Drama", "value": 0.5}, {"label": "Comedy", "value": 0.0}]
    assert len(genre_radar(history, max_axes=1)["bob"]) == 1


def test_best_streak_counts_consecutive_weeks():
    assert best_streak(_weekly_history([8, 9, 6, 8, 8, 8, 7])) == 3
    assert best_streak(_weekly_history([6, 7])) == 0
    assert best_streak(_weekly_history([6, 7]), threshold=6) == 2
    assert best_streak([]) == 0


def test_best_streak_averages_within_a_week():
    history = _weekly_history([9, 8])
    # same week as the first night, drags that week under the threshold
    history.append({"started_at": "2024-03-08T21:00:00", "ratings": {"u": 4}})
    assert best_streak(history) == 1


def test_achievements(history):
    result = achievements(history)

    assert result.best_streak == 1
    assert result.record_night.title == "Cure"
    assert result.milestones == []
    assert result.count == 2


def test_achievements_milestones():
    history = [{"picked_by": "dana", "ratings": {"u": 6}} for _ in range(50)]
    result = achievements(history)

    assert result.milestones == ["50th film", "dana: 10th pick"]
    assert Achievements().count == 0


@pytest.mark.parametrize("value, tone", [(0.5, "positive"), (0.9, "warning"), (1.5, "warning"), (2.0, "negative")])
def test_spread_tone(value, tone):
    assert spread_tone(value) == tone


def test_delta_tone():
    assert delta_tone(None) == "default"
    assert delta_tone(0) == "default"
    assert delta_tone(0.4) == "positive"
    assert delta_tone(0.4, lower_is_better=True) == "negative"
    assert delta_tone(-1, lower_is_better=True) == "positive"
