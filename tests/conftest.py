import copy
import importlib
import sys
from pathlib import Path

import pytest

# Ensure the package under test is importable without installation
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


SAMPLE_HISTORY = [
    {
        "id": "v1",
        "started_at": "2024-01-01T20:00:00",
        "picked_by": "alice",
        "ratings": {"alice": 8, "bob": 9, "carol": 7},
        "movie": {
            "title": "Amarcord",
            "runtime": 89,
            "year": 1999,
            "primary_country": "IT",
            "omdb": {"Country": "France"},
            "imdb_rating": "7.5",
            "genres": [{"name": "Drama"}],
        },
    },
    {
        "id": "v2",
        "started_at": "2024-01-09T20:00:00Z",
        "pickedBy": "Bob ",
        "ratings": {"alice": 6, "bob": "7", "carol": 5},
        "movie": {
            "title": "Brazil",
            "Runtime": "120",
            "release_date": "2005-06-01",
            "Country": "USA, UK",
            "vote_average": 6.0,
            "genres": [{"name": "Comedy"}, {"name": "Drama"}],
        },
    },
    {
        "id": "v3",
        "date": "2024-01-16",
        "picker": "alice",
        "ratings": {"alice": 9, "bob": 10, "carol": "x"},
        "movie": {
            "title": "Cure",
            "duration": 121,
            "year": "2010",
            "production_countries": [{"iso_3166_1": "JP", "name": "Japan"}],
            "imdbRating": 8.0,
        },
    },
    {
        "id": "v4",
        "ratings": {"alice": 5, "bob": 6, "carol": 9},
        "movie": {
            "picked_by": "carol",
            "title": "Decision to Leave",
            "runtime": 95,
            "origin_country": ["KR"],
            "ratings": {"imdb": 7.0},
        },
    },
    {
        "id": "v5",
        "picked_by": "alice",
        "ratings": {},
        "movie": {"title": "Eraserhead"},
    },
]


@pytest.fixture
def history():
    """A small mixed-shape history; each test gets its own copy."""
    return copy.deepcopy(SAMPLE_HISTORY)


@pytest.fixture
def fresh_config(monkeypatch):
    """
    Reload config after the test sets environment overrides, and restore the
    defaults afterwards so other modules see a clean config.
    """
    import cinenight_stats.config as config

    def _reload():
        return importlib.reload(config)

    yield _reload
    monkeypatch.undo()
    importlib.reload(config)
