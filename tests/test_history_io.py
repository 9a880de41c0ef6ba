import json
from datetime import datetime

import pytest

from cinenight_stats.history_io import HistoryLoadError, export_history, load_history


def test_load_bare_list(tmp_path, history):
    path = tmp_path / "history.json"
    path.write_text(json.dumps(history), encoding="utf-8")

    assert load_history(path) == history


def test_load_wrapped_history(tmp_path, history):
    path = tmp_path / "history.json"
    path.write_text(json.dumps({"history": history, "version": 2}), encoding="utf-8")

    assert len(load_history(str(path))) == 5


def test_load_uses_configured_default(tmp_path, monkeypatch, history):
    from cinenight_stats import history_io

    path = tmp_path / "default.json"
    path.write_text(json.dumps(history[:2]), encoding="utf-8")
    monkeypatch.setattr(history_io, "HISTORY_PATH", path)

    assert [r["id"] for r in load_history()] == ["v1", "v2"]


@pytest.mark.parametrize(
    "content, message",
    [
        ("{not json", "Invalid JSON"),
        ('{"viewings": []}', "does not contain a list"),
        ('"just a string"', "does not contain a list"),
    ],
)
def test_load_rejects_bad_files(tmp_path, content, message):
    path = tmp_path / "history.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(HistoryLoadError, match=message):
        load_history(path)


def test_load_missing_file(tmp_path):
    with pytest.raises(HistoryLoadError, match="not found"):
        load_history(tmp_path / "missing.json")


def test_export_writes_timestamped_copy(tmp_path, history):
    out = export_history(history, tmp_path / "exports", now=datetime(2024, 5, 1, 21, 30, 15))

    assert out.name == "cinenight_history_2024-05-01T21-30-15.json"
    assert json.loads(out.read_text(encoding="utf-8")) == history
    assert load_history(out) == history
