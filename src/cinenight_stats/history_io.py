"""Reading and exporting viewing-history JSON files."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from .config import EXPORT_PREFIX, HISTORY_PATH

logger = logging.getLogger(__name__)


class HistoryLoadError(Exception):
    """The history file is missing, unreadable or not a JSON list of viewings."""


def load_history(path: str | Path | None = None) -> list[Any]:
    """
    Load a history export.

    Accepts either a bare JSON list or an object with a "history" list.
    Individual records are returned as-is; shape problems inside a record
    are handled by the normalization layer, not here.
    """
    history_path = Path(path) if path else HISTORY_PATH
    try:
        payload = json.loads(history_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise HistoryLoadError(f"History file not found: {history_path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise HistoryLoadError(f"Cannot read {history_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise HistoryLoadError(f"Invalid JSON in {history_path}: {exc}") from exc

    if isinstance(payload, dict):
        payload = payload.get("history")
    if not isinstance(payload, list):
        raise HistoryLoadError(f"{history_path} does not contain a list of viewings")

    logger.debug("Loaded %d viewings from %s", len(payload), history_path)
    return payload


def export_history(history: list[Any], directory: str | Path, now: datetime | None = None) -> Path:
    """Write history to a timestamped JSON file in directory and return its path."""
    stamp = (now or datetime.now()).isoformat().replace(":", "-").replace(".", "-")
    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / f"{EXPORT_PREFIX}_{stamp}.json"
    out_path.write_text(json.dumps(history, indent=2, default=str), encoding="utf-8")
    logger.info("Exported %d viewings to %s", len(history), out_path)
    return out_path
