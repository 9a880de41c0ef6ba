"""
Normalization boundary between raw viewing records and the aggregations.

Viewing records arrive with varying shapes: the same concept can live under
several field names, nested under the movie, or be missing entirely. The
extractors below resolve those aliases in a fixed precedence order and
`normalize_history` turns a raw collection into canonical `Viewing` objects.
Nothing here ever rejects a record; unresolvable fields become None.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from .countries import resolve_country_name

logger = logging.getLogger(__name__)

UNTITLED = "Untitled"

PICKER_FIELDS = ("picked_by", "pickedBy", "picker")
RUNTIME_FIELDS = ("runtime", "Runtime", "duration", "movie_runtime")
YEAR_FIELDS = ("year", "Year", "release_year")
YEAR_DATE_FIELDS = ("first_air_date", "release_date")
TIMESTAMP_FIELDS = ("started_at", "date", "created_at")
# (path into the movie mapping) in lookup order
REF_SCORE_PATHS = (
    ("imdb_rating",),
    ("imdbRating",),
    ("imdb_score",),
    ("ratings", "imdb"),
    ("omdb", "imdbRating"),
    ("vote_average",),
)

_COUNTRY_SPLIT = re.compile(r"[,/|;]")


@dataclass(frozen=True)
class Movie:
    """Canonical movie metadata; every field is optional except the title."""
    title: str = UNTITLED
    runtime: float | None = None
    year: int | float | None = None
    country: str | None = None
    ref_score: float | None = None
    genres: tuple[str, ...] = ()


@dataclass(frozen=True)
class Viewing:
    """One watch event: a movie, who picked it and the ratings it received."""
    id: Any
    movie: Movie = field(default_factory=Movie)
    picker: str = ""
    ratings: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    started_at: datetime | None = None
    index: int = 0


def _get(obj: Any, key: str) -> Any:
    return obj.get(key) if isinstance(obj, Mapping) else None


def _get_path(obj: Any, path: tuple[str, ...]) -> Any:
    for key in path:
        obj = _get(obj, key)
        if obj is None:
            return None
    return obj


def _first_present(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _first_finite(values: Iterable[Any]) -> float | None:
    for value in values:
        number = to_finite(value)
        if number is not None:
            return number
    return None


def _movie_of(record: Any) -> Mapping:
    movie = _get(record, "movie")
    return movie if isinstance(movie, Mapping) else {}


def _as_number(value: float) -> int | float:
    return int(value) if value.is_integer() else value


def to_finite(value: Any) -> float | None:
    """Parse numbers and numeric strings; None for anything non-finite."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except (ValueError, OverflowError):
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def norm_user(name: Any) -> str:
    if name is None:
        return ""
    return str(name).strip().lower()


def get_picker(record: Any) -> str:
    """Picker identity from the record itself, falling back to the movie."""
    if isinstance(record, Viewing):
        return record.picker
    movie = _movie_of(record)
    value = _first_present(
        *(_get(record, key) for key in PICKER_FIELDS),
        *(_get(movie, key) for key in PICKER_FIELDS),
    )
    return "" if value is None else str(value)


def is_picked_by(record: Any, user: str) -> bool:
    return norm_user(get_picker(record)) == norm_user(user)


def safe_runtime(movie: Any) -> float | None:
    """Runtime in minutes from the first alias that parses as a number."""
    return _first_finite(_get(movie, key) for key in RUNTIME_FIELDS)


def safe_year(movie: Any) -> int | float | None:
    """Release year, parsing the leading 4 digits of ISO dates when needed."""
    candidates = [_get(movie, key) for key in YEAR_FIELDS]
    for key in YEAR_DATE_FIELDS:
        value = _get(movie, key)
        candidates.append(value[:4] if isinstance(value, str) else None)
    year = _first_finite(candidates)
    return None if year is None else _as_number(year)


def _country_candidate(record: Mapping, movie: Mapping) -> Any:
    cand = movie.get("primary_country") or record.get("primary_country")
    if cand:
        return cand

    external = _get(_get(movie, "omdb"), "Country") or movie.get("Country")
    if isinstance(external, str) and external.strip():
        cand = _COUNTRY_SPLIT.split(external)[0].strip()
        if cand:
            return cand

    production = movie.get("production_countries")
    if isinstance(production, list) and production:
        first = production[0]
        if isinstance(first, Mapping):
            cand = first.get("name") or first.get("english_name") or first.get("iso_3166_1")
        elif isinstance(first, str):
            cand = first
        if cand:
            return cand

    origin = movie.get("origin_country")
    if isinstance(origin, list) and origin and origin[0]:
        return origin[0]
    return None


def primary_country_name(record: Any) -> str | None:
    """
    Resolve the primary production country of a viewing (or bare movie).

    Precedence: explicit primary_country, external "Country" string (first
    segment), first production_countries entry, first origin_country entry.
    The winner is mapped through the ISO and alias tables.
    """
    if not isinstance(record, Mapping) or not record:
        return None
    movie = record.get("movie")
    if not isinstance(movie, Mapping):
        movie = record
    return resolve_country_name(_country_candidate(record, movie))


def ref_score_for(record: Any) -> float | None:
    """External reference rating of the viewing's movie, if any alias parses."""
    movie = _movie_of(record)
    return _first_finite(_get_path(movie, path) for path in REF_SCORE_PATHS)


def ratings_of(record: Any) -> dict[str, float]:
    """Finite ratings of a record; unparseable scores are dropped."""
    raw = _get(record, "ratings")
    if not isinstance(raw, Mapping):
        return {}
    ratings = {}
    for user, value in raw.items():
        score = to_finite(value)
        if score is None:
            logger.debug("Ignoring non-numeric rating %r from %r", value, user)
            continue
        ratings[str(user)] = score
    return ratings


def parse_timestamp(record: Any) -> datetime | None:
    """
    Parse the first timestamp field as a naive datetime.

    Aware timestamps are converted to UTC before dropping tzinfo so that
    ordering is consistent across sources.
    """
    for key in TIMESTAMP_FIELDS:
        value = _get(record, key)
        if not value:
            continue
        if isinstance(value, datetime):
            dt = value
        elif isinstance(value, str):
            text = value.strip()
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            try:
                dt = datetime.fromisoformat(text)
            except ValueError:
                logger.debug("Unparseable %s %r", key, value)
                return None
        else:
            return None
        if dt.tzinfo is not None:
            try:
                dt = (dt - dt.utcoffset()).replace(tzinfo=None)
            except OverflowError:
                logger.debug("Out of range %s %r", key, value)
                return None
        return dt
    return None


def _genre_names(movie: Mapping) -> tuple[str, ...]:
    genres = movie.get("genres")
    if not isinstance(genres, list):
        return ()
    names = []
    for genre in genres:
        name = genre.get("name") if isinstance(genre, Mapping) else genre
        if isinstance(name, str) and name.strip():
            names.append(name.strip())
    return tuple(names)


def normalize_movie(record: Any) -> Movie:
    movie = _movie_of(record)
    title = movie.get("title")
    return Movie(
        title=title if isinstance(title, str) and title else UNTITLED,
        runtime=safe_runtime(movie),
        year=safe_year(movie),
        country=primary_country_name(record),
        ref_score=ref_score_for(record),
        genres=_genre_names(movie),
    )


def _viewing_id(raw: Any, index: int) -> Any:
    if raw is None:
        return index
    try:
        hash(raw)
    except TypeError:
        logger.debug("Unusable id %r on history entry %d; using its index", raw, index)
        return index
    return raw


def normalize_viewing(record: Any, index: int = 0) -> Viewing:
    """Build a canonical Viewing; records without a usable id fall back to their index."""
    if isinstance(record, Viewing):
        return record
    if not isinstance(record, Mapping):
        logger.debug("History entry %d is not a mapping; treating it as empty", index)
    return Viewing(
        id=_viewing_id(_get(record, "id"), index),
        movie=normalize_movie(record),
        picker=get_picker(record),
        ratings=MappingProxyType(ratings_of(record)),
        started_at=parse_timestamp(record),
        index=index,
    )


def normalize_history(history: Iterable[Any] | None) -> list[Viewing]:
    """Normalize a whole history snapshot, preserving its order."""
    if not history:
        return []
    return [normalize_viewing(record, i) for i, record in enumerate(history)]


def order_key(viewing: Viewing, fallback_index: int) -> float:
    """Sort key: timestamp in epoch seconds when known, else the fallback index."""
    if viewing.started_at is not None:
        ts = epoch_seconds(viewing.started_at)
        if ts > 0:
            return ts
    return fallback_index


def epoch_seconds(dt: datetime) -> float:
    """Epoch seconds of a naive datetime, read as UTC."""
    return dt.replace(tzinfo=timezone.utc).timestamp()
