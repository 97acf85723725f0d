"""
Pure conversions between catalog payloads, stored movies and listing projections.
Every optional field has an explicit default.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional
import os

from moviediary.models.movie import Movie
from moviediary.schemas.movie import MovieProjection

IMAGE_BASE_URL = os.getenv("TMDB_IMAGE_BASE_URL", "https://image.tmdb.org/t/p/w500")


class MappingError(ValueError):
    """A single catalog record could not be turned into a Movie"""


def _parse_date(value: Any) -> Optional[date]:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def _to_float(value: Any, default: Optional[float]) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        raise MappingError(f"not a number: {value!r}")


def _to_int(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise MappingError(f"not an integer: {value!r}")


def _to_text(value: Any, field: str, default: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return default
    if not isinstance(value, str):
        raise MappingError(f"{field} is not text: {value!r}")
    return value


def _genre_ids(raw: Dict) -> List[int]:
    # Discover results carry genre_ids, detail results carry genres [{id, name}]
    if isinstance(raw.get('genre_ids'), list):
        return [int(g) for g in raw['genre_ids'] if isinstance(g, (int, str)) and str(g).isdigit()]
    if isinstance(raw.get('genres'), list):
        return [int(g['id']) for g in raw['genres'] if isinstance(g, dict) and str(g.get('id', '')).isdigit()]
    return []


def image_url(path: Any) -> Optional[str]:
    if not path or not isinstance(path, str):
        return None
    return f"{IMAGE_BASE_URL}{path}"


def map_catalog_record(raw: Dict) -> Movie:
    """
    Build an unsaved Movie from a TMDB movie payload.

    Raises:
        MappingError: when the id or title is missing, or a numeric or text
            field has the wrong type
    """
    if not isinstance(raw, dict):
        raise MappingError("catalog record is not an object")
    external_id = raw.get('id')
    if external_id is None or str(external_id).strip() == "":
        raise MappingError("catalog record has no id")
    if isinstance(external_id, bool) or not isinstance(external_id, (int, str)):
        raise MappingError(f"catalog record id is not scalar: {external_id!r}")
    title = raw.get('title')
    if not isinstance(title, str) or not title.strip():
        raise MappingError(f"catalog record {external_id} has no title")

    return Movie(
        external_id=str(external_id),
        title=title.strip(),
        release_date=_parse_date(raw.get('release_date')),
        rating=_to_float(raw.get('vote_average'), None),
        genres=_genre_ids(raw),
        overview=_to_text(raw.get('overview'), 'overview', ""),
        poster_url=image_url(raw.get('poster_path')),
        backdrop_url=image_url(raw.get('backdrop_path')),
        popularity=_to_float(raw.get('popularity'), 0.0),
        vote_count=_to_int(raw.get('vote_count'), 0),
        trailer_url=_to_text(raw.get('trailer_url'), 'trailer_url', None),
    )


def to_projection(movie: Movie) -> MovieProjection:
    return MovieProjection(
        id=movie.id,
        title=movie.title or "",
        poster_url=movie.poster_url,
        popularity=movie.popularity if movie.popularity is not None else 0.0,
    )


def projection_from_payload(payload: Dict) -> MovieProjection:
    """Rebuild a projection from a cached key/value payload."""
    return MovieProjection(
        id=int(payload['id']),
        title=payload.get('title') or "",
        poster_url=payload.get('poster_url'),
        popularity=float(payload.get('popularity') or 0.0),
    )
