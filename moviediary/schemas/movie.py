"""
Response shapes for movie listings and details
"""
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List
from datetime import date, datetime
from enum import Enum


class SearchKind(str, Enum):
    """Catalog search categories"""
    MOVIE = "movie"
    PERSON = "person"
    KEYWORD = "keyword"
    COLLECTION = "collection"


class MovieProjection(BaseModel):
    """
    Narrow listing shape: id, title, poster and popularity only.
    Overview and trailer text are never loaded for list views.
    """
    id: int
    title: str = ""
    poster_url: Optional[str] = None
    popularity: float = 0.0

    model_config = ConfigDict(from_attributes=True)


class MovieDetail(BaseModel):
    """Full movie record, either stored locally or fetched from the catalog"""
    id: Optional[int] = Field(None, description="Local id (None when not stored locally)")
    external_id: str
    title: str
    release_date: Optional[date] = None
    rating: Optional[float] = None
    genres: List[int] = Field(default_factory=list)
    overview: str = ""
    poster_url: Optional[str] = None
    backdrop_url: Optional[str] = None
    popularity: float = 0.0
    vote_count: int = 0
    trailer_url: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CatalogSearchResponse(BaseModel):
    """Raw catalog search results (first page only)"""
    kind: SearchKind
    query: str
    results: List[dict] = Field(default_factory=list)

    model_config = ConfigDict(use_enum_values=True)


class CatalogSearchParams(BaseModel):
    """
    Validated catalog search input.
    Unrecognized kinds fall back to movie search instead of failing.
    """
    kind: SearchKind = SearchKind.MOVIE
    query: str = Field(..., min_length=1, max_length=200)

    @field_validator('kind', mode='before')
    @classmethod
    def default_unknown_kind(cls, v):
        """Map unknown or empty kinds to 'movie'"""
        if isinstance(v, SearchKind):
            return v
        value = str(v or "").strip().lower()
        if value in {k.value for k in SearchKind}:
            return value
        return SearchKind.MOVIE

    @field_validator('query')
    @classmethod
    def strip_query(cls, v: str) -> str:
        """Reject whitespace-only queries"""
        v = v.strip()
        if not v:
            raise ValueError('query must not be blank')
        return v
