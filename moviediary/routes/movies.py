from fastapi import APIRouter, Query, Depends, HTTPException, Response, status
from moviediary.schemas.movie import (
    MovieProjection,
    MovieDetail,
    CatalogSearchParams,
    CatalogSearchResponse,
)
from moviediary.services.listing_service import ListingService
from moviediary.utils.dependencies import get_listing_service
from typing import Optional, List
from pydantic import ValidationError
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/movies", tags=["Movies"])


# ============================================
# Listing (cursor pagination)
# ============================================

@router.get("", response_model=List[MovieProjection])
def list_movies(
    last_id: int = Query(0, alias="lastId", ge=0, description="Last movie id seen (0 = start)"),
    service: ListingService = Depends(get_listing_service)
):
    """
    Next page of movies after `lastId`

    - Popular movies come first, then movies ordered by id after the cursor
    - At most 10 movies, no duplicates
    - Fetches from the catalog when nothing is stored after the cursor
    """
    return service.get_page(last_id)


# ============================================
# Search
# ============================================

@router.get("/search", response_model=CatalogSearchResponse)
def search_catalog(
    query: str = Query(..., min_length=1, max_length=200, description="Search query"),
    kind: str = Query("movie", description="movie, person, keyword or collection"),
    service: ListingService = Depends(get_listing_service)
):
    """Search the catalog (first page only). Unknown kinds search movies."""
    try:
        params = CatalogSearchParams(kind=kind, query=query)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail="; ".join(err["msg"] for err in e.errors()))
    results = service.search(params.kind.value, params.query)
    return {"kind": params.kind, "query": params.query, "results": results}


# ============================================
# View events
# ============================================

@router.post("/{movie_id}/views", status_code=status.HTTP_204_NO_CONTENT)
def record_view(
    movie_id: int,
    user_id: Optional[int] = Query(None, description="Viewer id, for attribution only"),
    service: ListingService = Depends(get_listing_service)
):
    """Count one view towards the movie's popularity ranking"""
    if service.find_movie(movie_id) is None:
        raise HTTPException(status_code=404, detail="Movie not found")
    service.record_view(movie_id, user_id=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================
# Movie Details (MUST be last - dynamic route)
# ============================================

@router.get("/{movie_id}", response_model=MovieDetail)
def get_movie_details(
    movie_id: int,
    service: ListingService = Depends(get_listing_service)
):
    """Stored movie, or the catalog's record (with trailer) when not stored locally"""
    movie = service.get_detail(movie_id)
    if movie is None:
        raise HTTPException(status_code=404, detail="Movie not found")
    return movie
