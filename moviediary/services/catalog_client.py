"""
Catalog Client - thin wrapper over The Movie Database (TMDB) HTTP API

One blocking request per call, no retries. Any non-2xx response, transport
error or malformed payload is raised as CatalogFetchError.
"""
import requests
import os
from typing import Dict, List, Optional
from fastapi import HTTPException
from moviediary.utils.cache import cache
import logging

logger = logging.getLogger(__name__)

SEARCH_KINDS = ("movie", "person", "keyword", "collection")
TRAILER_SITE = "YouTube"
TRAILER_URL_TEMPLATE = "https://www.youtube.com/watch?v={key}"


class CatalogFetchError(HTTPException):
    """Catalog request failed; surfaces as 502 Bad Gateway when left unhandled"""

    def __init__(self, detail: str):
        super().__init__(status_code=502, detail=detail)


class CatalogClient:
    """
    TMDB catalog client.

    Usage:
        client = CatalogClient()
        movies = client.fetch_discover_page()
        detail = client.fetch_detail("550")
    """

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None, timeout: int = 10):
        self.api_key = api_key or os.getenv("TMDB_API_KEY")
        self.base_url = (base_url or os.getenv("TMDB_BASE_URL", "https://api.themoviedb.org/3")).rstrip("/")
        self.timeout = timeout

    def __repr__(self):
        # Stable repr keeps memoized search keys independent of the instance
        return f"CatalogClient({self.base_url})"

    def _make_request(self, endpoint: str, params: Dict = None) -> Dict:
        """
        Make HTTP request to TMDB API.
        
        Args:
            endpoint: API endpoint (e.g., "/discover/movie")
            params: Query parameters (URL-encoded by requests)
            
        Returns:
            JSON response from TMDB
            
        Raises:
            CatalogFetchError: If API key is missing or request fails
        """
        if not self.api_key:
            raise CatalogFetchError("TMDB API key not configured")
        params = dict(params or {})
        params['api_key'] = self.api_key
        url = f"{self.base_url}{endpoint}"

        try:
            response = requests.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"TMDB API error for {endpoint}: {str(e)}")
            raise CatalogFetchError(f"TMDB API error: {str(e)}")
        except ValueError as e:
            logger.error(f"TMDB API returned invalid JSON for {endpoint}: {str(e)}")
            raise CatalogFetchError("TMDB API returned an invalid payload")

        if not isinstance(payload, dict):
            raise CatalogFetchError("TMDB API returned an invalid payload")
        logger.debug(f"TMDB API request successful: {endpoint}")
        return payload

    @staticmethod
    def _results(payload: Dict, endpoint: str) -> List[Dict]:
        results = payload.get('results')
        if not isinstance(results, list):
            logger.error(f"TMDB API payload for {endpoint} has no results list")
            raise CatalogFetchError("TMDB API returned an invalid payload")
        return [r for r in results if isinstance(r, dict)]

    def fetch_discover_page(self) -> List[Dict]:
        """Latest discoverable movies, first page only."""
        payload = self._make_request("/discover/movie", {'include_adult': 'false', 'page': 1})
        return self._results(payload, "/discover/movie")

    def fetch_detail(self, external_id: str) -> Dict:
        """
        Movie details with embedded video metadata.

        The returned payload carries an extra 'trailer_url' key: the first
        YouTube trailer, or "" when there is none.
        """
        payload = self._make_request(f"/movie/{external_id}", {'append_to_response': 'videos'})
        if 'id' not in payload:
            raise CatalogFetchError(f"TMDB API returned no movie for id {external_id}")
        payload['trailer_url'] = extract_trailer_url(payload.get('videos'))
        return payload

    def search(self, kind: str, query: str) -> List[Dict]:
        """Search by kind (movie, person, keyword, collection); unknown kinds search movies."""
        kind = kind if kind in SEARCH_KINDS else "movie"
        return _cached_search(self, kind, query)


@cache(ttl=300)  # Cache search results for 5 minutes
def _cached_search(client: CatalogClient, kind: str, query: str) -> List[Dict]:
    endpoint = f"/search/{kind}"
    payload = client._make_request(endpoint, {
        'query': query,
        'include_adult': 'false',
        'language': 'en-US',
        'page': 1,
    })
    return client._results(payload, endpoint)


def extract_trailer_url(videos) -> str:
    """Pick the first YouTube trailer from a TMDB 'videos' block."""
    if not isinstance(videos, dict):
        return ""
    for video in videos.get('results') or []:
        if not isinstance(video, dict):
            continue
        if str(video.get('type', '')).lower() == "trailer" and video.get('site') == TRAILER_SITE and video.get('key'):
            return TRAILER_URL_TEMPLATE.format(key=video['key'])
    return ""
