"""
Spotify Catalog Client

Read access to the listener's library and the public catalog: top tracks
and artists, saved and recently played tracks, search, artist top tracks,
related artists and seeded recommendations. Payloads are converted to
Track/Artist models at this boundary.

The client does not perform authentication; it is handed a bearer token.
"""

from typing import Any, Dict, List, Optional, Protocol

import structlog

from ..models.track_models import Artist, Track
from .base_client import BaseAPIClient
from .rate_limiter import UnifiedRateLimiter

logger = structlog.get_logger(__name__)


class CatalogService(Protocol):
    """Operations the engine needs from a remote music catalog."""

    async def fetch_top_tracks(self, limit: int = 50) -> List[Track]: ...

    async def fetch_top_artists(self, limit: int = 20) -> List[Artist]: ...

    async def fetch_saved_tracks(self, limit: int = 50) -> List[Track]: ...

    async def fetch_recently_played(self, limit: int = 50) -> List[Track]: ...

    async def search(self, query: str, limit: int = 20) -> List[Track]: ...

    async def fetch_artist_top_tracks(self, artist_id: str) -> List[Track]: ...

    async def fetch_related_artists(self, artist_id: str) -> List[Artist]: ...

    async def fetch_seeded_recommendations(self, params: Dict[str, Any]) -> List[Track]: ...


class SpotifyCatalogClient(BaseAPIClient):
    """
    Spotify Web API client for catalog reads.

    Errors propagate as CatalogServiceError / CatalogEndpointUnavailable; the
    seeded-recommendations endpoint in particular is deprecated for many
    apps and answers 403/404.
    """

    BASE_URL = "https://api.spotify.com/v1"

    def __init__(
        self,
        access_token: str,
        rate_limiter: Optional[UnifiedRateLimiter] = None,
        timeout: float = 10,
        market: str = "US"
    ):
        """
        Initialize Spotify catalog client.

        Args:
            access_token: OAuth bearer token obtained by the caller
            rate_limiter: Rate limiter instance (hourly catalog limiter if omitted)
            timeout: Request timeout in seconds
            market: Market used for artist top tracks
        """
        if rate_limiter is None:
            rate_limiter = UnifiedRateLimiter.for_catalog()

        super().__init__(
            base_url=self.BASE_URL,
            rate_limiter=rate_limiter,
            timeout=timeout,
            service_name="Spotify"
        )

        self.access_token = access_token
        self.market = market

        self.logger.info("Spotify catalog client initialized", market=market)

    def _default_headers(self) -> Dict[str, str]:
        headers = super()._default_headers()
        headers["Authorization"] = f"Bearer {self.access_token}"
        headers["Content-Type"] = "application/json"
        return headers

    def _extract_api_error(self, data: Dict[str, Any]) -> Optional[str]:
        """Spotify reports errors as {"error": {"status": ..., "message": ...}}."""
        if isinstance(data, dict) and "error" in data:
            error_info = data["error"]
            if isinstance(error_info, dict):
                return error_info.get("message", f"Error {error_info.get('status', 'unknown')}")
            return str(error_info)
        return None

    def _to_tracks(self, items: List[Optional[Dict[str, Any]]]) -> List[Track]:
        """Convert track payloads, skipping local files and entries without an id."""
        tracks = []
        for item in items:
            if not item or item.get("is_local") or not item.get("id"):
                continue
            tracks.append(Track.from_catalog(item))
        return tracks

    def _to_artists(self, items: List[Optional[Dict[str, Any]]]) -> List[Artist]:
        return [Artist.from_catalog(item) for item in items if item and item.get("id")]

    async def fetch_top_tracks(self, limit: int = 50, time_range: str = "medium_term") -> List[Track]:
        data = await self._make_request("me/top/tracks", {"limit": limit, "time_range": time_range})
        tracks = self._to_tracks(data.get("items", []))
        self.logger.info("Top tracks fetched", count=len(tracks))
        return tracks

    async def fetch_top_artists(self, limit: int = 20, time_range: str = "medium_term") -> List[Artist]:
        data = await self._make_request("me/top/artists", {"limit": limit, "time_range": time_range})
        return self._to_artists(data.get("items", []))

    async def fetch_saved_tracks(self, limit: int = 50) -> List[Track]:
        data = await self._make_request("me/tracks", {"limit": limit})
        return self._to_tracks([item.get("track") for item in data.get("items", []) if item])

    async def fetch_recently_played(self, limit: int = 50) -> List[Track]:
        data = await self._make_request("me/player/recently-played", {"limit": limit})
        return self._to_tracks([item.get("track") for item in data.get("items", []) if item])

    async def search(self, query: str, limit: int = 20) -> List[Track]:
        """
        Search the catalog for tracks.

        Args:
            query: Free-text search query
            limit: Number of results

        Returns:
            Matching tracks
        """
        data = await self._make_request("search", {"q": query, "type": "track", "limit": limit})
        tracks = self._to_tracks(data.get("tracks", {}).get("items", []))
        self.logger.info("Catalog search completed", query=query, results_count=len(tracks))
        return tracks

    async def fetch_artist_top_tracks(self, artist_id: str) -> List[Track]:
        data = await self._make_request(f"artists/{artist_id}/top-tracks", {"market": self.market})
        return self._to_tracks(data.get("tracks", []))

    async def fetch_related_artists(self, artist_id: str) -> List[Artist]:
        data = await self._make_request(f"artists/{artist_id}/related-artists")
        return self._to_artists(data.get("artists", []))

    async def fetch_seeded_recommendations(self, params: Dict[str, Any]) -> List[Track]:
        """
        Seeded recommendations (seed_tracks, seed_artists, seed_genres, ...).

        Raises:
            CatalogEndpointUnavailable: When the endpoint is deprecated for this app
        """
        data = await self._make_request("recommendations", params, retries=1)
        return self._to_tracks(data.get("tracks", []))
