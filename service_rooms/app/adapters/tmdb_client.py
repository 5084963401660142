"""
TMDB movie-metadata client.
"""

import httpx
from typing import Any, Dict, Optional

from shared.logging import get_logger
from shared.errors import MetadataServiceError, NotFoundError
from shared.retry import retry_on_exception, RetryConfig

IMAGE_BASE_URL = "https://image.tmdb.org/t/p"


class TMDBClient:
    """Client for the TMDB v3 API."""

    def __init__(
        self,
        base_url: str = "https://api.themoviedb.org/3",
        access_token: Optional[str] = None,
        language: str = "en-US",
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.language = language
        self.timeout = timeout
        self.logger = get_logger("rooms.tmdb_client")

    @retry_on_exception((httpx.TransportError,), config=RetryConfig(max_attempts=3, base_delay=0.5))
    async def _get(self, path: str, params: Dict[str, Any]) -> httpx.Response:
        headers = {"Accept": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(
                f"{self.base_url}{path}",
                params={"language": self.language, **params},
                headers=headers
            )

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET a TMDB resource and return the decoded body."""
        try:
            response = await self._get(path, params or {})
        except httpx.HTTPError as e:
            self.logger.error("TMDB unavailable", path=path, error=str(e))
            raise MetadataServiceError(
                "TMDB unavailable",
                details={"path": path, "error": str(e)}
            ) from e

        if response.status_code == 404:
            raise NotFoundError(f"TMDB resource not found: {path}", details={"path": path})
        if response.status_code != 200:
            self.logger.error("TMDB request failed", path=path, status_code=response.status_code)
            raise MetadataServiceError(
                f"TMDB request failed: {response.status_code}",
                details={"path": path, "status_code": response.status_code}
            )

        return response.json()


def image_url(path: str, size: str = "w500") -> str:
    """Poster URL for a TMDB image path."""
    return f"{IMAGE_BASE_URL}/{size}{path}"


def backdrop_url(path: str, size: str = "w1280") -> str:
    """Backdrop URL; larger default size than posters."""
    return f"{IMAGE_BASE_URL}/{size}{path}"
