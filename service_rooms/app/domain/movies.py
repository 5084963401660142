"""
Movie metadata lookups, read through the cache.
"""

from typing import Any, Dict, List, Optional

from shared.errors import ValidationError
from shared.logging import get_logger
from ..adapters.tmdb_client import TMDBClient
from ..caching import CacheExpiry, CacheKey, CacheManager

MIN_CACHED_QUERY_LENGTH = 3
TRENDING_WINDOWS = ("day", "week")


class MovieService:
    """TMDB lookups with per-class TTLs.

    Details and providers barely change (LONG); search results and the daily
    trending list are volatile (SHORT); everything else uses DEFAULT.
    """

    def __init__(
        self,
        tmdb: TMDBClient,
        cache: CacheManager,
        region: str = "IN",
        default_ttl: float = CacheExpiry.DEFAULT,
        long_ttl: float = CacheExpiry.LONG,
        short_ttl: float = CacheExpiry.SHORT,
    ):
        self.tmdb = tmdb
        self.cache = cache
        self.region = region
        self.default_ttl = default_ttl
        self.long_ttl = long_ttl
        self.short_ttl = short_ttl
        self.logger = get_logger("rooms.movies")

    async def get_movie_details(self, movie_id: int, force_refresh: bool = False) -> Dict[str, Any]:
        async def fetch():
            return await self.tmdb.get(
                f"/movie/{movie_id}",
                {"append_to_response": "credits,videos,images"},
            )

        return await self.cache.get_or_fetch(
            CacheKey.MOVIE_DETAILS.qualified(movie_id),
            fetch,
            ttl=self.long_ttl,
            force_refresh=force_refresh,
        )

    async def get_movie_providers(self, movie_id: int, force_refresh: bool = False) -> Dict[str, Any]:
        async def fetch():
            return await self.tmdb.get(f"/movie/{movie_id}/watch/providers")

        return await self.cache.get_or_fetch(
            CacheKey.MOVIE_DETAILS.qualified("providers", movie_id),
            fetch,
            ttl=self.long_ttl,
            force_refresh=force_refresh,
        )

    async def search_movies(self, query: str) -> Dict[str, Any]:
        return await self._search("movie", query)

    async def search_tv(self, query: str) -> Dict[str, Any]:
        return await self._search("tv", query)

    async def _search(self, media_type: str, query: str) -> Dict[str, Any]:
        async def fetch():
            return await self.tmdb.get(
                f"/search/{media_type}",
                {"query": query, "include_adult": "false", "page": 1},
            )

        normalized = query.lower().strip()
        if len(query) < MIN_CACHED_QUERY_LENGTH:
            # Autocomplete prefixes are too numerous to be worth caching.
            return await fetch()

        if media_type == "movie":
            key = CacheKey.SEARCH_RESULTS.qualified(normalized)
        else:
            key = CacheKey.SEARCH_RESULTS.qualified(media_type, normalized)

        return await self.cache.get_or_fetch(key, fetch, ttl=self.short_ttl)

    async def get_trending(self, time_window: str = "week", force_refresh: bool = False) -> List[Dict[str, Any]]:
        if time_window not in TRENDING_WINDOWS:
            raise ValidationError(
                f"Unsupported trending window: {time_window}",
                details={"allowed": list(TRENDING_WINDOWS)}
            )

        async def fetch():
            body = await self.tmdb.get(f"/trending/movie/{time_window}")
            return body.get("results", [])

        return await self.cache.get_or_fetch(
            CacheKey.TRENDING_MOVIES.qualified(time_window),
            fetch,
            ttl=self.short_ttl if time_window == "day" else self.default_ttl,
            force_refresh=force_refresh,
        )

    async def discover(
        self,
        provider_id: Optional[int] = None,
        genre_id: Optional[int] = None,
        page: int = 1,
        region: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Movies by streaming provider, genre, or both."""
        if provider_id is None and genre_id is None:
            raise ValidationError("discover needs a provider_id or a genre_id")
        if page < 1:
            raise ValidationError("page must be positive", details={"page": page})

        region = region or self.region
        params: Dict[str, Any] = {"page": page}
        parts: List[Any] = []
        if provider_id is not None:
            params["with_watch_providers"] = provider_id
            params["watch_region"] = region
            parts += ["provider", provider_id]
        if genre_id is not None:
            params["with_genres"] = genre_id
            parts += ["genre", genre_id]
        parts += ["page", page]
        if provider_id is not None:
            parts += ["region", region]

        async def fetch():
            body = await self.tmdb.get("/discover/movie", params)
            return body.get("results", [])

        return await self.cache.get_or_fetch(
            CacheKey.PROVIDER_GENRE_MOVIES.qualified(*parts),
            fetch,
            ttl=self.default_ttl,
        )

    async def clear_trending(self) -> None:
        """Drop both trending lists; details and providers are left alone."""
        for window in TRENDING_WINDOWS:
            await self.cache.invalidate(CacheKey.TRENDING_MOVIES.qualified(window))
        self.logger.info("Trending caches cleared")
