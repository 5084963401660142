"""
Eiga rooms service: HTTP surface over the cached room and movie reads.
"""

from typing import Any, Dict, Optional

from fastapi import Query

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.logging import set_user_context
from .adapters.backend_client import BackendClient
from .adapters.tmdb_client import TMDBClient
from .caching import CacheManager, KeyValueStore, create_store
from .caching.stores import RedisKeyValueStore
from .domain.movies import MovieService
from .domain.rooms import RoomService

SERVICE_NAME = "rooms"
DEFAULT_PORT = 8020


class RoomsCacheService(BaseService):
    """Rooms service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        store: Optional[KeyValueStore] = None,
        backend: Optional[BackendClient] = None,
        tmdb: Optional[TMDBClient] = None,
    ):
        super().__init__(SERVICE_NAME, DEFAULT_PORT, config=config or get_config(SERVICE_NAME, DEFAULT_PORT))

        self.store = store if store is not None else create_store(self.config)
        self.cache_manager = CacheManager(
            self.store,
            default_ttl=self.config.cache_default_ttl,
            metrics=self.metrics,
        )
        self.backend = backend if backend is not None else BackendClient(
            self.config.supabase_url,
            self.config.supabase_key,
            timeout=self.config.http_timeout,
        )
        self.tmdb = tmdb if tmdb is not None else TMDBClient(
            self.config.tmdb_base_url,
            self.config.tmdb_access_token,
            language=self.config.tmdb_language,
            timeout=self.config.http_timeout,
        )
        self.movie_service = MovieService(
            self.tmdb,
            self.cache_manager,
            region=self.config.tmdb_region,
            default_ttl=self.config.cache_default_ttl,
            long_ttl=self.config.cache_long_ttl,
            short_ttl=self.config.cache_short_ttl,
        )
        self.room_service = RoomService(
            self.backend,
            self.cache_manager,
            movies=self.movie_service,
            ttl=self.config.cache_default_ttl,
        )

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.store.close()

        self._setup_room_routes()
        self._setup_movie_routes()
        self._setup_cache_routes()

    async def _check_dependencies(self) -> Dict[str, str]:
        if isinstance(self.store, RedisKeyValueStore):
            await self.store.ping()
            return {"cache_store": "redis"}
        return {"cache_store": "memory"}

    def _setup_room_routes(self):
        rooms = self.room_service

        @self.app.get("/users/{user_id}/rooms")
        async def user_rooms(user_id: str, refresh: bool = False):
            set_user_context(user_id)
            return await rooms.get_user_rooms(user_id, force_refresh=refresh)

        @self.app.get("/users/{user_id}/watched")
        async def user_watched(user_id: str, refresh: bool = False):
            set_user_context(user_id)
            return await rooms.get_user_watched_movies(user_id, force_refresh=refresh)

        @self.app.get("/users/{user_id}/plan")
        async def user_plan(user_id: str, refresh: bool = False):
            set_user_context(user_id)
            return {"user_id": user_id, "plan": await rooms.get_user_plan(user_id, force_refresh=refresh)}

        @self.app.get("/rooms/{room_id}")
        async def room(room_id: str, refresh: bool = False):
            return await rooms.get_room(room_id, force_refresh=refresh)

        @self.app.get("/rooms/{room_id}/members")
        async def room_members(room_id: str, refresh: bool = False):
            return await rooms.get_room_members(room_id, force_refresh=refresh)

        @self.app.get("/rooms/{room_id}/suggestions")
        async def room_suggestions(room_id: str, refresh: bool = False):
            return await rooms.get_room_suggestions(room_id, force_refresh=refresh)

        @self.app.get("/rooms/{room_id}/watched")
        async def room_watched(room_id: str, refresh: bool = False):
            return await rooms.get_room_watched_movies(room_id, force_refresh=refresh)

    def _setup_movie_routes(self):
        movies = self.movie_service

        # Registered before /movies/{movie_id} so "trending" is not parsed as an id.
        @self.app.get("/movies/trending/{time_window}")
        async def trending(time_window: str, refresh: bool = False):
            return await movies.get_trending(time_window, force_refresh=refresh)

        @self.app.get("/movies/{movie_id}")
        async def movie_details(movie_id: int, refresh: bool = False):
            return await movies.get_movie_details(movie_id, force_refresh=refresh)

        @self.app.get("/movies/{movie_id}/providers")
        async def movie_providers(movie_id: int, refresh: bool = False):
            return await movies.get_movie_providers(movie_id, force_refresh=refresh)

        @self.app.get("/search/movies")
        async def search_movies(q: str = Query(..., min_length=1)):
            return await movies.search_movies(q)

        @self.app.get("/search/tv")
        async def search_tv(q: str = Query(..., min_length=1)):
            return await movies.search_tv(q)

        @self.app.get("/discover")
        async def discover(
            provider_id: Optional[int] = None,
            genre_id: Optional[int] = None,
            page: int = 1,
            region: Optional[str] = None,
        ):
            return await movies.discover(provider_id=provider_id, genre_id=genre_id, page=page, region=region)

    def _setup_cache_routes(self):
        @self.app.delete("/users/{user_id}/cache")
        async def purge_user_cache(user_id: str) -> Dict[str, Any]:
            set_user_context(user_id)
            removed = await self.room_service.sign_out(user_id)
            return {"user_id": user_id, "removed": removed}

        @self.app.delete("/cache/trending")
        async def clear_trending() -> Dict[str, Any]:
            await self.movie_service.clear_trending()
            return {"status": "cleared"}

        @self.app.get("/cache/stats")
        async def cache_stats() -> Dict[str, Any]:
            return self.cache_manager.get_stats()


def create_app(config: Optional[ServiceConfig] = None):
    """Build the ASGI app (``uvicorn service_rooms.app.main:create_app --factory``)."""
    return RoomsCacheService(config).app


if __name__ == "__main__":
    RoomsCacheService().run()
