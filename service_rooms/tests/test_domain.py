"""
Unit tests for room and movie reads through the cache.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from service_rooms.app.caching import CacheExpiry, CacheKey, CacheManager, InMemoryKeyValueStore
from service_rooms.app.domain.movies import MovieService
from service_rooms.app.domain.rooms import RoomService
from shared.errors import BackendError, MetadataServiceError, NotFoundError, ValidationError


TABLES = {
    "room_members": [{"room_id": "r1", "user_id": "u1"}, {"room_id": "r2", "user_id": "u2"}],
    "rooms": [
        {"id": "r2", "name": "Late night", "created_at": "2024-02-01"},
        {"id": "r1", "name": "Weekend", "created_at": "2024-01-01"},
    ],
    "movie_suggestions": [
        {
            "id": "s1",
            "movie_id": 550,
            "movie_title": "Fight Club",
            "user": {"id": "u1", "username": "ana"},
            "votes": ["u2"],
        }
    ],
    "profiles": [{"id": "u1", "username": "ana", "avatar_url": None, "plan": "pro"}, {"id": "u2"}],
    "watched_movies": [
        {"id": "w1", "movie_id": 550, "movie_title": "Fight Club", "watched_at": "2024-03-01"},
        {"id": "w2", "movie_id": 13, "movie_title": "Forrest Gump", "movie_runtime": 142,
         "movie_genres": [{"id": 18, "name": "Drama"}], "watched_at": "2024-02-01"},
    ],
}


async def _select(table, columns="*", filters=None, order=None, limit=None):
    return [dict(row) for row in TABLES.get(table, [])]


class TestRoomService:
    """Test cases for RoomService."""

    @pytest.fixture
    def backend(self):
        backend = MagicMock()
        backend.select = AsyncMock(side_effect=_select)
        backend.select_one = AsyncMock(return_value=dict(TABLES["rooms"][1]))
        return backend

    @pytest.fixture
    def movies(self):
        movies = MagicMock()
        movies.get_movie_details = AsyncMock(return_value={
            "runtime": 139,
            "genres": [{"id": 18, "name": "Drama"}],
            "backdrop_path": "/bd.jpg",
        })
        return movies

    @pytest.fixture
    def store(self):
        return InMemoryKeyValueStore()

    @pytest.fixture
    def room_service(self, backend, movies, store):
        return RoomService(backend, CacheManager(store), movies=movies)

    @pytest.mark.asyncio
    async def test_user_rooms_are_cached_per_user(self, room_service, backend, store):
        first = await room_service.get_user_rooms("u1")
        calls = backend.select.await_count
        second = await room_service.get_user_rooms("u1")

        assert first == second
        assert backend.select.await_count == calls
        assert [room["id"] for room in first] == ["r2", "r1"]
        assert first[0]["movies"][0]["suggested_by"]["username"] == "ana"
        assert "eiga_user_rooms_u1" in store

    @pytest.mark.asyncio
    async def test_user_rooms_query_filters(self, room_service, backend):
        await room_service.get_user_rooms("u1")

        first_call = backend.select.await_args_list[0]
        assert first_call.args[0] == "room_members"
        assert first_call.kwargs["filters"] == {"user_id": "eq.u1"}

        rooms_call = backend.select.await_args_list[1]
        assert rooms_call.kwargs["filters"] == {"id": "in.(r1,r2)"}
        assert rooms_call.kwargs["order"] == "created_at.desc"

    @pytest.mark.asyncio
    async def test_user_without_rooms(self, room_service, backend):
        backend.select = AsyncMock(return_value=[])

        assert await room_service.get_user_rooms("u9") == []
        backend.select.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_room_list_tolerates_suggestion_failure(self, room_service, backend):
        async def select(table, **kwargs):
            if table == "movie_suggestions":
                raise BackendError("timeout")
            return await _select(table)

        backend.select = AsyncMock(side_effect=select)

        rooms = await room_service.get_user_rooms("u1")

        assert all(room["movies"] == [] for room in rooms)

    @pytest.mark.asyncio
    async def test_missing_room_is_not_cached(self, room_service, backend, store):
        backend.select_one = AsyncMock(side_effect=NotFoundError("No rooms row matches"))

        with pytest.raises(NotFoundError) as exc_info:
            await room_service.get_room("missing")

        assert exc_info.value.message == "Room not found"
        assert "eiga_room_details_missing" not in store

    @pytest.mark.asyncio
    async def test_room_members_defaults(self, room_service):
        members = await room_service.get_room_members("r1")

        assert members[0] == {"id": "u1", "username": "ana", "avatar": "https://via.placeholder.com/150"}
        assert members[1]["username"] == "Anonymous"

    @pytest.mark.asyncio
    async def test_watched_movies_enriched_when_incomplete(self, room_service, movies):
        watched = await room_service.get_user_watched_movies("u1")

        movies.get_movie_details.assert_awaited_once_with(550)
        assert watched[0]["movie"]["runtime"] == 139
        assert watched[0]["movie"]["backdrop_path"] == "/bd.jpg"
        assert watched[1]["movie"]["runtime"] == 142

    @pytest.mark.asyncio
    async def test_watched_movies_enrichment_failure_is_skipped(self, room_service, movies):
        movies.get_movie_details = AsyncMock(side_effect=MetadataServiceError("down"))

        watched = await room_service.get_user_watched_movies("u1")

        assert watched[0]["movie"]["title"] == "Fight Club"
        assert watched[0]["movie"]["runtime"] is None

    @pytest.mark.asyncio
    async def test_user_plan(self, room_service, backend):
        assert await room_service.get_user_plan("u1") == "pro"

        backend.select = AsyncMock(return_value=[])
        assert await room_service.get_user_plan("u2", force_refresh=True) == "free"

    @pytest.mark.asyncio
    async def test_sign_out_purges_only_that_user(self, room_service, store):
        await room_service.get_user_rooms("u1")
        await room_service.get_user_plan("u1")
        await room_service.get_user_watched_movies("u1")
        await room_service.get_user_plan("u2")

        removed = await room_service.sign_out("u1")

        assert removed == 3
        assert "eiga_user_rooms_u1" not in store
        assert "eiga_user_plan_u1" not in store
        assert "eiga_user_plan_u2" in store

    @pytest.mark.asyncio
    async def test_force_refresh_refetches(self, room_service, backend):
        await room_service.get_room_suggestions("r1")
        calls = backend.select.await_count

        await room_service.get_room_suggestions("r1", force_refresh=True)

        assert backend.select.await_count == calls + 1


class TestMovieService:
    """Test cases for MovieService."""

    @pytest.fixture
    def tmdb(self):
        tmdb = MagicMock()
        tmdb.get = AsyncMock(return_value={"id": 550, "results": [{"id": 1}]})
        return tmdb

    @pytest.fixture
    def cache(self):
        return CacheManager(InMemoryKeyValueStore())

    @pytest.fixture
    def movie_service(self, tmdb, cache):
        return MovieService(tmdb, cache, region="IN")

    @pytest.mark.asyncio
    async def test_details_cached_with_long_ttl(self, movie_service, tmdb, cache):
        await movie_service.get_movie_details(550)
        await movie_service.get_movie_details(550)

        tmdb.get.assert_awaited_once_with("/movie/550", {"append_to_response": "credits,videos,images"})
        entry = await cache._read_entry("eiga_movie_details_550")
        assert entry.ttl == CacheExpiry.LONG

    @pytest.mark.asyncio
    async def test_providers_use_separate_key(self, movie_service, cache):
        await movie_service.get_movie_providers(550)

        assert await cache.get("eiga_movie_details_providers_550") is not None
        assert await cache.get(CacheKey.MOVIE_DETAILS.qualified(550)) is None

    @pytest.mark.asyncio
    async def test_short_queries_are_not_cached(self, movie_service, tmdb):
        await movie_service.search_movies("ab")
        await movie_service.search_movies("ab")

        assert tmdb.get.await_count == 2

    @pytest.mark.asyncio
    async def test_search_is_normalized(self, movie_service, tmdb, cache):
        await movie_service.search_movies("Dune ")
        await movie_service.search_movies("dune")
        await movie_service.search_tv("dune")

        assert tmdb.get.await_count == 2
        assert await cache.get("eiga_search_results_dune") is not None
        assert await cache.get("eiga_search_results_tv_dune") is not None

    @pytest.mark.asyncio
    async def test_trending_windows(self, movie_service, cache):
        assert await movie_service.get_trending("day") == [{"id": 1}]

        entry = await cache._read_entry("eiga_trending_movies_day")
        assert entry.ttl == CacheExpiry.SHORT

        with pytest.raises(ValidationError):
            await movie_service.get_trending("month")

    @pytest.mark.asyncio
    async def test_clear_trending(self, movie_service, tmdb):
        await movie_service.get_trending("week")
        await movie_service.clear_trending()
        await movie_service.get_trending("week")

        assert tmdb.get.await_count == 2

    @pytest.mark.asyncio
    async def test_discover_key_and_params(self, movie_service, tmdb, cache):
        await movie_service.discover(provider_id=8, genre_id=18, page=2)

        tmdb.get.assert_awaited_once_with("/discover/movie", {
            "page": 2,
            "with_watch_providers": 8,
            "watch_region": "IN",
            "with_genres": 18,
        })
        assert await cache.get("eiga_provider_genre_movies_provider_8_genre_18_page_2_region_IN") == [{"id": 1}]

    @pytest.mark.asyncio
    async def test_discover_validation(self, movie_service):
        with pytest.raises(ValidationError):
            await movie_service.discover()
        with pytest.raises(ValidationError):
            await movie_service.discover(genre_id=18, page=0)
