"""
Room, membership, watched-history and plan reads, through the cache.
"""

import asyncio
from typing import Any, Dict, List, Optional

from shared.errors import EigaException, NotFoundError
from shared.logging import get_logger
from ..adapters.backend_client import BackendClient
from ..caching import CacheExpiry, CacheKey, CacheManager
from .movies import MovieService

DEFAULT_PLAN = "free"
DEFAULT_USERNAME = "Anonymous"
DEFAULT_AVATAR = "https://via.placeholder.com/150"


class RoomService:
    """Per-user and per-room reads.

    User-scoped entries (rooms, watched movies, plan) are keyed by user id so
    ``sign_out`` can purge them in one sweep; room-scoped entries are keyed
    by room id.
    """

    def __init__(
        self,
        backend: BackendClient,
        cache: CacheManager,
        movies: Optional[MovieService] = None,
        ttl: float = CacheExpiry.DEFAULT,
    ):
        self.backend = backend
        self.cache = cache
        self.movies = movies
        self.ttl = ttl
        self.logger = get_logger("rooms.rooms")

    async def get_user_rooms(self, user_id: str, force_refresh: bool = False) -> List[Dict[str, Any]]:
        """Rooms the user belongs to, newest first, each with its suggestions."""

        async def fetch():
            memberships = await self.backend.select(
                "room_members", columns="room_id", filters={"user_id": f"eq.{user_id}"}
            )
            if not memberships:
                return []

            room_ids = ",".join(m["room_id"] for m in memberships)
            rooms = await self.backend.select(
                "rooms",
                filters={"id": f"in.({room_ids})"},
                order="created_at.desc",
            )
            return list(await asyncio.gather(*(self._with_movies(room) for room in rooms)))

        return await self.cache.get_or_fetch(
            CacheKey.USER_ROOMS, fetch, scope=user_id, ttl=self.ttl, force_refresh=force_refresh
        )

    async def get_room(self, room_id: str, force_refresh: bool = False) -> Dict[str, Any]:
        async def fetch():
            try:
                room = await self.backend.select_one("rooms", filters={"id": f"eq.{room_id}"})
            except NotFoundError:
                raise NotFoundError("Room not found", details={"room_id": room_id}) from None
            return await self._with_movies(room, strict=True)

        return await self.cache.get_or_fetch(
            CacheKey.ROOM_DETAILS, fetch, scope=room_id, ttl=self.ttl, force_refresh=force_refresh
        )

    async def get_room_suggestions(self, room_id: str, force_refresh: bool = False) -> List[Dict[str, Any]]:
        return await self.cache.get_or_fetch(
            CacheKey.ROOM_SUGGESTIONS,
            lambda: self._fetch_suggestions(room_id),
            scope=room_id,
            ttl=self.ttl,
            force_refresh=force_refresh,
        )

    async def get_room_members(self, room_id: str, force_refresh: bool = False) -> List[Dict[str, Any]]:
        async def fetch():
            members = await self.backend.select(
                "room_members", columns="user_id", filters={"room_id": f"eq.{room_id}"}
            )
            if not members:
                return []

            member_ids = ",".join(m["user_id"] for m in members)
            profiles = await self.backend.select(
                "profiles",
                columns="id,username,avatar_url",
                filters={"id": f"in.({member_ids})"},
            )
            return [
                {
                    "id": profile["id"],
                    "username": profile.get("username") or DEFAULT_USERNAME,
                    "avatar": profile.get("avatar_url") or DEFAULT_AVATAR,
                }
                for profile in profiles
            ]

        return await self.cache.get_or_fetch(
            CacheKey.ROOM_MEMBERS, fetch, scope=room_id, ttl=self.ttl, force_refresh=force_refresh
        )

    async def get_user_watched_movies(self, user_id: str, force_refresh: bool = False) -> List[Dict[str, Any]]:
        """Watched history, newest first, filled in from TMDB where incomplete."""

        async def fetch():
            rows = await self.backend.select(
                "watched_movies",
                filters={"user_id": f"eq.{user_id}"},
                order="watched_at.desc",
            )
            return list(await asyncio.gather(*(self._watched_entry(row) for row in rows)))

        return await self.cache.get_or_fetch(
            CacheKey.USER_WATCHED_MOVIES, fetch, scope=user_id, ttl=self.ttl, force_refresh=force_refresh
        )

    async def get_room_watched_movies(self, room_id: str, force_refresh: bool = False) -> List[Dict[str, Any]]:
        async def fetch():
            rows = await self.backend.select(
                "watched_movies",
                filters={"suggested_in": f"eq.{room_id}"},
                order="watched_at.desc",
            )
            return [
                {
                    "id": row["id"],
                    "movie": {
                        "id": row.get("movie_id"),
                        "title": row.get("movie_title"),
                        "poster_path": row.get("movie_poster_path"),
                        "release_date": row.get("movie_release_date"),
                    },
                    "watched_at": row.get("watched_at"),
                }
                for row in rows
            ]

        return await self.cache.get_or_fetch(
            CacheKey.ROOM_WATCHED_MOVIES, fetch, scope=room_id, ttl=self.ttl, force_refresh=force_refresh
        )

    async def get_user_plan(self, user_id: str, force_refresh: bool = False) -> str:
        async def fetch():
            rows = await self.backend.select(
                "profiles", columns="plan", filters={"id": f"eq.{user_id}"}, limit=1
            )
            if not rows:
                return DEFAULT_PLAN
            return rows[0].get("plan") or DEFAULT_PLAN

        return await self.cache.get_or_fetch(
            CacheKey.USER_PLAN, fetch, scope=user_id, ttl=self.ttl, force_refresh=force_refresh
        )

    async def sign_out(self, user_id: str) -> int:
        """Purge every entry scoped to ``user_id``; returns the number removed."""
        removed = await self.cache.invalidate_scope(user_id)
        self.logger.info("Purged user cache", user_id=user_id, removed=removed)
        return removed

    async def _with_movies(self, room: Dict[str, Any], strict: bool = False) -> Dict[str, Any]:
        """Attach suggestions; outside ``strict`` mode a failed lookup yields none."""
        try:
            movies = await self._fetch_suggestions(room["id"])
        except EigaException as e:
            if strict:
                raise
            self.logger.warning("Suggestions unavailable", room_id=room["id"], error=e.message)
            movies = []

        return {
            "id": room["id"],
            "name": room.get("name"),
            "avatar": room.get("avatar"),
            "created_by": room.get("created_by"),
            "created_at": room.get("created_at"),
            "members": room.get("members") or [],
            "invite_code": room.get("invite_code"),
            "movies": movies,
        }

    async def _fetch_suggestions(self, room_id: str) -> List[Dict[str, Any]]:
        rows = await self.backend.select(
            "movie_suggestions",
            columns="*,user:profiles!inner(*)",
            filters={"room_id": f"eq.{room_id}"},
        )
        return [
            {
                "id": row["id"],
                "movie": {
                    "id": row.get("movie_id"),
                    "title": row.get("movie_title"),
                    "poster_path": row.get("movie_poster_path"),
                    "overview": row.get("movie_overview"),
                    "release_date": row.get("movie_release_date"),
                    "vote_average": row.get("movie_vote_average"),
                },
                "suggested_by": {
                    "id": (row.get("user") or {}).get("id"),
                    "username": (row.get("user") or {}).get("username"),
                },
                "suggested_at": row.get("suggested_at"),
                "votes": row.get("votes") or [],
            }
            for row in rows
        ]

    async def _watched_entry(self, row: Dict[str, Any]) -> Dict[str, Any]:
        movie = {
            "id": row.get("movie_id"),
            "title": row.get("movie_title"),
            "poster_path": row.get("movie_poster_path"),
            "backdrop_path": row.get("movie_backdrop_path"),
            "overview": row.get("movie_overview"),
            "release_date": row.get("movie_release_date"),
            "vote_average": row.get("movie_vote_average"),
            "runtime": row.get("movie_runtime"),
            "genres": row.get("movie_genres"),
        }

        if self.movies is not None and movie["id"] is not None and not (movie["genres"] and movie["runtime"]):
            try:
                details = await self.movies.get_movie_details(movie["id"])
            except EigaException as e:
                self.logger.debug("Watched movie enrichment skipped", movie_id=movie["id"], error=e.message)
            else:
                movie["genres"] = details.get("genres")
                movie["runtime"] = details.get("runtime")
                for field in ("backdrop_path", "poster_path", "overview", "release_date", "vote_average"):
                    movie[field] = details.get(field) or movie[field]

        return {
            "id": row["id"],
            "movie": movie,
            "watched_at": row.get("watched_at"),
            "suggested_in": row.get("suggested_in"),
            "suggested_at": row.get("suggested_at"),
        }
