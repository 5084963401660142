"""
Cache key namespace and TTL classes.
"""

from enum import Enum
from typing import Optional, Union


class CacheKey(str, Enum):
    """Logical cache keys, one per data class."""

    USER_ROOMS = "eiga_user_rooms"
    USER_PLAN = "eiga_user_plan"
    TRENDING_MOVIES = "eiga_trending_movies"
    PROVIDER_GENRE_MOVIES = "eiga_provider_genre_movies"
    MOVIE_DETAILS = "eiga_movie_details"
    ROOM_DETAILS = "eiga_room_details"
    SEARCH_RESULTS = "eiga_search_results"
    USER_WATCHED_MOVIES = "eiga_user_watched_movies"
    ROOM_WATCHED_MOVIES = "eiga_room_watched_movies"
    ROOM_SUGGESTIONS = "eiga_room_suggestions"
    ROOM_MEMBERS = "eiga_room_members"

    def qualified(self, *parts: object) -> str:
        """Derive a sub-key, e.g. ``eiga_movie_details_providers_550``."""
        return "_".join([self.value] + [str(part) for part in parts])

    def __str__(self) -> str:
        return self.value


class CacheExpiry:
    """TTL classes in seconds."""

    DEFAULT = 15 * 60
    LONG = 60 * 60
    SHORT = 5 * 60


KeyLike = Union[CacheKey, str]


def composite_key(key: KeyLike, scope: Optional[str] = None) -> str:
    """Build the store key: ``{key}_{scope}`` when scoped, else ``key``."""
    base = key.value if isinstance(key, CacheKey) else key
    if scope:
        return f"{base}_{scope}"
    return base
