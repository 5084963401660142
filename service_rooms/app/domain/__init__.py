"""
Domain services: callers of the cache manager.

Each read supplies a fetch function that knows how to query a collaborator;
the cache manager decides whether that function runs.
"""

from .movies import MovieService
from .rooms import RoomService

__all__ = ["MovieService", "RoomService"]
