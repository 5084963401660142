"""
Adapters package for the rooms service.

HTTP client wrappers for the external collaborators (Supabase PostgREST and
TMDB). Adapters own base URLs, auth headers, transport retries and the
mapping of HTTP failures onto shared errors. They never touch the cache.
"""

from .backend_client import BackendClient
from .tmdb_client import TMDBClient, image_url, backdrop_url

__all__ = [
    "BackendClient",
    "TMDBClient",
    "image_url",
    "backdrop_url",
]
