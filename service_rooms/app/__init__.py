"""
Application package for the Eiga rooms service.

Structure:
- app.main: FastAPI app, routes and wiring.
- app.caching: Cache-aside manager, entry envelope, key namespace and stores.
- app.adapters: HTTP clients for Supabase (PostgREST) and TMDB.
- app.domain: Room and movie services that read through the cache.
"""
