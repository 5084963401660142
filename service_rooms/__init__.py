"""
Eiga rooms service.

Caches room, watched-history, plan and movie-metadata reads in front of the
Supabase backend and the TMDB API.
"""
