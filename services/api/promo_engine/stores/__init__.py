"""Data stores for persistence and caching.

Stores handle:
- PostgreSQL: DB session, offer/code/usage/adjustment queries
- Redis: active offer catalog cache with TTL

No qualification or discount logic in stores - that belongs in services.
"""
