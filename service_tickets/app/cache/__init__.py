"""
Cache package for the Ticketing service.

Provides a Redis-backed cache-aside layer for paginated listings with a
fixed five-minute TTL and no write-time invalidation.
"""
