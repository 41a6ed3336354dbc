"""Web research tools: caching, politeness and the Tavily fetcher."""

from .cache import CacheEntry, ContentCache, InMemoryCacheStore
from .rate_limiter import RateLimiter, origin_of

__all__ = ["CacheEntry", "ContentCache", "InMemoryCacheStore", "RateLimiter", "origin_of"]
