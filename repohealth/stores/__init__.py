"""State stores: rate limiting and cached analysis results."""

from .rate_limit import FixedWindowRateLimiter, RateLimitDecision, client_identifier
from .result_cache import CacheEvent, CacheRecord, CacheSubject, ResultCache, cache_key

__all__ = [
    "CacheEvent",
    "CacheRecord",
    "CacheSubject",
    "FixedWindowRateLimiter",
    "RateLimitDecision",
    "ResultCache",
    "cache_key",
    "client_identifier",
]
