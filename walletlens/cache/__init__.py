"""TTL cache over a pluggable byte store."""
from .backends import FileCacheBackend, MemoryCacheBackend
from .ttl_cache import TTLCache, make_cache_key

__all__ = ["FileCacheBackend", "MemoryCacheBackend", "TTLCache", "make_cache_key"]
