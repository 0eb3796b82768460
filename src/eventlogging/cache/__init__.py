from .model_cache import ModelCache
from .store import CacheStore, InMemoryCacheStore, RedisCacheStore, create_cache_store

__all__ = ["CacheStore", "InMemoryCacheStore", "ModelCache", "RedisCacheStore", "create_cache_store"]
