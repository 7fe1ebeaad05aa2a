"""Storage module for the local recommendation cache."""

from animuse.storage.cache_store import CacheStore, now_millis
from animuse.storage.db import Base, close_engine, get_engine, get_session_factory, init_models
from animuse.storage.kv import KeyValueStorage, MemoryStorage, SqlStorage
from animuse.storage.models import CacheRow

__all__ = [
    # Database
    "Base",
    "get_engine",
    "get_session_factory",
    "init_models",
    "close_engine",
    # Models
    "CacheRow",
    # Key-value engines
    "KeyValueStorage",
    "MemoryStorage",
    "SqlStorage",
    # Cache
    "CacheStore",
    "now_millis",
]
