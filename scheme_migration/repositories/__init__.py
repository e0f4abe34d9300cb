"""Store implementations for locks and migration data."""

from .data_cache import DataCacheRepository, DataStore
from .lock_cache import LockCacheRepository, LockStore

__all__ = ["DataCacheRepository", "DataStore", "LockCacheRepository", "LockStore"]
