"""Service layer exports."""

from .cleanup import ExpirySweeper, expiry_sweeper
from .data_cache_service import DataCacheService
from .lock_service import NOT_FOUND, LockOutcome, LockService

__all__ = [
    "DataCacheService",
    "ExpirySweeper",
    "LockOutcome",
    "LockService",
    "NOT_FOUND",
    "expiry_sweeper",
]
