"""API routers for the scheme migration service."""
from fastapi import APIRouter

from scheme_migration.api.routes import data_cache, lock_cache, system

router = APIRouter(prefix="/api/v1")
router.include_router(lock_cache.router, tags=["lock-cache"])
router.include_router(data_cache.router, prefix="/migration-data", tags=["data-cache"])
router.include_router(system.router, prefix="/system", tags=["system"])
