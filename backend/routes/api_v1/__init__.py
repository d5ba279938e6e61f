"""API v1: cron-triggered sync endpoints."""

from fastapi import APIRouter

from .sync import router as sync_router

router = APIRouter(prefix="/api/v1", tags=["api_v1"])
router.include_router(sync_router)

api_v1_router = router
