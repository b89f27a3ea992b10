"""
Main API router
"""
from fastapi import APIRouter

from app.api.v1 import (
    health,
    version,
    markets,
    sessions,
    media,
    stalls,
    attendance,
)
from app.api.v1.admin import admin_router

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(version.router, tags=["version"])
api_router.include_router(markets.router, prefix="/markets", tags=["markets"])
api_router.include_router(sessions.router, prefix="/sessions", tags=["sessions"])
api_router.include_router(media.router, prefix="/media", tags=["media"])
api_router.include_router(stalls.router, prefix="/stalls", tags=["stalls"])
api_router.include_router(stalls.collections_router, prefix="/collections", tags=["collections"])
api_router.include_router(attendance.router, prefix="/attendance", tags=["attendance"])
api_router.include_router(admin_router)
