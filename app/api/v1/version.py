"""
Version and metadata endpoint
"""
from fastapi import APIRouter
from app.core.config import settings
from app.core.constants import SERVICE_NAME, DEFAULT_VERSION

router = APIRouter()


@router.get("/version")
async def get_version():
    """
    Get application version and metadata

    Returns:
        Service name, version, environment and operational timezone
    """
    return {
        "service": SERVICE_NAME,
        "version": settings.VERSION or DEFAULT_VERSION,
        "env": settings.APP_ENV,
        "operational_tz": settings.OPERATIONAL_TZ,
    }
