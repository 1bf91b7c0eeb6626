from fastapi import APIRouter, status

from pageaudit.platform.cache.manager import get_cache_manager
from pageaudit.platform.config import settings
from pageaudit.platform.response import api_response

router = APIRouter()


@router.get("/health", tags=["health"])
async def health_check():
    return api_response(
        data={"status": "ok", "service": settings.APP_NAME},
        message="Service is healthy",
        status_code=status.HTTP_200_OK,
    )


@router.get("/health/cache", tags=["health"])
async def cache_health():
    return api_response(data=get_cache_manager().stats(), message="Cache statistics")
