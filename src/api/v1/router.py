"""
API v1 router.

Combines all v1 endpoint routers.
"""

from fastapi import APIRouter

from src.api.v1.endpoints import generation

api_router = APIRouter()


@api_router.get("/", tags=["info"])
async def api_v1_info():
    """
    API v1 information endpoint.

    Returns:
        API version and available endpoints
    """
    return {
        "title": "Document Generation API",
        "version": "1.0.0",
        "endpoints": {
            "generation": "/api/v1/tenants/{tenant_id}/generation",
            "health": "/health",
            "docs": "/docs",
        },
    }


api_router.include_router(generation.router)
