"""
API v1 router.
"""
from fastapi import APIRouter

from gitsum.api.v1.endpoints import api_keys, auth, health, summarizer

api_router = APIRouter()

# Health check endpoint (no prefix, so it's /api/v1/health)
api_router.include_router(health.router, tags=["health"])

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(api_keys.router, prefix="/keys", tags=["api-keys"])
api_router.include_router(summarizer.router, prefix="/github-summarizer", tags=["summarizer"])
