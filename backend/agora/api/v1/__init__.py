"""
API Version 1 Router.

Combines all API endpoints under /api/v1 prefix.
"""

from fastapi import APIRouter

from agora.api.v1.endpoints import admin, auth, forum

router = APIRouter()

# Include endpoint routers
router.include_router(auth.router, prefix="/auth", tags=["Auth"])
router.include_router(forum.router, tags=["Forum"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])
