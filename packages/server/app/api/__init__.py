"""
REST API router.

Mounted under /api. Every route here requires a bearer token unless its
exact path is in `app.core.middleware.OPEN_PATHS`.
"""

from fastapi import APIRouter

from . import auth, notifications, search, users, workspaces

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(users.email_change_router, prefix="/email_change_requests", tags=["Users"])
router.include_router(workspaces.router, prefix="/workspaces", tags=["Workspaces"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
router.include_router(search.router, prefix="/search", tags=["Search"])
