"""
API v1 Router

Everything here acts on the caller's active organization, resolved from
the session on each request.
"""

from fastapi import APIRouter
from . import invites, notes, organizations, user

router = APIRouter()

router.include_router(user.router, prefix="/user", tags=["User"])
router.include_router(organizations.router, prefix="/organizations", tags=["Organizations"])
router.include_router(invites.router, prefix="/invites", tags=["Invites"])
router.include_router(notes.router, prefix="/boards/{board_id}/notes", tags=["Notes"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/user",
            "/organizations",
            "/invites/{token}",
            "/boards/{board_id}/notes",
        ],
    }
