"""Current user endpoint.

Returns information about the authenticated viewer.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from scaaf.auth.middleware import Viewer, get_viewer
from scaaf.responses import success_response

router = APIRouter()


@router.get("/me")
async def get_me(viewer: Annotated[Viewer, Depends(get_viewer)]) -> dict:
    """Get current user information.

    Requires authentication. The users row is created on first sight by
    the auth bootstrap, so this also serves as a sign-in check.
    """
    return success_response({"user_id": str(viewer.user_id)})
