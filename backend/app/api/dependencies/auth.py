# backend/app/api/dependencies/auth.py
"""
Authentication dependencies.

Identity is established by the upstream auth middleware, which stores the
caller's id on ``request.state.user_id``. Routes only ever act on behalf of
that id.
"""

import logging

from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)


def get_current_user_id(request: Request) -> str:
    """Return the authenticated student's id or reject the request with 401."""
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        logger.debug(f"Unauthenticated request to {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return str(user_id)
