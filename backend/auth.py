"""Request identity. The frontend authenticates users and forwards their id in X-User-Id."""

from typing import Optional

from fastapi import Header, HTTPException


def current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Identity of the signed-in caller. Raises 401 when the header is missing."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id
