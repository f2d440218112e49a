# api/dependencies/auth.py
from typing import Optional

from fastapi import Header, HTTPException, status


def get_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """
    Authenticated user id, as forwarded by the auth gateway.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user identity",
        )
    return x_user_id.strip()
