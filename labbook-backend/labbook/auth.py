from typing import Optional

from fastapi import Header, HTTPException

from .errors import NotAuthenticatedError


def resolve_user_id(raw: Optional[str]) -> str:
    """The id is opaque; it only has to be usable as one document path segment."""
    user_id = (raw or "").strip()
    if not user_id or "/" in user_id:
        raise NotAuthenticatedError()
    return user_id


def require_user(x_user_id: Optional[str] = Header(default=None)) -> str:
    try:
        return resolve_user_id(x_user_id)
    except NotAuthenticatedError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
