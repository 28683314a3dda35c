from __future__ import annotations

from fastapi import HTTPException, Request

from .users import UserNotFound, get_user


def _session_user(request: Request) -> dict:
    """Return the logged-in user, refreshed from the registry.

    A session that outlived its account is cleared and treated as logged out.
    """
    user = request.session.get("user")
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        current = get_user(user["id"])
    except UserNotFound:
        request.session.clear()
        raise HTTPException(status_code=401, detail="Account no longer exists")
    request.session["user"] = current
    return current


def require_user(request: Request) -> dict:
    """Raise 401 if no user is logged in."""
    return _session_user(request)


def require_admin(request: Request) -> dict:
    """Raise 401 if not logged in, 403 if not a super admin."""
    user = _session_user(request)
    if not user.get("is_super_admin"):
        raise HTTPException(status_code=403, detail="Super admin access required")
    return user
