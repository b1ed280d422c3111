# centralgpt/api/v1/deps.py
from fastapi import Depends, Header, HTTPException, Request, status
from centralgpt.context import AppContext
from centralgpt.core.errors import InvalidSessionToken
from centralgpt.store.base import UserRecord

SESSION_COOKIE = "accessToken"

def get_ctx(request: Request) -> AppContext:
    """
    FastAPI dependency returning the application context created at startup.
    """
    return request.app.state.ctx

def presented_token(request: Request, authorization: str | None = Header(default=None)) -> str | None:
    """
    Session token sent with the request:
    1. Authorization header (Bearer token) - preferred method
    2. HttpOnly cookie (accessToken) - fallback method
    """
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
    if not token:
        token = request.cookies.get(SESSION_COOKIE)
    return token or None

async def get_current_user(
    token: str | None = Depends(presented_token),
    ctx: AppContext = Depends(get_ctx),
) -> UserRecord:
    """
    FastAPI dependency to get the user of the active session.

    The process holds at most one session; a request is authenticated only
    when it carries that session's token.

    Raises:
        HTTPException (401): If no token is provided (AUTH_REQUIRED)
        HTTPException (401): If the token does not belong to the active session (AUTH_INVALID_TOKEN)
    """
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail={"code": "AUTH_REQUIRED", "message": "Log in first"})
    user = ctx.sessions.authenticate(token)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail=InvalidSessionToken("Session token is not valid").to_dict())
    return user

async def require_admin(current: UserRecord = Depends(get_current_user)) -> UserRecord:
    """
    FastAPI dependency to ensure the session user is an administrator.

    Raises:
        HTTPException (403): If user is not an admin (FORBIDDEN_ADMIN_ONLY)
        HTTPException (401): If the request is not authenticated (from get_current_user)
    """
    if current.role != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN,
                            detail={"code": "FORBIDDEN_ADMIN_ONLY", "message": "Admin only"})
    return current
