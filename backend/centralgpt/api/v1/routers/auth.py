# centralgpt/api/v1/routers/auth.py
from fastapi import APIRouter, Depends, Response
from centralgpt.api.v1.deps import SESSION_COOKIE, get_ctx, get_current_user, presented_token
from centralgpt.context import AppContext
from centralgpt.schemas.auth import AdminLoginIn, KeyLoginIn
from centralgpt.services.session_store import LoginResult
from centralgpt.store.base import UserRecord

router = APIRouter(prefix="/auth", tags=["auth"])

def _session_user(u: UserRecord) -> dict:
    return {
        "id": u.id,
        "username": u.username,
        "role": u.role,
        "createdAt": u.created_at.isoformat(),
        "isAdmin": u.is_admin,
    }

def _login_response(result: LoginResult, response: Response) -> dict:
    if not result.success:
        return {"success": False, "error": {"code": result.code, "message": result.message}}
    token = result.session.token
    response.set_cookie(SESSION_COOKIE, token, httponly=True, secure=False, samesite="lax")
    return {"success": True, "data": {"user": _session_user(result.session.user),
                                      "accessToken": token}}

@router.post("/login")
async def login(body: KeyLoginIn, response: Response, ctx: AppContext = Depends(get_ctx)):
    """
    Log in with an access key (regular users only).

    On success the session token is returned as data.accessToken and also
    set as an HttpOnly cookie named "accessToken". Every other endpoint
    requires it.

    Error codes:
        - INVALID_KEY: No user with this key
        - KEY_EXPIRED: Key older than the expiry window
        - REMOTE_STORE_UNAVAILABLE: Lookup failed
    """
    return _login_response(await ctx.sessions.login_with_key(body.key), response)

@router.post("/admin-login")
async def admin_login(body: AdminLoginIn, response: Response, ctx: AppContext = Depends(get_ctx)):
    """
    Log in as administrator with username + access key. Admin keys never expire.

    Error codes:
        - INVALID_ADMIN: No admin with this username and key
        - REMOTE_STORE_UNAVAILABLE: Lookup failed
    """
    return _login_response(await ctx.sessions.login_as_admin(body.username, body.key), response)

@router.post("/restore")
async def restore(token: str | None = Depends(presented_token), ctx: AppContext = Depends(get_ctx)):
    """
    Restore the session of the persisted access key.
    Always succeeds; data.user is null unless the request carries the token
    of the (restored) active session.
    """
    if ctx.sessions.current is None:
        await ctx.sessions.restore_session()
    user = ctx.sessions.authenticate(token)
    return {"success": True, "data": {"user": _session_user(user) if user else None}}

@router.get("/me")
async def me(user: UserRecord = Depends(get_current_user)):
    return {"success": True, "data": _session_user(user)}

@router.post("/logout")
async def logout(response: Response, token: str | None = Depends(presented_token),
                 ctx: AppContext = Depends(get_ctx)):
    """
    End the session and forget the persisted key. Always succeeds.

    Only the holder of the session token ends the session; any other caller
    just has its cookie cleared.
    """
    if ctx.sessions.authenticate(token) is not None:
        ctx.sessions.logout()
    response.delete_cookie(SESSION_COOKIE)
    return {"success": True}
