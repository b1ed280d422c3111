# centralgpt/api/v1/routers/admin.py
"""
Admin endpoints. Every mutation writes to the remote store only; the
local mirror (and so GET /admin/config, GET /admin/users) catches up when
the change notification arrives.
"""
from fastapi import APIRouter, Depends, HTTPException, status

from centralgpt.api.v1.deps import get_ctx, require_admin
from centralgpt.context import AppContext
from centralgpt.core.errors import CentralGPTError
from centralgpt.schemas.admin import (
    AdminUserCreateIn,
    AdminUserUpdateIn,
    ApiKeyIn,
    GlobalConfigUpdateIn,
)
from centralgpt.store.base import AppConfig, UserRecord

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _config_to_dict(c: AppConfig) -> dict:
    return {
        "aiName": c.ai_name,
        "aiPersona": c.ai_persona,
        "devName": c.dev_name,
        "apiKeys": list(c.api_keys),
        "avatarUrl": c.avatar_url,
    }


def _user_to_dict(u: UserRecord) -> dict:
    hint = None
    if u.key_last4:
        hint = f"{u.key_prefix}-…{u.key_last4}" if u.key_prefix else f"…{u.key_last4}"
    return {
        "id": u.id,
        "username": u.username,
        "role": u.role,
        "createdAt": u.created_at.isoformat(),
        "keyHint": hint,
        "profile": u.profile,
        "config": u.config,
    }


def _error(e: CentralGPTError) -> dict:
    return {"success": False, "error": e.to_dict()}


# ==============================================================================
# I. Global configuration
# ==============================================================================
@router.get("/config")
async def get_config(ctx: AppContext = Depends(get_ctx)):
    """
    Current app_config as seen by the local mirror.
    data.fresh is false while the built-in defaults are in use.
    """
    mirror = ctx.sync.mirror
    return {"success": True, "data": {**_config_to_dict(mirror.global_config), "fresh": mirror.fresh}}


@router.patch("/config")
async def update_config(body: GlobalConfigUpdateIn, ctx: AppContext = Depends(get_ctx)):
    try:
        await ctx.sync.update_global(
            ai_name=body.aiName,
            ai_persona=body.aiPersona,
            dev_name=body.devName,
            avatar_url=body.avatarUrl,
            api_keys=body.apiKeys,
        )
    except CentralGPTError as e:
        return _error(e)
    return {"success": True}


@router.post("/config/api-keys")
async def add_api_key(body: ApiKeyIn, ctx: AppContext = Depends(get_ctx)):
    try:
        await ctx.sync.add_api_key(body.key.strip())
    except CentralGPTError as e:
        return _error(e)
    return {"success": True}


@router.delete("/config/api-keys")
async def remove_api_key(body: ApiKeyIn, ctx: AppContext = Depends(get_ctx)):
    try:
        await ctx.sync.remove_api_key(body.key.strip())
    except CentralGPTError as e:
        return _error(e)
    return {"success": True}


# ==============================================================================
# II. User management
# ==============================================================================
@router.get("/users")
async def list_users(ctx: AppContext = Depends(get_ctx)):
    users = ctx.sync.mirror.users
    return {"success": True, "data": {"items": [_user_to_dict(u) for u in users], "total": len(users)}}


@router.post("/users")
async def create_user(body: AdminUserCreateIn, ctx: AppContext = Depends(get_ctx)):
    """
    Create a user. The plain access key is part of this response only;
    the store keeps its hash.

    Error codes:
        - KEY_EXISTS: Another user already has this key
        - REMOTE_STORE_UNAVAILABLE: Write failed
    """
    try:
        user, plain_key = await ctx.sync.add_user(
            username=body.username,
            access_key=body.accessKey,
            role=body.role,
            created_at=body.createdAt,
            profile=body.profile,
            config=body.config,
        )
    except CentralGPTError as e:
        return _error(e)
    return {"success": True, "data": {"user": _user_to_dict(user), "accessKey": plain_key}}


@router.patch("/users/{user_id}")
async def update_user(user_id: str, body: AdminUserUpdateIn, ctx: AppContext = Depends(get_ctx)):
    fields = body.model_dump(exclude_unset=True)
    if "accessKey" in fields:
        fields["access_key"] = fields.pop("accessKey")
    try:
        user = await ctx.sync.update_user(user_id, **fields)
    except CentralGPTError as e:
        return _error(e)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                            detail={"code": "USER_NOT_FOUND", "message": "User not found"})
    return {"success": True, "data": {"user": _user_to_dict(user)}}


@router.delete("/users/{user_id}")
async def delete_user(user_id: str, ctx: AppContext = Depends(get_ctx)):
    try:
        deleted = await ctx.sync.delete_user(user_id)
    except CentralGPTError as e:
        return _error(e)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                            detail={"code": "USER_NOT_FOUND", "message": "User not found"})
    return {"success": True}
