# centralgpt/api/v1/routers/ws_config.py
from fastapi import APIRouter, WebSocket, status
from starlette.websockets import WebSocketDisconnect
import json
import logging
from centralgpt.api.v1.deps import SESSION_COOKIE
from centralgpt.store.base import CONFIG_TABLE, USERS_TABLE

router = APIRouter()
logger = logging.getLogger("uvicorn.error")

@router.websocket("/ws/config")
async def ws_config(ws: WebSocket):
    """
    WebSocket endpoint forwarding change notifications of the users and
    app_config tables, so the browser can re-read /admin/config or /auth/me.

    The session token comes from the accessToken cookie or a ``token``
    query parameter; without a valid one the socket is closed with 1008.

    Message flow:
    1. Client connects
    2. Server sends: {"type": "ready"}
    3. Server sends: {"type": "changed", "table": "...", "action": "..."} per change

    The store subscription is released when the connection closes.
    """
    ctx = ws.app.state.ctx
    token = ws.query_params.get("token") or ws.cookies.get(SESSION_COOKIE)
    if ctx.sessions.authenticate(token) is None:
        await ws.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await ws.accept()
    try:
        async with ctx.store.subscribe(USERS_TABLE, CONFIG_TABLE) as sub:
            await ws.send_text(json.dumps({"type": "ready"}))
            async for event in sub:
                await ws.send_text(json.dumps({"type": "changed", "table": event.table, "action": event.action}))
    except WebSocketDisconnect:
        logger.info("[ws_config] disconnected")
    except Exception as e:
        logger.warning("[ws_config] error: %r", e)
