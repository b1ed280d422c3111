"""
Lightweight WebSocket integration tests for /ws/config.
"""
import asyncio

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from centralgpt.context import AppContext
from centralgpt.main import app


def _logged_in_ctx(memory_store, fake_gateway, slot):
    ctx = AppContext(store=memory_store, gateway=fake_gateway, slot=slot)

    async def _login():
        await memory_store.insert_user("alice", "VALID-KEY-123")
        return await ctx.sessions.login_with_key("VALID-KEY-123")

    result = asyncio.run(_login())
    return ctx, result.session.token


class TestConfigWebSocket:
    def test_ready_message(self, memory_store, fake_gateway, slot):
        ctx, token = _logged_in_ctx(memory_store, fake_gateway, slot)
        app.state.ctx = ctx
        client = TestClient(app)
        with client.websocket_connect(f"/ws/config?token={token}") as websocket:
            assert websocket.receive_json() == {"type": "ready"}

    def test_cookie_token_accepted(self, memory_store, fake_gateway, slot):
        ctx, token = _logged_in_ctx(memory_store, fake_gateway, slot)
        app.state.ctx = ctx
        client = TestClient(app)
        with client.websocket_connect("/ws/config", headers={"cookie": f"accessToken={token}"}) as websocket:
            assert websocket.receive_json() == {"type": "ready"}

    def test_rejected_without_valid_token(self, memory_store, fake_gateway, slot):
        ctx, _ = _logged_in_ctx(memory_store, fake_gateway, slot)
        app.state.ctx = ctx
        client = TestClient(app)
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect("/ws/config?token=forged") as websocket:
                websocket.receive_json()
        assert exc.value.code == 1008
