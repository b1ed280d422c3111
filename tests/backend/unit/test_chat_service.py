"""
Unit tests for services.chat module.
The completion gateway is a scripted fake; the store is in memory.
"""
import pytest
import pytest_asyncio

from centralgpt.core.errors import CredentialsExhausted, EmptyMessage, ProviderError, SessionRequired
from centralgpt.services.chat import ChatService
from centralgpt.services.chat_history import ChatHistoryLog
from centralgpt.services.completion_base import Attachment
from centralgpt.services.config_sync import ConfigSyncChannel
from centralgpt.services.session_store import SessionStore


pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def service(memory_store, slot, fake_gateway):
    await memory_store.update_global_config({
        "ai_name": "CentralGPT",
        "ai_persona": "I am {{AI_NAME}}, made by {{DEV_NAME}}.",
        "dev_name": "XdpzQ",
        "api_keys": ["g1", "g2"],
    })
    sessions = SessionStore(memory_store, slot)
    sync = ConfigSyncChannel(memory_store)
    await sync.start()
    history = ChatHistoryLog(memory_store, sessions)
    yield ChatService(sessions, sync, history, fake_gateway)
    await sync.stop()


async def login(service, memory_store, username="alice", key="VALID-KEY-123", config=None):
    user = await memory_store.insert_user(username, key, config=config)
    result = await service.sessions.login_with_key(key)
    assert result.success
    return user


class TestSend:
    async def test_requires_session(self, service):
        with pytest.raises(SessionRequired):
            await service.send("hi")

    async def test_rejects_empty_message(self, service, memory_store, fake_gateway):
        await login(service, memory_store)
        with pytest.raises(EmptyMessage):
            await service.send("")
        assert fake_gateway.calls == []

    async def test_round_trip(self, service, memory_store, fake_gateway):
        user = await login(service, memory_store)
        fake_gateway.replies = ["Hello alice"]

        turn = await service.send("hi")

        assert turn.role == "model"
        assert turn.text == "Hello alice"
        assert not turn.is_error
        call = fake_gateway.calls[0]
        assert call["message"] == "hi"
        assert call["history"] == []
        assert call["credentials"] == ["g1", "g2"]
        assert call["system_instruction"] == "User: alice. I am CentralGPT, made by XdpzQ."

        await service.history.drain()
        logs = await memory_store.list_chat_logs(user.id)
        assert [(m.role, m.content) for m in logs] == [("user", "hi"), ("model", "Hello alice")]

    async def test_prior_turns_are_sent(self, service, memory_store, fake_gateway):
        await login(service, memory_store)
        fake_gateway.replies = ["first", "second"]

        await service.send("one")
        await service.send("two")

        history = fake_gateway.calls[1]["history"]
        assert [(t.role, t.text) for t in history] == [("user", "one"), ("model", "first")]

    async def test_attachment_only(self, service, memory_store, fake_gateway):
        await login(service, memory_store)
        att = Attachment(data=b"\x89PNG", mime_type="image/png")

        turn = await service.send("", [att])

        assert not turn.is_error
        assert fake_gateway.calls[0]["attachments"] == [att]

    async def test_user_override_keys(self, service, memory_store, fake_gateway):
        await login(service, memory_store, config={"apiKeys": ["mine"], "aiName": "Nova"})
        await service.send("hi")
        call = fake_gateway.calls[0]
        assert call["credentials"] == ["mine"]
        assert call["system_instruction"].startswith("User: alice. I am Nova")

    async def test_exhausted_becomes_error_turn(self, service, memory_store, fake_gateway):
        user = await login(service, memory_store)
        fake_gateway.replies = [CredentialsExhausted(attempts=2)]

        turn = await service.send("hi")

        assert turn.is_error
        assert turn.text == "Error: All API keys exhausted."
        await service.history.drain()
        # The user turn is kept, the error turn is not persisted
        logs = await memory_store.list_chat_logs(user.id)
        assert [m.role for m in logs] == ["user"]

    async def test_provider_error_becomes_error_turn(self, service, memory_store, fake_gateway):
        await login(service, memory_store)
        fake_gateway.replies = [ProviderError("HTTP 500: boom", status_code=500)]
        turn = await service.send("hi")
        assert turn.is_error
        assert turn.text == "Error: HTTP 500: boom"


class TestHistoryAndReset:
    async def test_empty_history_is_greeting(self, service, memory_store):
        await login(service, memory_store)
        turns = await service.load_history()
        assert len(turns) == 1
        assert turns[0].text == "Connection established. CentralGPT System online. Hello, alice."

    async def test_history_after_send(self, service, memory_store, fake_gateway):
        await login(service, memory_store)
        fake_gateway.replies = ["pong"]
        await service.send("ping")

        turns = await service.load_history()

        assert [(t.role, t.text) for t in turns] == [("user", "ping"), ("model", "pong")]

    async def test_reset(self, service, memory_store, fake_gateway):
        await login(service, memory_store)
        await service.send("ping")

        greeting = await service.reset()

        assert greeting.text == "Chat history cleared. CentralGPT System online. Hello, alice."
        assert memory_store.logs == []
        assert len(await service.load_history()) == 1

    async def test_load_history_requires_session(self, service):
        with pytest.raises(SessionRequired):
            await service.load_history()


class TestVideo:
    async def test_generate_video_uses_effective_keys(self, service, memory_store, fake_gateway):
        await login(service, memory_store)
        url = await service.generate_video("a cat surfing")
        assert url == fake_gateway.video_url
        assert fake_gateway.calls[0] == {"prompt": "a cat surfing", "credentials": ["g1", "g2"]}

    async def test_generate_video_requires_session(self, service):
        with pytest.raises(SessionRequired):
            await service.generate_video("x")
