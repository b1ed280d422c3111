import asyncio
import dataclasses
import datetime as dt
import itertools
import os
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from tortoise import Tortoise

from centralgpt.core import db as db_module
from centralgpt.core.errors import RemoteStoreUnavailable
from centralgpt.core.key_slot import LocalKeySlot
from centralgpt.core.pubsub import ChangeFeed
from centralgpt.core.security import hash_access_key, key_display_parts, utc_now
from centralgpt.services.completion_base import CompletionGateway
from centralgpt.store.base import (
    AppConfig,
    CONFIG_TABLE,
    ChatMessage,
    RemoteStore,
    ROLE_USER,
    USERS_TABLE,
    UserRecord,
)


TEST_DB_URL = "sqlite://:memory:?cache=shared"
os.environ["DATABASE_URL"] = TEST_DB_URL
db_module.DB_URL = TEST_DB_URL
db_module.TORTOISE_ORM["connections"]["default"] = TEST_DB_URL


async def _init_test_db() -> None:
    """
    Initialize a clean in-memory SQLite database for every test.
    Ensures tables are recreated from scratch.
    """
    if Tortoise._inited:
        await Tortoise.close_connections()
    await Tortoise.init(config=db_module.TORTOISE_ORM)
    await Tortoise.generate_schemas()


# ==============================================================================
# Test doubles
# ==============================================================================
class MemoryStore(RemoteStore):
    """
    Dict-backed RemoteStore for unit tests.
    Set ``fail`` to make every call raise RemoteStoreUnavailable.
    """

    def __init__(self):
        self.feed = ChangeFeed()
        self.users = {}  # id -> (key_hash, UserRecord)
        self.config = None
        self.logs = []
        self.fail = False
        self._ids = itertools.count(1)

    def _check(self):
        if self.fail:
            raise RemoteStoreUnavailable("store offline")

    async def find_user(self, access_key, role=None, username=None):
        self._check()
        digest = hash_access_key(access_key)
        for key_hash, u in self.users.values():
            if key_hash != digest:
                continue
            if role is not None and u.role != role:
                continue
            if username is not None and u.username != username:
                continue
            return u
        return None

    async def get_user(self, user_id):
        self._check()
        entry = self.users.get(user_id)
        return entry[1] if entry else None

    async def list_users(self):
        self._check()
        return [u for _, u in self.users.values()]

    async def insert_user(self, username, access_key, role=ROLE_USER, created_at=None,
                          profile=None, config=None):
        self._check()
        prefix, last4 = key_display_parts(access_key)
        u = UserRecord(
            id=str(uuid.uuid4()),
            username=username,
            role=role,
            created_at=created_at or utc_now(),
            profile=profile,
            config=config,
            key_prefix=prefix,
            key_last4=last4,
        )
        self.users[u.id] = (hash_access_key(access_key), u)
        self.feed.publish(USERS_TABLE, "insert")
        return u

    async def update_user(self, user_id, fields):
        self._check()
        entry = self.users.get(user_id)
        if entry is None:
            return None
        key_hash, u = entry
        for name in ("username", "role", "created_at", "profile", "config"):
            if name in fields:
                setattr(u, name, fields[name])
        if fields.get("access_key"):
            key_hash = hash_access_key(fields["access_key"])
        self.users[user_id] = (key_hash, u)
        self.feed.publish(USERS_TABLE, "update")
        return u

    async def delete_user(self, user_id):
        self._check()
        if self.users.pop(user_id, None) is None:
            return False
        self.logs = [m for m in self.logs if m.user_id != user_id]
        self.feed.publish(USERS_TABLE, "delete")
        return True

    async def get_global_config(self):
        self._check()
        if self.config is None:
            return None
        # Callers get a snapshot, like a row read from a real store
        return dataclasses.replace(self.config, api_keys=list(self.config.api_keys))

    async def update_global_config(self, fields):
        self._check()
        created = self.config is None
        if created:
            self.config = AppConfig(ai_name="CentralGPT", ai_persona="", dev_name="XdpzQ")
        for name, value in fields.items():
            setattr(self.config, name, list(value) if name == "api_keys" else value)
        self.feed.publish(CONFIG_TABLE, "insert" if created else "update")

    async def insert_chat_log(self, user_id, role, content):
        self._check()
        msg = ChatMessage(id=next(self._ids), user_id=user_id, role=role,
                          content=content, created_at=utc_now())
        self.logs.append(msg)
        return msg

    async def list_chat_logs(self, user_id):
        self._check()
        return [m for m in self.logs if m.user_id == user_id]

    async def delete_chat_logs(self, user_id):
        self._check()
        before = len(self.logs)
        self.logs = [m for m in self.logs if m.user_id != user_id]
        return before - len(self.logs)

    def subscribe(self, *tables):
        return self.feed.subscribe(*tables)


class GatedStore(MemoryStore):
    """
    MemoryStore whose next list_users call can be held open.
    ``hold()`` returns the event that releases it; ``entered`` is set once the
    held call has taken its snapshot.
    """

    def __init__(self):
        super().__init__()
        self.entered = asyncio.Event()
        self.list_calls = 0
        self._gate = None

    def hold(self):
        self._gate = asyncio.Event()
        self.entered = asyncio.Event()
        return self._gate

    async def list_users(self):
        users = await super().list_users()
        self.list_calls += 1
        gate, self._gate = self._gate, None
        if gate is not None:
            self.entered.set()
            await gate.wait()
        return users


class FakeGateway(CompletionGateway):
    """
    Scripted completion gateway.
    ``replies`` is consumed in order; an Exception entry is raised instead of returned.
    """

    def __init__(self, replies=None, video_url="https://video.example/v.mp4?alt=media&key=k"):
        self.replies = list(replies or [])
        self.video_url = video_url
        self.calls = []

    @property
    def name(self) -> str:
        return "fake"

    async def complete(self, message, attachments, history, credentials, system_instruction):
        self.calls.append({
            "message": message,
            "attachments": list(attachments),
            "history": list(history),
            "credentials": list(credentials),
            "system_instruction": system_instruction,
        })
        reply = self.replies.pop(0) if self.replies else "ok"
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def complete_as_video(self, prompt, credentials, cancel=None):
        self.calls.append({"prompt": prompt, "credentials": list(credentials)})
        return self.video_url


class FixedClock:
    """Injectable clock; tests move it with ``advance``"""

    def __init__(self, now=None):
        self.now = now or dt.datetime(2025, 1, 1, tzinfo=dt.timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + dt.timedelta(**kwargs)


# ==============================================================================
# Fixtures
# ==============================================================================
@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def gated_store():
    return GatedStore()


@pytest.fixture
def slot(tmp_path):
    return LocalKeySlot(tmp_path / "session.json")


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def clock():
    return FixedClock()


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory database for tests that talk to the ORM store."""
    await _init_test_db()
    yield
    await Tortoise.close_connections()


@pytest_asyncio.fixture
async def ctx(db, slot, fake_gateway):
    """
    Application context over the ORM store, a temp session file and a fake gateway.
    The app_config row is seeded with one API key.
    """
    from centralgpt.context import AppContext
    from centralgpt.store.tortoise_store import TortoiseStore

    store = TortoiseStore()
    await store.update_global_config({"api_keys": ["key-A"]})
    context = AppContext(store=store, gateway=fake_gateway, slot=slot)
    await context.start()
    yield context
    await context.stop()


@pytest_asyncio.fixture
async def client(ctx):
    """
    Provide an HTTPX AsyncClient bound to the FastAPI app with a fresh DB.
    Startup hooks are skipped; the test context is installed directly.
    """
    from centralgpt.main import app

    app.state.ctx = ctx
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client


@pytest_asyncio.fixture
async def create_user(ctx):
    """
    Factory fixture to create users directly through the store.
    Returns (UserRecord, plain access key).
    """

    async def _create_user(role: str = "user", access_key: str = None, created_at=None, config=None):
        key = access_key or f"CGPT-{uuid.uuid4().hex[:12].upper()}"
        user = await ctx.store.insert_user(
            username=f"{role}_{uuid.uuid4().hex[:6]}",
            access_key=key,
            role=role,
            created_at=created_at,
            config=config,
        )
        return user, key

    return _create_user

