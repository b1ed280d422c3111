# centralgpt/context.py
"""
Application context.

Owns one instance of every core component and wires them together.
HTTP handlers receive it through a dependency instead of importing
module-level singletons.
"""
import datetime as dt
import logging
from typing import Callable, Optional

from .config import settings
from .core.key_slot import LocalKeySlot
from .services.chat import ChatService
from .services.chat_history import ChatHistoryLog
from .services.completion_base import CompletionGateway
from .services.completion_gemini import GeminiGateway
from .services.config_sync import ConfigSyncChannel, Mirror
from .services.session_store import SessionStore
from .store.base import RemoteStore
from .store.tortoise_store import TortoiseStore

logger = logging.getLogger("uvicorn.error")


class AppContext:
    def __init__(
        self,
        store: Optional[RemoteStore] = None,
        gateway: Optional[CompletionGateway] = None,
        slot: Optional[LocalKeySlot] = None,
        clock: Optional[Callable[[], dt.datetime]] = None,
    ):
        self.store = store or TortoiseStore()
        self.gateway = gateway or GeminiGateway()
        self.slot = slot or LocalKeySlot(settings.session_file)
        self.sessions = SessionStore(self.store, self.slot, clock=clock)
        self.sync = ConfigSyncChannel(self.store)
        self.history = ChatHistoryLog(self.store, self.sessions)
        self.chat = ChatService(self.sessions, self.sync, self.history, self.gateway)
        self._remove_listener = None

    def _on_mirror(self, mirror: Mirror) -> None:
        self.sessions.sync_user(mirror.users, snapshot_started=mirror.started_at)

    async def start(self) -> None:
        """Mirror the remote configuration, then bring back a persisted session"""
        self._remove_listener = self.sync.add_listener(self._on_mirror)
        await self.sync.start()
        session = await self.sessions.restore_session()
        if session:
            logger.info("[context] restored session of %s", session.user.username)

    async def stop(self) -> None:
        await self.sync.stop()
        if self._remove_listener:
            self._remove_listener()
            self._remove_listener = None
        await self.history.drain()
