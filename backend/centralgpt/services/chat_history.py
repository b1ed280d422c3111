"""
Chat History Log

Append-only transcript per user. Appends are fire-and-forget: the caller
does not wait for the write, but a failed write is logged and kept in
last_error instead of disappearing.
"""
import asyncio
import logging
from typing import List, Optional, Set

from .session_store import SessionStore
from ..store.base import ChatMessage, RemoteStore

logger = logging.getLogger("uvicorn.error")


class ChatHistoryLog:
    def __init__(self, store: RemoteStore, sessions: SessionStore):
        self.store = store
        self.sessions = sessions
        self._pending: Set[asyncio.Task] = set()
        self.last_error: Optional[BaseException] = None
        self.failed_writes = 0

    def append(self, user_id: str, role: str, text: str) -> Optional[asyncio.Task]:
        """Schedule the write and return immediately; no-op without an active session"""
        if not self.sessions.is_active:
            return None
        task = asyncio.create_task(self.store.insert_chat_log(user_id, role, text))
        self._pending.add(task)
        task.add_done_callback(self._on_written)
        return task

    def _on_written(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.last_error = exc
            self.failed_writes += 1
            logger.error("[history] append failed: %r", exc)

    async def drain(self) -> None:
        """Wait for every scheduled append to finish"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def fetch(self, user_id: str) -> List[ChatMessage]:
        if not self.sessions.is_active:
            return []
        # Appends of this process land before the read
        await self.drain()
        return await self.store.list_chat_logs(user_id)

    async def clear(self, user_id: str) -> int:
        await self.drain()
        deleted = await self.store.delete_chat_logs(user_id)
        logger.info("[history] cleared %s messages of %s", deleted, user_id)
        return deleted
