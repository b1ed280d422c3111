"""
Chat Service

One chat round trip for the active session:
load the transcript, send a turn through the completion gateway,
persist both sides, and reset the transcript on request.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import httpx

from .chat_history import ChatHistoryLog
from .completion_base import Attachment, CompletionGateway, Turn
from .config_sync import ConfigSyncChannel
from .persona import EffectiveConfig
from .session_store import SessionStore
from ..core.errors import CentralGPTError, EmptyMessage, SessionRequired

logger = logging.getLogger("uvicorn.error")


@dataclass
class ChatTurn:
    role: str  # "user" or "model"
    text: str
    is_error: bool = False


class ChatService:
    def __init__(
        self,
        sessions: SessionStore,
        sync: ConfigSyncChannel,
        history: ChatHistoryLog,
        gateway: CompletionGateway,
    ):
        self.sessions = sessions
        self.sync = sync
        self.history = history
        self.gateway = gateway

    def _require_user(self):
        user = self.sessions.user
        if user is None:
            raise SessionRequired("Not logged in")
        return user

    def effective_config(self) -> EffectiveConfig:
        return self.sessions.effective_config(self.sync.mirror.global_config)

    def greeting(self, cleared: bool = False) -> ChatTurn:
        config = self.effective_config()
        user = self.sessions.user
        username = user.username if user else "Guest"
        opener = "Chat history cleared." if cleared else "Connection established."
        return ChatTurn(role="model", text=f"{opener} {config.ai_name} System online. Hello, {username}.")

    async def load_history(self) -> List[ChatTurn]:
        user = self._require_user()
        logs = await self.history.fetch(user.id)
        if not logs:
            return [self.greeting()]
        return [ChatTurn(role=log.role, text=log.content) for log in logs]

    async def send(self, text: str, attachments: Sequence[Attachment] = ()) -> ChatTurn:
        """
        Send one user turn and return the model turn.
        Gateway failures come back as an error turn (not persisted) instead of raising.
        """
        user = self._require_user()
        attachments = list(attachments)
        if not text and not attachments:
            raise EmptyMessage("Message cannot be empty")

        prior = await self.history.fetch(user.id)
        turns = [Turn(role=m.role, text=m.content) for m in prior if m.content]
        self.history.append(user.id, "user", text)

        config = self.effective_config()
        try:
            reply = await self.gateway.complete(
                text,
                attachments,
                turns,
                config.api_keys,
                self.sessions.system_instruction(config),
            )
        except (CentralGPTError, httpx.HTTPError) as e:
            logger.warning("[chat] completion failed for %s: %r", user.username, e)
            message = e.message if isinstance(e, CentralGPTError) else str(e)
            return ChatTurn(role="model", text=f"Error: {message}", is_error=True)

        self.history.append(user.id, "model", reply)
        return ChatTurn(role="model", text=reply)

    async def reset(self) -> ChatTurn:
        user = self._require_user()
        await self.history.clear(user.id)
        return self.greeting(cleared=True)

    async def generate_video(self, prompt: str, cancel: Optional[asyncio.Event] = None) -> str:
        self._require_user()
        config = self.effective_config()
        return await self.gateway.complete_as_video(prompt, config.api_keys, cancel=cancel)
