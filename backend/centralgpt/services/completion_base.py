"""
Completion Service Abstract Interface

Provides a unified interface for hosted generative-AI completion providers.
Callers pass an ordered credential list; implementations own the failover policy.
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from .credential_pool import CredentialPool


@dataclass(frozen=True)
class Attachment:
    """Opaque binary payload sent alongside the text of the current turn"""
    data: bytes
    mime_type: str


@dataclass(frozen=True)
class Turn:
    """One prior conversation turn"""
    role: str  # "user" or "model"
    text: str


class CompletionGateway(ABC):
    """Completion Gateway Abstract Base Class"""

    @abstractmethod
    async def complete(
        self,
        message: str,
        attachments: Sequence[Attachment],
        history: Sequence[Turn],
        credentials: CredentialPool | Sequence[str],
        system_instruction: str,
    ) -> str:
        """
        Generate the model's reply to the current turn

        Parameters:
        - message: Text of the current turn (may be empty if attachments exist)
        - attachments: Binary payloads of the current turn
        - history: Prior turns, oldest first
        - credentials: API keys in failover order
        - system_instruction: Persona string

        Returns:
        - Non-empty response text
        """
        pass

    @abstractmethod
    async def complete_as_video(
        self,
        prompt: str,
        credentials: CredentialPool | Sequence[str],
        cancel: Optional[asyncio.Event] = None,
    ) -> str:
        """Run a long-running video job and return a locator for the result"""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Service name (e.g., "Google Gemini API")"""
        pass
