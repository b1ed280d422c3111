"""
Services Module

- Completion: credential-failover gateway for Google Gemini
- Session: access-key login, expiry policy, persisted active key
- Config sync: live mirror of app_config and users
- Chat: transcript log and the send / reset flow
"""
from .credential_pool import CredentialPool
from .completion_base import Attachment, CompletionGateway, Turn
from .completion_gemini import GeminiGateway
from .persona import EffectiveConfig, merge_config, build_system_instruction
from .session_store import LoginResult, Session, SessionStore
from .config_sync import ConfigSyncChannel, Mirror
from .chat_history import ChatHistoryLog
from .chat import ChatService, ChatTurn

__all__ = [
    "CredentialPool",
    "Attachment",
    "CompletionGateway",
    "Turn",
    "GeminiGateway",
    "EffectiveConfig",
    "merge_config",
    "build_system_instruction",
    "LoginResult",
    "Session",
    "SessionStore",
    "ConfigSyncChannel",
    "Mirror",
    "ChatHistoryLog",
    "ChatService",
    "ChatTurn",
]
