"""
Remote store module: the narrow query interface over users / app_config / chat_logs.
"""
from .base import (
    AppConfig,
    ChatMessage,
    RemoteStore,
    UserRecord,
    CHAT_LOGS_TABLE,
    CONFIG_TABLE,
    USERS_TABLE,
    ROLE_ADMIN,
    ROLE_USER,
)
from .tortoise_store import TortoiseStore

__all__ = [
    "AppConfig",
    "ChatMessage",
    "RemoteStore",
    "UserRecord",
    "CHAT_LOGS_TABLE",
    "CONFIG_TABLE",
    "USERS_TABLE",
    "ROLE_ADMIN",
    "ROLE_USER",
    "TortoiseStore",
]
