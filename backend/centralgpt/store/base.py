"""
Remote Store Abstract Interface

The rest of the core only talks to the remote table-backed store through
this narrow interface: point lookups, a full-table read, insert,
update-by-id, delete-by-id / delete-by-user and a change subscription for
the users and app_config tables.
"""
import datetime as dt
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncContextManager, Dict, List, Optional

from ..core.pubsub import Subscription

USERS_TABLE = "users"
CONFIG_TABLE = "app_config"
CHAT_LOGS_TABLE = "chat_logs"

ROLE_USER = "user"
ROLE_ADMIN = "admin"


@dataclass
class UserRecord:
    """A row of the users table, without the key hash"""
    id: str
    username: str
    role: str
    created_at: dt.datetime
    profile: Optional[Dict[str, Any]] = None
    config: Optional[Dict[str, Any]] = None  # Per-user override, same keys as AppConfig
    key_prefix: Optional[str] = None
    key_last4: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


@dataclass
class AppConfig:
    """The app_config singleton"""
    ai_name: str
    ai_persona: str
    dev_name: str
    api_keys: List[str] = field(default_factory=list)  # Ordered; order is failover priority
    avatar_url: str = ""


@dataclass
class ChatMessage:
    id: int
    user_id: str
    role: str  # "user" or "model"
    content: str
    created_at: dt.datetime


class RemoteStore(ABC):
    """Remote Store Abstract Base Class"""

    # -------- users --------
    @abstractmethod
    async def find_user(
        self,
        access_key: str,
        role: Optional[str] = None,
        username: Optional[str] = None,
    ) -> Optional[UserRecord]:
        """Look up exactly one user by access key, optionally narrowed by role and username"""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        pass

    @abstractmethod
    async def list_users(self) -> List[UserRecord]:
        pass

    @abstractmethod
    async def insert_user(
        self,
        username: str,
        access_key: str,
        role: str = ROLE_USER,
        created_at: Optional[dt.datetime] = None,
        profile: Optional[Dict[str, Any]] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> UserRecord:
        pass

    @abstractmethod
    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[UserRecord]:
        pass

    @abstractmethod
    async def delete_user(self, user_id: str) -> bool:
        pass

    # -------- app_config --------
    @abstractmethod
    async def get_global_config(self) -> Optional[AppConfig]:
        """The singleton row, or None when it does not exist yet"""

    @abstractmethod
    async def update_global_config(self, fields: Dict[str, Any]) -> None:
        pass

    # -------- chat_logs --------
    @abstractmethod
    async def insert_chat_log(self, user_id: str, role: str, content: str) -> ChatMessage:
        pass

    @abstractmethod
    async def list_chat_logs(self, user_id: str) -> List[ChatMessage]:
        """All messages of a user, oldest first"""

    @abstractmethod
    async def delete_chat_logs(self, user_id: str) -> int:
        """Delete every message of a user in one operation; returns the count"""

    # -------- change notifications --------
    @abstractmethod
    def subscribe(self, *tables: str) -> AsyncContextManager[Subscription]:
        pass
