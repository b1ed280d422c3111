"""
Tortoise ORM Store

Adapts the users / app_config / chat_logs tables to the RemoteStore interface
and turns row-level writes on users and app_config into change notifications.
"""
import functools
import logging
import uuid
import weakref
from typing import Any, Dict, Optional

from tortoise.exceptions import BaseORMException, IntegrityError
from tortoise.signals import Signals
from tortoise.transactions import in_transaction

from .base import (
    AppConfig,
    CHAT_LOGS_TABLE,
    CONFIG_TABLE,
    ChatMessage,
    RemoteStore,
    USERS_TABLE,
    UserRecord,
)
from ..config import settings
from ..core.errors import AccessKeyTaken, RemoteStoreUnavailable
from ..core.pubsub import ChangeFeed
from ..core.security import as_utc, hash_access_key, key_display_parts
from ..models import ChatLog, GlobalConfig, GLOBAL_CONFIG_ID, User

logger = logging.getLogger("uvicorn.error")

CONFIG_FIELDS = ("ai_name", "ai_persona", "dev_name", "api_keys", "avatar_url")
USER_FIELDS = ("username", "role", "created_at", "profile", "config")


# Every live feed attached to a TortoiseStore; model listeners fan out to all of them
_feeds: "weakref.WeakSet[ChangeFeed]" = weakref.WeakSet()


def _publish(table: str, action: str) -> None:
    for feed in list(_feeds):
        feed.publish(table, action)


async def _on_user_saved(sender, instance, created, using_db, update_fields):
    _publish(USERS_TABLE, "insert" if created else "update")


async def _on_user_deleted(sender, instance, using_db):
    _publish(USERS_TABLE, "delete")


async def _on_config_saved(sender, instance, created, using_db, update_fields):
    _publish(CONFIG_TABLE, "insert" if created else "update")


async def _on_config_deleted(sender, instance, using_db):
    _publish(CONFIG_TABLE, "delete")


def _install_listeners() -> None:
    # register_listener ignores a listener that is already registered
    User.register_listener(Signals.post_save, _on_user_saved)
    User.register_listener(Signals.post_delete, _on_user_deleted)
    GlobalConfig.register_listener(Signals.post_save, _on_config_saved)
    GlobalConfig.register_listener(Signals.post_delete, _on_config_deleted)


def _remote(fn):
    """Translate ORM / driver failures into RemoteStoreUnavailable."""

    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except BaseORMException as e:
            raise RemoteStoreUnavailable(f"{fn.__name__}: {e}") from e
        except OSError as e:
            raise RemoteStoreUnavailable(f"{fn.__name__}: {e}") from e

    return wrapper


def _parse_uuid(raw: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        return None


def _user_to_record(u: User) -> UserRecord:
    return UserRecord(
        id=str(u.id),
        username=u.username,
        role=u.role,
        created_at=as_utc(u.created_at),
        profile=u.profile,
        config=u.config,
        key_prefix=u.key_prefix,
        key_last4=u.key_last4,
    )


def _config_to_record(c: GlobalConfig) -> AppConfig:
    return AppConfig(
        ai_name=c.ai_name,
        ai_persona=c.ai_persona or "",
        dev_name=c.dev_name,
        api_keys=list(c.api_keys or []),
        avatar_url=c.avatar_url or "",
    )


def _log_to_record(log: ChatLog) -> ChatMessage:
    return ChatMessage(
        id=log.id,
        user_id=str(log.user_id),
        role=log.role,
        content=log.content,
        created_at=as_utc(log.created_at),
    )


class TortoiseStore(RemoteStore):
    """RemoteStore backed by the Tortoise ORM models"""

    def __init__(self, feed: Optional[ChangeFeed] = None):
        self.feed = feed or ChangeFeed()
        _feeds.add(self.feed)
        _install_listeners()

    # -------- users --------
    @_remote
    async def find_user(self, access_key, role=None, username=None):
        if not access_key:
            return None
        filters: Dict[str, Any] = {"access_key_hash": hash_access_key(access_key)}
        if role is not None:
            filters["role"] = role
        if username is not None:
            filters["username"] = username
        u = await User.get_or_none(**filters)
        return _user_to_record(u) if u else None

    @_remote
    async def get_user(self, user_id):
        uid = _parse_uuid(user_id)
        if uid is None:
            return None
        u = await User.get_or_none(id=uid)
        return _user_to_record(u) if u else None

    @_remote
    async def list_users(self):
        rows = await User.all().order_by("created_at")
        return [_user_to_record(u) for u in rows]

    @_remote
    async def insert_user(self, username, access_key, role="user", created_at=None,
                          profile=None, config=None):
        prefix, last4 = key_display_parts(access_key)
        values: Dict[str, Any] = {
            "username": username,
            "access_key_hash": hash_access_key(access_key),
            "key_prefix": prefix,
            "key_last4": last4,
            "role": role,
            "profile": profile,
            "config": config,
        }
        if created_at is not None:
            values["created_at"] = created_at
        u = User(**values)
        try:
            await u.save()
        except IntegrityError as e:
            raise AccessKeyTaken("Access key already in use") from e
        return _user_to_record(u)

    @_remote
    async def update_user(self, user_id, fields):
        uid = _parse_uuid(user_id)
        if uid is None:
            return None
        u = await User.get_or_none(id=uid)
        if not u:
            return None
        for name in USER_FIELDS:
            if name in fields:
                setattr(u, name, fields[name])
        if fields.get("access_key"):
            u.access_key_hash = hash_access_key(fields["access_key"])
            u.key_prefix, u.key_last4 = key_display_parts(fields["access_key"])
        try:
            await u.save()
        except IntegrityError as e:
            raise AccessKeyTaken("Access key already in use") from e
        return _user_to_record(u)

    @_remote
    async def delete_user(self, user_id):
        uid = _parse_uuid(user_id)
        if uid is None:
            return False
        u = await User.get_or_none(id=uid)
        if not u:
            return False
        await u.delete()
        return True

    # -------- app_config --------
    @_remote
    async def get_global_config(self):
        c = await GlobalConfig.get_or_none(id=GLOBAL_CONFIG_ID)
        return _config_to_record(c) if c else None

    @_remote
    async def update_global_config(self, fields):
        c = await GlobalConfig.get_or_none(id=GLOBAL_CONFIG_ID)
        if c is None:
            c = GlobalConfig(
                id=GLOBAL_CONFIG_ID,
                ai_name=settings.default_ai_name,
                dev_name=settings.default_dev_name,
                api_keys=[],
            )
        for name in CONFIG_FIELDS:
            if name in fields:
                setattr(c, name, list(fields[name]) if name == "api_keys" else fields[name])
        await c.save()

    # -------- chat_logs --------
    @_remote
    async def insert_chat_log(self, user_id, role, content):
        uid = _parse_uuid(user_id)
        if uid is None:
            raise RemoteStoreUnavailable(f"insert_chat_log: invalid user id {user_id!r}")
        log = await ChatLog.create(user_id=uid, role=role, content=content)
        return _log_to_record(log)

    @_remote
    async def list_chat_logs(self, user_id):
        uid = _parse_uuid(user_id)
        if uid is None:
            return []
        rows = await ChatLog.filter(user_id=uid).order_by("created_at", "id")
        return [_log_to_record(r) for r in rows]

    @_remote
    async def delete_chat_logs(self, user_id):
        uid = _parse_uuid(user_id)
        if uid is None:
            return 0
        async with in_transaction():
            deleted = await ChatLog.filter(user_id=uid).delete()
        logger.info("[store] %s: deleted %s rows for user %s", CHAT_LOGS_TABLE, deleted, user_id)
        return deleted

    # -------- change notifications --------
    def subscribe(self, *tables):
        return self.feed.subscribe(*tables)
