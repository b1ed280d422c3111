"""
Configuration Sync Channel

Keeps a local mirror of the app_config row and the users table.

- start(): one full fetch of both collections, then a subscription to the
  store's change feed for users / app_config
- every change event triggers a full re-read; the mirror is replaced in a
  single assignment, so readers see either the old or the new snapshot
- refreshes never overlap: a refresh started after a write always reads it
- a failed fetch keeps the current mirror (the built-in defaults and an
  empty user list until the first successful fetch)
- stop() releases the subscription; no refresh happens after that

Admin mutations write to the store and nothing else: the mirror catches up
through the change feed.
"""
import asyncio
import datetime as dt
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .persona import default_app_config
from ..core.errors import RemoteStoreUnavailable
from ..core.security import generate_access_key, utc_now
from ..store.base import (
    AppConfig,
    CONFIG_TABLE,
    RemoteStore,
    ROLE_USER,
    USERS_TABLE,
    UserRecord,
)

logger = logging.getLogger("uvicorn.error")

MirrorListener = Callable[["Mirror"], Any]


@dataclass(frozen=True)
class Mirror:
    global_config: AppConfig
    users: List[UserRecord] = field(default_factory=list)
    fresh: bool = False  # False while the built-in defaults are in place
    refreshed_at: Optional[dt.datetime] = None
    # time.perf_counter() taken before the reads; writes before it are in the snapshot
    started_at: Optional[float] = None


class ConfigSyncChannel:
    def __init__(self, store: RemoteStore):
        self.store = store
        self.mirror = Mirror(global_config=default_app_config())
        self._task: Optional[asyncio.Task] = None
        self._listeners: List[MirrorListener] = []
        self._waiters: List[asyncio.Future] = []
        self._refresh_lock = asyncio.Lock()

    # -------- lifecycle --------
    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> Mirror:
        if self._task is not None:
            return self.mirror
        await self.refresh()
        subscribed = asyncio.Event()
        self._task = asyncio.create_task(self._run(subscribed))
        await subscribed.wait()
        return self.mirror

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        for fut in self._waiters:
            fut.cancel()
        self._waiters.clear()
        logger.info("[sync] stopped")

    async def __aenter__(self) -> "ConfigSyncChannel":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def _run(self, subscribed: asyncio.Event) -> None:
        try:
            async with self.store.subscribe(USERS_TABLE, CONFIG_TABLE) as sub:
                subscribed.set()
                logger.info("[sync] subscribed to %s, %s", USERS_TABLE, CONFIG_TABLE)
                async for event in sub:
                    logger.debug("[sync] %s %s -> refresh", event.table, event.action)
                    try:
                        await self.refresh()
                    except Exception:
                        logger.exception("[sync] refresh after %s %s failed", event.table, event.action)
        finally:
            subscribed.set()

    # -------- reading --------
    async def refresh(self) -> Mirror:
        """Re-read both collections and swap the mirror in one step"""
        async with self._refresh_lock:
            return await self._refresh()

    async def _refresh(self) -> Mirror:
        started_at = time.perf_counter()
        try:
            config = await self.store.get_global_config()
            users = await self.store.list_users()
        except RemoteStoreUnavailable as e:
            logger.warning("[sync] fetch failed, keeping %s configuration: %s",
                           "last fetched" if self.mirror.fresh else "default", e)
            return self.mirror

        self.mirror = Mirror(
            global_config=config or default_app_config(),
            users=users,
            fresh=True,
            refreshed_at=utc_now(),
            started_at=started_at,
        )
        self._notify(self.mirror)
        return self.mirror

    def add_listener(self, listener: MirrorListener) -> Callable[[], None]:
        """Call listener(mirror) after every successful refresh; returns a remover"""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def wait_for_refresh(self) -> "asyncio.Future[Mirror]":
        fut = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        return fut

    def _notify(self, mirror: Mirror) -> None:
        for listener in list(self._listeners):
            try:
                listener(mirror)
            except Exception:
                logger.exception("[sync] mirror listener failed")
        waiters, self._waiters = self._waiters, []
        for fut in waiters:
            if not fut.done():
                fut.set_result(mirror)

    def find_user(self, user_id: str) -> Optional[UserRecord]:
        for u in self.mirror.users:
            if u.id == user_id:
                return u
        return None

    # -------- admin mutations (store only) --------
    async def update_global(
        self,
        ai_name: Optional[str] = None,
        ai_persona: Optional[str] = None,
        dev_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
        api_keys: Optional[List[str]] = None,
    ) -> None:
        """Write the given fields; empty strings leave the stored value alone"""
        fields: Dict[str, Any] = {}
        if ai_name:
            fields["ai_name"] = ai_name
        if ai_persona:
            fields["ai_persona"] = ai_persona
        if dev_name:
            fields["dev_name"] = dev_name
        if avatar_url:
            fields["avatar_url"] = avatar_url
        if api_keys is not None:
            fields["api_keys"] = list(api_keys)
        if not fields:
            return
        await self.store.update_global_config(fields)

    async def _current_api_keys(self) -> List[str]:
        config = await self.store.get_global_config()
        return list((config or default_app_config()).api_keys)

    async def add_api_key(self, key: str) -> None:
        keys = await self._current_api_keys()
        keys.append(key)
        await self.store.update_global_config({"api_keys": keys})

    async def remove_api_key(self, key: str) -> None:
        keys = [k for k in await self._current_api_keys() if k != key]
        await self.store.update_global_config({"api_keys": keys})

    async def add_user(
        self,
        username: str,
        access_key: Optional[str] = None,
        role: str = ROLE_USER,
        created_at: Optional[dt.datetime] = None,
        profile: Optional[Dict[str, Any]] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> tuple[UserRecord, str]:
        """
        Create a user. Returns the record and the plain access key,
        which is not retrievable afterwards.
        """
        plain_key = access_key or generate_access_key()
        user = await self.store.insert_user(
            username=username,
            access_key=plain_key,
            role=role,
            created_at=created_at,
            profile=profile,
            config=config,
        )
        return user, plain_key

    async def update_user(self, user_id: str, **fields: Any) -> Optional[UserRecord]:
        return await self.store.update_user(user_id, fields)

    async def delete_user(self, user_id: str) -> bool:
        return await self.store.delete_user(user_id)
