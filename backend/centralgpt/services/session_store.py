"""
Session Store

Holds the single active session of this process and keeps the access key
in the local durable slot so the session survives a restart.

Expiry policy: a non-admin access key stops working ACCESS_KEY_EXPIRY_HOURS
(200,000 by default) after the account was created. This is an absolute
cutoff from creation time, not an idle timeout.
"""
import datetime as dt
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from .persona import EffectiveConfig, build_system_instruction, merge_config
from ..config import settings
from ..core.errors import (
    CentralGPTError,
    CredentialExpired,
    InvalidAdminCredential,
    InvalidCredential,
    RemoteStoreUnavailable,
)
from ..core.key_slot import LocalKeySlot
from ..core.security import generate_session_token, is_key_expired, tokens_match, utc_now
from ..store.base import AppConfig, RemoteStore, ROLE_ADMIN, ROLE_USER, UserRecord

logger = logging.getLogger("uvicorn.error")


@dataclass
class Session:
    user: UserRecord
    access_key: str
    token: str  # Opaque credential the HTTP client presents with every request
    established_at: float = field(default_factory=time.perf_counter)


@dataclass
class LoginResult:
    """Discriminated login outcome: either a session or an error code + message"""
    success: bool
    session: Optional[Session] = None
    code: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, session: Session) -> "LoginResult":
        return cls(success=True, session=session)

    @classmethod
    def fail(cls, error: CentralGPTError) -> "LoginResult":
        return cls(success=False, code=error.code, message=error.message)


class SessionStore:
    def __init__(
        self,
        store: RemoteStore,
        slot: LocalKeySlot,
        expiry_hours: Optional[int] = None,
        clock: Optional[Callable[[], dt.datetime]] = None,
    ):
        self.store = store
        self.slot = slot
        self.expiry_hours = settings.access_key_expiry_hours if expiry_hours is None else expiry_hours
        self.clock = clock or utc_now
        self._session: Optional[Session] = None

    # -------- state --------
    @property
    def current(self) -> Optional[Session]:
        return self._session

    @property
    def user(self) -> Optional[UserRecord]:
        return self._session.user if self._session else None

    @property
    def is_active(self) -> bool:
        return self._session is not None

    @property
    def is_admin(self) -> bool:
        return bool(self._session and self._session.user.is_admin)

    def _is_expired(self, user: UserRecord) -> bool:
        if user.role == ROLE_ADMIN:
            return False
        return is_key_expired(user.created_at, self.clock(), self.expiry_hours)

    def _establish(self, user: UserRecord, key: str, persist: bool, token: Optional[str] = None) -> Session:
        # Replaces whatever session was active before: one session per process
        self._session = Session(user=user, access_key=key, token=token or generate_session_token())
        if persist:
            self.slot.set(key)
            self.slot.set_token(self._session.token)
        logger.info("[session] established for %s (%s)", user.username, user.role)
        return self._session

    # -------- operations --------
    async def login_with_key(self, key: str) -> LoginResult:
        try:
            user = await self.store.find_user(key, role=ROLE_USER)
        except RemoteStoreUnavailable as e:
            logger.warning("[session] login lookup failed: %s", e)
            return LoginResult.fail(e)

        if not user:
            return LoginResult.fail(InvalidCredential("Invalid Access Key."))
        if self._is_expired(user):
            hours = f"{self.expiry_hours:,}".replace(",", ".")
            return LoginResult.fail(CredentialExpired(f"Access Key expired ({hours} hours)."))

        return LoginResult.ok(self._establish(user, key, persist=True))

    async def login_as_admin(self, username: str, key: str) -> LoginResult:
        try:
            user = await self.store.find_user(key, role=ROLE_ADMIN, username=username)
        except RemoteStoreUnavailable as e:
            logger.warning("[session] admin login lookup failed: %s", e)
            return LoginResult.fail(e)

        if not user:
            return LoginResult.fail(InvalidAdminCredential("Invalid Admin Credentials."))

        return LoginResult.ok(self._establish(user, key, persist=True))

    async def restore_session(self) -> Optional[Session]:
        """
        Bring back the session of the persisted key, if it is still valid.
        Every failure ends in the logged-out state; nothing is raised.
        """
        key = self.slot.get()
        if not key:
            return None

        try:
            user = await self.store.find_user(key)
        except RemoteStoreUnavailable as e:
            # Keep the slot: the key may well be valid once the store is back
            logger.warning("[session] restore skipped, store unavailable: %s", e)
            return None

        if not user:
            logger.info("[session] persisted key no longer matches a user, clearing it")
            self.slot.clear()
            return None
        if self._is_expired(user):
            logger.info("[session] persisted key of %s expired, clearing it", user.username)
            self.slot.clear()
            return None

        # Same token as before the restart, so the client's cookie stays valid
        return self._establish(user, key, persist=False, token=self.slot.get_token())

    def authenticate(self, token: Optional[str]) -> Optional[UserRecord]:
        """The session user if token belongs to the active session, else None"""
        if self._session is None or not tokens_match(token, self._session.token):
            return None
        return self._session.user

    def logout(self) -> None:
        self._session = None
        self.slot.clear()

    def sync_user(self, users: Iterable[UserRecord], snapshot_started: Optional[float] = None) -> None:
        """
        Apply a fresh users snapshot to the active session:
        pick up edits to the active user, end the session if the user is gone.

        snapshot_started is the time.perf_counter() value at which the snapshot
        read began. A snapshot that began before the session was established
        cannot know about it and is ignored.
        """
        if self._session is None:
            return
        if snapshot_started is not None and snapshot_started <= self._session.established_at:
            logger.debug("[session] ignoring users snapshot older than the session")
            return
        active_id = self._session.user.id
        for u in users:
            if u.id == active_id:
                self._session.user = u
                return
        logger.info("[session] active user %s was deleted remotely, logging out", active_id)
        self.logout()

    # -------- derived configuration --------
    def effective_config(self, global_config: AppConfig) -> EffectiveConfig:
        override = self.user.config if self.user else None
        return merge_config(global_config, override)

    def system_instruction(self, config: EffectiveConfig) -> str:
        return build_system_instruction(config, self.user.username if self.user else None)
