# centralgpt/core/key_slot.py
"""
Local durable slot for the active access key.

The slot is a small JSON file read on startup, written on login and cleared
on logout. Next to the access key it keeps the opaque token handed to the
HTTP client for that session, so a restarted server accepts the client's
existing cookie.
"""
import json
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger("uvicorn.error")

SLOT_NAME = "central_gpt_active_session"
TOKEN_NAME = "central_gpt_session_token"


class LocalKeySlot:
    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read_all(self) -> dict:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("[session] slot file %s is corrupt, ignoring it", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        if not data:
            self.path.unlink(missing_ok=True)
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Write to a sibling temp file first so a crash never leaves half a slot
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data), encoding="utf-8")
        tmp.replace(self.path)

    def _get(self, name: str) -> Optional[str]:
        value = self._read_all().get(name)
        return value if isinstance(value, str) and value else None

    def _set(self, name: str, value: str) -> None:
        data = self._read_all()
        data[name] = value
        self._write_all(data)

    def get(self) -> Optional[str]:
        return self._get(SLOT_NAME)

    def set(self, key: str) -> None:
        self._set(SLOT_NAME, key)

    def get_token(self) -> Optional[str]:
        return self._get(TOKEN_NAME)

    def set_token(self, token: str) -> None:
        self._set(TOKEN_NAME, token)

    def clear(self) -> None:
        """Forget the access key and its session token"""
        data = self._read_all()
        if SLOT_NAME not in data and TOKEN_NAME not in data:
            return
        data.pop(SLOT_NAME, None)
        data.pop(TOKEN_NAME, None)
        self._write_all(data)
