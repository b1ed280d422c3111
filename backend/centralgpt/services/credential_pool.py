"""
Ordered pool of completion-service API keys.

The pool has no state beyond the sequence: iteration order is failover
order. An empty pool is valid; the gateway reports it as exhausted without
making a request.
"""
from typing import Iterable, Iterator, Optional, Sequence


class CredentialPool:
    def __init__(self, credentials: Optional[Iterable[str]] = None):
        # Blank entries can never authenticate, drop them up front
        self._keys: tuple[str, ...] = tuple(
            k.strip() for k in (credentials or ()) if isinstance(k, str) and k.strip()
        )

    @classmethod
    def of(cls, credentials: "CredentialPool | Sequence[str] | None") -> "CredentialPool":
        if isinstance(credentials, CredentialPool):
            return credentials
        return cls(credentials)

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[str]:
        return iter(self._keys)

    def __getitem__(self, index: int) -> str:
        return self._keys[index]

    def __bool__(self) -> bool:
        return bool(self._keys)

    def __repr__(self) -> str:
        # Never print the keys themselves
        return f"CredentialPool(size={len(self._keys)})"

    @property
    def keys(self) -> tuple[str, ...]:
        return self._keys

    def is_empty(self) -> bool:
        return not self._keys
