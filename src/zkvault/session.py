"""Per-session vault-key cache.

A :class:`VaultSession` is the explicit context object every codec call
works against.  It holds at most one vault key, through a swappable
:class:`KeyStore` capability, and moves between two states:

    UNKEYED --remember()--> KEYED --clear()--> UNKEYED
"""

from __future__ import annotations

import enum
import logging
from typing import Optional, Protocol, runtime_checkable

from .exceptions import VaultKeyUnavailable

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyStore(Protocol):
    """Where the cached vault key lives for the duration of a session."""

    def get(self) -> Optional[str]: ...

    def set(self, key: str) -> None: ...

    def clear(self) -> None: ...


class MemoryKeyStore:
    """Keeps the vault key in process memory only."""

    def __init__(self) -> None:
        self._key: Optional[str] = None

    def get(self) -> Optional[str]:
        return self._key

    def set(self, key: str) -> None:
        self._key = key

    def clear(self) -> None:
        self._key = None


class SessionState(str, enum.Enum):
    UNKEYED = "unkeyed"
    KEYED = "keyed"


class VaultSession:
    """Authenticated-session context: owns the single cached vault key."""

    def __init__(self, store: Optional[KeyStore] = None) -> None:
        self.store: KeyStore = store if store is not None else MemoryKeyStore()

    @property
    def state(self) -> SessionState:
        return SessionState.KEYED if self.store.get() else SessionState.UNKEYED

    @property
    def is_keyed(self) -> bool:
        return self.state is SessionState.KEYED

    @property
    def vault_key(self) -> str:
        """The cached vault key; raises :class:`VaultKeyUnavailable` when unkeyed."""
        key = self.store.get()
        if not key:
            raise VaultKeyUnavailable()
        return key

    def remember(self, vault_key: str) -> None:
        """Cache *vault_key*, replacing any previous one."""
        self.store.set(vault_key)
        logger.debug("Vault session keyed")

    def clear(self) -> None:
        """Drop the cached key (sign-out or authentication failure)."""
        was_keyed = self.is_keyed
        self.store.clear()
        if was_keyed:
            logger.debug("Vault session cleared")
