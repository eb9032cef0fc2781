from __future__ import annotations

import threading
import time
from typing import Callable, Protocol, runtime_checkable

from bearer_client.config.settings import DEFAULT_CREDENTIAL_KEY
from bearer_client.utils import get_logger

from .types import Credential


logger = get_logger(__name__)


@runtime_checkable
class CredentialSlot(Protocol):
    """Persistent key-value facility holding opaque strings."""

    def read(self, key: str) -> str | None: ...

    def write(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemorySlot:
    """Process-local slot used for tests and short-lived scripts."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def read(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    def write(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)


class CredentialStore:
    """Single source of truth for the live bearer credential.

    Reads and writes are synchronous and never touch the network. Values are
    replaced wholesale; there is no partial update of a credential.
    """

    def __init__(
        self,
        slot: CredentialSlot,
        *,
        key: str = DEFAULT_CREDENTIAL_KEY,
        leeway: int = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._slot = slot
        self._key = key
        self._leeway = leeway
        self._clock = clock
        self._lock = threading.RLock()

    @property
    def key(self) -> str:
        return self._key

    @property
    def leeway(self) -> int:
        return self._leeway

    def get(self) -> Credential | None:
        with self._lock:
            raw = self._slot.read(self._key)
        if raw is None:
            return None
        # Browser storage kept the token JSON-encoded, so drop stray quotes.
        value = raw.strip().replace('"', "")
        if not value:
            return None
        return Credential.from_raw(value)

    def set(self, credential: Credential) -> None:
        if not credential.raw_value:
            raise ValueError("Cannot store an empty credential")
        with self._lock:
            self._slot.write(self._key, credential.raw_value)
        logger.debug("Stored credential", key=self._key, expires_at=credential.expires_at)

    def clear(self) -> None:
        with self._lock:
            self._slot.delete(self._key)
        logger.debug("Cleared credential", key=self._key)

    def is_expired(self, credential: Credential) -> bool:
        """True when the credential must not be presented as-is.

        A missing or unreadable expiry counts as expired, and so does an
        expiry equal to the current second.
        """
        if credential.expires_at is None:
            return True
        return credential.expires_at <= self._clock() + self._leeway


__all__ = ["CredentialSlot", "CredentialStore", "MemorySlot"]
