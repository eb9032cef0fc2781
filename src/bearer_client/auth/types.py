"""Authentication type definitions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

from .claims import decode_expiry


class Credential(NamedTuple):
    """A bearer token together with the expiry it advertises."""

    raw_value: str
    """The opaque token string sent in the Authorization header."""

    expires_at: int | None
    """Expiry from the token's ``exp`` claim in Unix time, ``None`` if unreadable."""

    @classmethod
    def from_raw(cls, raw_value: str) -> "Credential":
        return cls(raw_value, decode_expiry(raw_value))

    @property
    def authorization(self) -> str:
        return f"Bearer {self.raw_value}"

    def __repr__(self) -> str:
        return f"Credential(expires_at={self.expires_at!r})"


class RefreshState(str, Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


@dataclass(frozen=True, slots=True)
class RefreshOutcome:
    """Shared result of one refresh, delivered identically to every waiter."""

    success: bool
    credential: Credential | None = None
    reason: str | None = None

    @classmethod
    def succeeded(cls, credential: Credential) -> "RefreshOutcome":
        return cls(success=True, credential=credential)

    @classmethod
    def failed(cls, reason: str) -> "RefreshOutcome":
        return cls(success=False, reason=reason)


__all__ = ["Credential", "RefreshOutcome", "RefreshState"]
