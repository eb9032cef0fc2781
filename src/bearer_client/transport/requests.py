from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from bearer_client.auth.types import Credential


AUTHORIZATION_HEADER = "Authorization"


@dataclass(slots=True)
class RequestContext:
    """Replayable description of one outbound call.

    The same context is resent on the authentication retry, so it must carry
    everything needed to rebuild the request. ``retried`` flips once and never
    back.
    """

    method: str
    url: str
    body: Any | None = None
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] | None = None
    content: bytes | None = None
    timeout: float | None = None
    retried: bool = False
    credential: Credential | None = None

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        self.headers = dict(self.headers)

    def attach(self, credential: Credential | None) -> None:
        """Set or drop the Authorization header for the next send."""
        for key in [k for k in self.headers if k.lower() == AUTHORIZATION_HEADER.lower()]:
            del self.headers[key]
        self.credential = credential
        if credential is not None:
            self.headers[AUTHORIZATION_HEADER] = credential.authorization

    def mark_retried(self) -> None:
        if self.retried:
            raise RuntimeError(f"{self.method} {self.url} has already been retried")
        self.retried = True

    @property
    def authenticated(self) -> bool:
        return self.credential is not None


__all__ = ["AUTHORIZATION_HEADER", "RequestContext"]
