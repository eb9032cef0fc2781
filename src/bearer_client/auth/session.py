from __future__ import annotations

import json
import threading
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bearer_client.config.settings import DEFAULT_USER_KEY
from bearer_client.utils import get_logger

from .credential_store import CredentialSlot, CredentialStore
from .types import Credential


logger = get_logger(__name__)


class UserProfile(BaseModel):
    """Signed-in user as returned by the login callback."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    id: str | int | None = None
    email: str | None = None
    full_name: str | None = Field(default=None, alias="fullName")
    role: str | None = None

    def to_storage(self) -> str:
        return json.dumps(
            self.model_dump(mode="json", by_alias=True, exclude_none=True),
            ensure_ascii=True,
        )


class AuthSession:
    """Login state: the credential plus the profile of the user it belongs to.

    ``login`` is the only place outside the refresh coordinator that writes a
    credential; it models the initial hand-off from the identity provider.
    """

    def __init__(
        self,
        store: CredentialStore,
        slot: CredentialSlot,
        *,
        user_key: str = DEFAULT_USER_KEY,
    ) -> None:
        self._store = store
        self._slot = slot
        self._user_key = user_key
        self._lock = threading.RLock()

    def login(self, token: str, user: UserProfile | Mapping[str, Any]) -> UserProfile:
        profile = user if isinstance(user, UserProfile) else UserProfile.model_validate(dict(user))
        with self._lock:
            self._store.set(Credential.from_raw(token.strip()))
            self._slot.write(self._user_key, profile.to_storage())
        logger.info("Signed in", user_id=profile.id)
        return profile

    def logout(self) -> None:
        with self._lock:
            self._slot.delete(self._user_key)
            self._store.clear()
        logger.info("Signed out")

    def current_user(self) -> UserProfile | None:
        with self._lock:
            raw = self._slot.read(self._user_key)
            if raw is None:
                return None
            try:
                return UserProfile.model_validate(json.loads(raw))
            except (json.JSONDecodeError, ValidationError):
                logger.warning("Discarding corrupted session profile", key=self._user_key)
                self._slot.delete(self._user_key)
                self._store.clear()
                return None

    @property
    def credential(self) -> Credential | None:
        return self._store.get()

    @property
    def is_authenticated(self) -> bool:
        return self.current_user() is not None and self._store.get() is not None


__all__ = ["AuthSession", "UserProfile"]
