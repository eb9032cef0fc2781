from __future__ import annotations

import os
from typing import Final

import keyring
from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError

from bearer_client.config.settings import APP_NAME, ENV_PREFIX
from bearer_client.utils import get_logger


logger = get_logger(__name__)

_ALLOW_INSECURE_ENV: Final[str] = f"{ENV_PREFIX}ALLOW_INSECURE_KEYRING"
_INSECURE_MARKERS: Final[tuple[str, ...]] = (
    "plaintext",
    "unencrypted",
    "insecure",
    "simplekeyring",
)
_INSECURE_MODULES: Final[tuple[str, ...]] = (
    "keyring.backends.file",
    "keyrings.alt.file",
    "keyring.backends.null",
    "keyring.backends.fail",
)


class InsecureKeyringError(RuntimeError):
    """Raised when the active keyring backend does not provide encryption."""


def _describe_backend(backend: KeyringBackend) -> str:
    return f"{backend.__class__.__module__}.{backend.__class__.__name__}"


def _is_secure_backend(backend: KeyringBackend) -> bool:
    secure_flag = getattr(backend, "secure_storage", None)
    if isinstance(secure_flag, bool):
        return secure_flag

    name = backend.__class__.__name__.lower()
    module = backend.__class__.__module__
    if any(marker in name for marker in _INSECURE_MARKERS):
        return False
    if module.startswith("keyring.backends.chainer"):
        children = getattr(backend, "backends", ())
        return bool(children) and all(_is_secure_backend(child) for child in children)
    return not module.startswith(_INSECURE_MODULES)


def _allow_insecure_setting(flag: bool | None) -> bool:
    if flag is not None:
        return flag
    env = os.getenv(_ALLOW_INSECURE_ENV)
    if env is None:
        return False
    return env.strip().lower() in {"1", "true", "yes", "on"}


class SecretStore:
    """Credential slot backed by the OS keyring, one entry per key."""

    def __init__(
        self,
        service_name: str = APP_NAME,
        *,
        backend: KeyringBackend | None = None,
        allow_insecure: bool | None = None,
    ) -> None:
        self._service_name = service_name
        self._backend = backend or keyring.get_keyring()
        self._enforce_backend_security(allow_insecure)
        logger.info(
            "Keyring slot initialised",
            backend=_describe_backend(self._backend),
            service=service_name,
        )

    @property
    def service_name(self) -> str:
        return self._service_name

    def read(self, key: str) -> str | None:
        return self._backend.get_password(self._service_name, key)

    def write(self, key: str, value: str) -> None:
        self._backend.set_password(self._service_name, key, value)

    def delete(self, key: str) -> None:
        try:
            self._backend.delete_password(self._service_name, key)
        except PasswordDeleteError:
            logger.debug("Keyring entry already absent", key=key)

    def _enforce_backend_security(self, allow_insecure: bool | None) -> None:
        descriptor = _describe_backend(self._backend)
        if _is_secure_backend(self._backend):
            return
        if _allow_insecure_setting(allow_insecure):
            logger.warning(
                "Storing credentials in an insecure keyring backend",
                backend=descriptor,
                env=_ALLOW_INSECURE_ENV,
            )
            return
        raise InsecureKeyringError(
            f"Keyring backend {descriptor} does not provide encrypted storage. "
            f"Set {_ALLOW_INSECURE_ENV}=1 to accept it, or choose the file or memory backend."
        )


__all__ = ["SecretStore", "InsecureKeyringError"]
