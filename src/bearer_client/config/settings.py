from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, get_args

from dotenv import load_dotenv
from platformdirs import user_cache_dir, user_config_dir

APP_NAME = "BearerClient"
ENV_PREFIX = "BEARER_CLIENT_"
ENV_FILE_NAME = "settings.env"

DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_REFRESH_TIMEOUT = 15.0
DEFAULT_REFRESH_PATH = "/api/auth/refresh-token"
DEFAULT_CREDENTIAL_KEY = "token"
DEFAULT_USER_KEY = "user"
DEFAULT_AUXILIARY_BASE_URL = "http://127.0.0.1:8000"

StorageBackend = Literal["keyring", "file", "memory"]
STORAGE_BACKENDS: tuple[str, ...] = get_args(StorageBackend)


def _config_dir() -> Path:
    path = Path(user_config_dir(APP_NAME, roaming=True))
    path.mkdir(parents=True, exist_ok=True)
    return path


def _cache_dir() -> Path:
    path = Path(user_cache_dir(APP_NAME))
    path.mkdir(parents=True, exist_ok=True)
    return path


def config_dir() -> Path:
    return _config_dir()


def cache_dir() -> Path:
    return _cache_dir()


def log_dir() -> Path:
    path = cache_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def runtime_dir() -> Path:
    path = cache_dir() / "runtime"
    path.mkdir(parents=True, exist_ok=True)
    return path


def _env_file_path(explicit: Path | None) -> Path:
    if explicit is not None:
        return explicit
    return _config_dir() / ENV_FILE_NAME


@dataclass(slots=True)
class Settings:
    """Connection and credential-storage options for the API transport.

    ``api_base_url`` is the only value without a usable default; every other
    field mirrors the behaviour of the browser client this package replaces
    (10 second request timeout, token kept under the ``token`` key).
    """

    api_base_url: str | None = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    refresh_path: str = DEFAULT_REFRESH_PATH
    refresh_timeout: float = DEFAULT_REFRESH_TIMEOUT
    credential_key: str = DEFAULT_CREDENTIAL_KEY
    user_key: str = DEFAULT_USER_KEY
    storage_backend: StorageBackend = "keyring"
    credential_dir: Path = field(default_factory=lambda: runtime_dir())
    expiry_leeway: int = 0
    auxiliary_base_url: str = DEFAULT_AUXILIARY_BASE_URL
    auxiliary_timeout: float | None = None

    @property
    def is_configured(self) -> bool:
        """True when the primary API base address is known."""
        return bool(self.api_base_url)

    def refresh_url(self) -> str:
        """Return the absolute refresh endpoint address."""
        if self.refresh_path.startswith(("http://", "https://")):
            return self.refresh_path
        if not self.api_base_url:
            raise ValueError("api_base_url must be configured to resolve the refresh URL")
        base = self.api_base_url.rstrip("/")
        path = self.refresh_path if self.refresh_path.startswith("/") else f"/{self.refresh_path}"
        return f"{base}{path}"


class SettingsManager:
    """Load and persist settings with environment overrides."""

    def __init__(self, env_file: Path | None = None) -> None:
        self._env_file = _env_file_path(env_file)

    @property
    def env_file(self) -> Path:
        return self._env_file

    def load(self) -> Settings:
        """Load settings from environment, falling back to persisted file."""
        load_dotenv(self._env_file, override=False)

        settings = Settings(api_base_url=self._get_env("API_BASE_URL"))

        request_timeout = self._get_float("REQUEST_TIMEOUT")
        if request_timeout is not None:
            settings.request_timeout = request_timeout
        refresh_timeout = self._get_float("REFRESH_TIMEOUT")
        if refresh_timeout is not None:
            settings.refresh_timeout = refresh_timeout
        auxiliary_timeout = self._get_float("AUXILIARY_TIMEOUT")
        if auxiliary_timeout is not None:
            settings.auxiliary_timeout = auxiliary_timeout

        leeway = self._get_env("EXPIRY_LEEWAY")
        if leeway is not None:
            try:
                settings.expiry_leeway = int(leeway)
            except ValueError as exc:
                raise ValueError(
                    f"{ENV_PREFIX}EXPIRY_LEEWAY must be an integer, got {leeway!r}"
                ) from exc

        backend = self._get_env("STORAGE_BACKEND")
        if backend is not None:
            normalised = backend.strip().lower()
            if normalised not in STORAGE_BACKENDS:
                raise ValueError(
                    f"{ENV_PREFIX}STORAGE_BACKEND must be one of "
                    f"{', '.join(STORAGE_BACKENDS)}; got {backend!r}"
                )
            settings.storage_backend = normalised  # type: ignore[assignment]

        for name, attr in (
            ("REFRESH_PATH", "refresh_path"),
            ("CREDENTIAL_KEY", "credential_key"),
            ("USER_KEY", "user_key"),
            ("AUXILIARY_BASE_URL", "auxiliary_base_url"),
        ):
            value = self._get_env(name)
            if value is not None:
                setattr(settings, attr, value)

        credential_dir = self._get_env("CREDENTIAL_DIR")
        if credential_dir:
            settings.credential_dir = Path(credential_dir).expanduser()

        return settings

    def save(self, settings: Settings) -> None:
        """Persist core configuration fields to the managed env file."""
        self._env_file.parent.mkdir(parents=True, exist_ok=True)
        content = [
            f"{ENV_PREFIX}API_BASE_URL={settings.api_base_url or ''}",
            f"{ENV_PREFIX}REQUEST_TIMEOUT={settings.request_timeout}",
            f"{ENV_PREFIX}REFRESH_PATH={settings.refresh_path}",
            f"{ENV_PREFIX}REFRESH_TIMEOUT={settings.refresh_timeout}",
            f"{ENV_PREFIX}STORAGE_BACKEND={settings.storage_backend}",
            f"{ENV_PREFIX}CREDENTIAL_DIR={settings.credential_dir}",
            f"{ENV_PREFIX}EXPIRY_LEEWAY={settings.expiry_leeway}",
            f"{ENV_PREFIX}AUXILIARY_BASE_URL={settings.auxiliary_base_url}",
        ]
        self._env_file.write_text("\n".join(content) + "\n", encoding="utf-8")

    def _get_env(self, name: str) -> str | None:
        return os.getenv(f"{ENV_PREFIX}{name}") or None

    def _get_float(self, name: str) -> float | None:
        raw = self._get_env(name)
        if raw is None:
            return None
        try:
            return float(raw)
        except ValueError as exc:
            raise ValueError(
                f"{ENV_PREFIX}{name} must be a number of seconds, got {raw!r}"
            ) from exc


__all__ = [
    "APP_NAME",
    "DEFAULT_CREDENTIAL_KEY",
    "DEFAULT_REFRESH_TIMEOUT",
    "DEFAULT_REQUEST_TIMEOUT",
    "DEFAULT_USER_KEY",
    "Settings",
    "SettingsManager",
    "StorageBackend",
    "cache_dir",
    "config_dir",
    "log_dir",
    "runtime_dir",
]
