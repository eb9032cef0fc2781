from __future__ import annotations

import os
import re
import threading
from pathlib import Path
from typing import Optional

from bearer_client.config.settings import runtime_dir
from bearer_client.utils import get_logger


SLOT_SUFFIX = ".slot"
_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.\-]+$")

logger = get_logger(__name__)


class FileSlot:
    """Persists each key as a private file; deletion overwrites before unlinking."""

    def __init__(self, directory: Optional[Path] = None) -> None:
        self._directory = directory or runtime_dir()
        self._lock = threading.Lock()

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key) or key in {".", ".."}:
            raise ValueError(f"Invalid slot key: {key!r}")
        return self._directory / f"{key}{SLOT_SUFFIX}"

    def read(self, key: str) -> str | None:
        path = self.path_for(key)
        with self._lock:
            try:
                return path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return None

    def write(self, key: str, value: str) -> None:
        path = self.path_for(key)
        with self._lock:
            self._directory.mkdir(parents=True, exist_ok=True)
            staging = path.with_suffix(f"{SLOT_SUFFIX}.tmp")
            staging.unlink(missing_ok=True)
            # Created private; the mode only applies when the file is new.
            fd = os.open(staging, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(staging, path)

    def delete(self, key: str) -> None:
        """Securely wipe the slot file if present."""
        path = self.path_for(key)
        with self._lock:
            if not path.exists():
                return
            try:
                size = path.stat().st_size
                if size > 0:
                    with path.open("r+b") as handle:
                        handle.write(os.urandom(size))
                        handle.flush()
                        os.fsync(handle.fileno())
                path.unlink()
                logger.info("Wiped credential slot", path=str(path))
            except FileNotFoundError:  # pragma: no cover - concurrent removal
                return
            except OSError as exc:  # pragma: no cover - filesystem race condition
                logger.warning(
                    "Failed to securely delete credential slot",
                    path=str(path),
                    error=str(exc),
                )
                path.unlink(missing_ok=True)


__all__ = ["FileSlot", "SLOT_SUFFIX"]
