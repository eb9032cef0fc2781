from __future__ import annotations

import os
from collections.abc import Iterator

import pytest

from bearer_client.auth import CredentialStore, MemorySlot
from bearer_client.utils import LoggingOptions, configure_logging


@pytest.fixture(scope="session", autouse=True)
def _console_logging() -> None:
    """Keep test runs from writing rotating log files."""

    configure_logging(LoggingOptions(level="DEBUG", log_to_file=False))


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Strip ambient BEARER_CLIENT_* variables so settings tests start clean."""

    for name in list(os.environ):
        if name.startswith("BEARER_CLIENT_"):
            monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def slot() -> MemorySlot:
    return MemorySlot()


@pytest.fixture
def store(slot: MemorySlot) -> CredentialStore:
    return CredentialStore(slot)
