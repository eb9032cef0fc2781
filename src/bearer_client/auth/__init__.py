"""Credential storage and renewal."""

from .credential_store import CredentialSlot, CredentialStore, MemorySlot
from .endpoint import HttpRefreshEndpoint, RefreshEndpoint, RefreshPayload
from .file_slot import FileSlot
from .refresh import RefreshCoordinator
from .secret_store import InsecureKeyringError, SecretStore
from .session import AuthSession, UserProfile
from .types import Credential, RefreshOutcome, RefreshState

__all__ = [
    "AuthSession",
    "Credential",
    "CredentialSlot",
    "CredentialStore",
    "FileSlot",
    "HttpRefreshEndpoint",
    "InsecureKeyringError",
    "MemorySlot",
    "RefreshCoordinator",
    "RefreshEndpoint",
    "RefreshOutcome",
    "RefreshPayload",
    "RefreshState",
    "SecretStore",
    "UserProfile",
]
