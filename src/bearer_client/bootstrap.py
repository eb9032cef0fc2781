from __future__ import annotations

from dataclasses import dataclass

import httpx

from bearer_client.auth import (
    AuthSession,
    CredentialSlot,
    CredentialStore,
    FileSlot,
    HttpRefreshEndpoint,
    MemorySlot,
    RefreshCoordinator,
    SecretStore,
)
from bearer_client.config import Settings, SettingsManager
from bearer_client.transport import ApiClient, ApiClientConfig, build_http_client
from bearer_client.utils import get_logger


logger = get_logger(__name__)


@dataclass(slots=True)
class ClientServices:
    settings: Settings
    slot: CredentialSlot
    store: CredentialStore
    coordinator: RefreshCoordinator
    api: ApiClient
    auxiliary: ApiClient
    session: AuthSession
    http_client: httpx.AsyncClient

    async def aclose(self) -> None:
        await self.auxiliary.close()
        await self.api.close()
        await self.http_client.aclose()


def build_slot(settings: Settings) -> CredentialSlot:
    """Return the persisted slot selected by ``settings.storage_backend``."""
    if settings.storage_backend == "memory":
        return MemorySlot()
    if settings.storage_backend == "file":
        return FileSlot(settings.credential_dir)
    return SecretStore()


def build_services(
    settings: Settings | None = None,
    *,
    slot: CredentialSlot | None = None,
) -> ClientServices:
    """Wire one coordinator into the primary client and share its store."""

    settings = settings or SettingsManager().load()
    if not settings.is_configured:
        raise ValueError("api_base_url must be configured before building the API client")

    slot = slot or build_slot(settings)
    store = CredentialStore(
        slot,
        key=settings.credential_key,
        leeway=settings.expiry_leeway,
    )

    api_config = ApiClientConfig(
        base_url=settings.api_base_url or "",
        timeout=settings.request_timeout,
    )
    # Refresh and business calls share one client so session cookies travel together.
    http_client = build_http_client(api_config)
    endpoint = HttpRefreshEndpoint(http_client, settings.refresh_url())
    coordinator = RefreshCoordinator(store, endpoint, timeout=settings.refresh_timeout)
    api = ApiClient(api_config, store, coordinator, http_client=http_client)

    auxiliary = ApiClient(
        ApiClientConfig(
            base_url=settings.auxiliary_base_url,
            timeout=settings.auxiliary_timeout,
            user_agent="bearer-client-auxiliary",
        ),
        store,
    )
    session = AuthSession(store, slot, user_key=settings.user_key)

    logger.debug(
        "Client services initialised",
        base_url=settings.api_base_url,
        storage=settings.storage_backend,
    )
    return ClientServices(
        settings=settings,
        slot=slot,
        store=store,
        coordinator=coordinator,
        api=api,
        auxiliary=auxiliary,
        session=session,
        http_client=http_client,
    )


__all__ = ["ClientServices", "build_services", "build_slot"]
