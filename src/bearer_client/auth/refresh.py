from __future__ import annotations

import asyncio
import threading
from concurrent.futures import Future

from bearer_client.config.settings import DEFAULT_REFRESH_TIMEOUT
from bearer_client.errors import RefreshFailedError
from bearer_client.utils import get_logger

from .credential_store import CredentialStore
from .endpoint import RefreshEndpoint
from .types import Credential, RefreshOutcome, RefreshState


logger = get_logger(__name__)


class _Waiter:
    __slots__ = ("loop", "future")

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self.loop = loop
        self.future: asyncio.Future[RefreshOutcome] = loop.create_future()

    def resolve(self, outcome: RefreshOutcome) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self.loop:
            self._set(outcome)
            return
        try:
            self.loop.call_soon_threadsafe(self._set, outcome)
        except RuntimeError:
            # The waiter's loop has closed; nobody is left to observe it.
            logger.debug("Dropped refresh outcome for closed event loop")

    def _set(self, outcome: RefreshOutcome) -> None:
        if not self.future.done():
            self.future.set_result(outcome)


class RefreshCoordinator:
    """Collapses concurrent renewal demand into one call to the refresh endpoint.

    The first ``refresh()`` issued while idle starts the network call; every
    ``refresh()`` issued before it settles joins the same attempt. All callers
    receive the identical :class:`RefreshOutcome`. The state transition and
    waiter registration share one lock, so the guarantee holds when several
    threads (each running its own event loop) use the same coordinator.
    """

    def __init__(
        self,
        store: CredentialStore,
        endpoint: RefreshEndpoint,
        *,
        timeout: float | None = DEFAULT_REFRESH_TIMEOUT,
    ) -> None:
        self._store = store
        self._endpoint = endpoint
        self._timeout = timeout
        self._lock = threading.Lock()
        self._state = RefreshState.IDLE
        self._waiters: list[_Waiter] = []
        self._task: asyncio.Task[None] | Future[None] | None = None
        self._refresh_count = 0

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def refresh_count(self) -> int:
        """Number of refresh network calls started so far."""
        return self._refresh_count

    @property
    def pending_waiters(self) -> int:
        with self._lock:
            return len(self._waiters)

    async def refresh(self) -> RefreshOutcome:
        """Renew the credential, or join the renewal already in flight.

        Never raises on refresh failure; inspect ``RefreshOutcome.success``.
        Cancelling the awaiting task only withdraws this caller.
        """
        loop = asyncio.get_running_loop()
        waiter = _Waiter(loop)
        with self._lock:
            self._waiters.append(waiter)
            initiator = self._state is RefreshState.IDLE
            if initiator:
                self._state = RefreshState.REFRESHING
                self._refresh_count += 1
            queued = len(self._waiters)

        if initiator:
            logger.info("Starting credential refresh", attempt=self._refresh_count)
            self._task = loop.create_task(self._run(), name="credential-refresh")
        else:
            logger.debug("Joining in-flight credential refresh", waiters=queued)

        try:
            return await waiter.future
        except asyncio.CancelledError:
            self._discard(waiter)
            raise

    def _discard(self, waiter: _Waiter) -> None:
        with self._lock:
            if waiter in self._waiters:
                self._waiters.remove(waiter)
                logger.debug("Refresh waiter withdrew", remaining=len(self._waiters))

    async def _run(self) -> None:
        try:
            outcome = await self._attempt()
        except asyncio.CancelledError:
            # Hosting loop is shutting down.
            if not self._hand_off(asyncio.get_running_loop()):
                self._settle(RefreshOutcome.failed("refresh interrupted"), persist=False)
            raise
        self._settle(outcome)

    def _hand_off(self, dying: asyncio.AbstractEventLoop) -> bool:
        """Restart the in-flight refresh on a loop that still has a waiter."""
        with self._lock:
            candidates = [w.loop for w in self._waiters if w.loop is not dying]
            for loop in dict.fromkeys(candidates):
                if loop.is_closed():
                    continue
                try:
                    self._task = asyncio.run_coroutine_threadsafe(self._run(), loop)
                except RuntimeError:
                    continue
                logger.info("Credential refresh moved to a surviving event loop", waiters=len(self._waiters))
                return True
        return False

    async def _attempt(self) -> RefreshOutcome:
        try:
            raw = await asyncio.wait_for(self._endpoint.fetch_credential(), self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Credential refresh timed out", timeout=self._timeout)
            return RefreshOutcome.failed("refresh timed out")
        except RefreshFailedError as exc:
            logger.warning(
                "Credential refresh failed",
                error=exc.message,
                status_code=exc.status_code,
            )
            return RefreshOutcome.failed(exc.message)
        except Exception as exc:  # noqa: BLE001 - waiters must always be released
            logger.exception("Refresh endpoint raised unexpectedly")
            return RefreshOutcome.failed(f"unexpected refresh error: {exc}")

        if not isinstance(raw, str) or not raw.strip():
            logger.warning("Refresh endpoint returned an empty credential")
            return RefreshOutcome.failed("refresh returned no credential")
        return RefreshOutcome.succeeded(Credential.from_raw(raw.strip()))

    def _persist(self, outcome: RefreshOutcome) -> RefreshOutcome:
        try:
            if outcome.success and outcome.credential is not None:
                self._store.set(outcome.credential)
            else:
                self._store.clear()
        except Exception:  # noqa: BLE001 - the state machine must return to idle
            logger.exception("Failed to persist refresh outcome")
            return RefreshOutcome.failed("credential storage failed")
        return outcome

    def _settle(self, outcome: RefreshOutcome, *, persist: bool = True) -> None:
        """Release every waiter with ``outcome``.

        With ``persist`` off the store is left untouched, which is how an
        interrupted refresh ends when nobody is left to resume it.
        """
        if persist:
            outcome = self._persist(outcome)

        with self._lock:
            waiters, self._waiters = self._waiters, []
            self._state = RefreshState.IDLE
            self._task = None

        logger.info(
            "Credential refresh settled",
            success=outcome.success,
            reason=outcome.reason,
            waiters=len(waiters),
        )
        for waiter in waiters:
            waiter.resolve(outcome)


__all__ = ["RefreshCoordinator"]
