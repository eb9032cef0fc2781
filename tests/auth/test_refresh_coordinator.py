from __future__ import annotations

import asyncio
import contextlib
import threading

import pytest

from bearer_client.auth import Credential, RefreshCoordinator, RefreshOutcome, RefreshState
from bearer_client.errors import RefreshFailedError

from tests.factories import make_credential, make_store, make_token
from tests.stubs import SlowRefreshEndpoint, StubRefreshEndpoint, wait_until


@pytest.mark.asyncio
async def test_single_refresh_updates_store() -> None:
    store = make_store(make_credential(expires_in=-10))
    new_token = make_token()
    endpoint = StubRefreshEndpoint([new_token])
    coordinator = RefreshCoordinator(store, endpoint)

    outcome = await coordinator.refresh()

    assert outcome.success
    assert outcome.credential == Credential.from_raw(new_token)
    assert store.get() == Credential.from_raw(new_token)
    assert endpoint.calls == 1
    assert coordinator.state is RefreshState.IDLE
    assert coordinator.refresh_count == 1


@pytest.mark.asyncio
async def test_concurrent_refreshes_share_one_network_call() -> None:
    store = make_store(make_credential(expires_in=-10))
    endpoint = StubRefreshEndpoint([make_token()], hold=True)
    coordinator = RefreshCoordinator(store, endpoint)

    tasks = [asyncio.create_task(coordinator.refresh()) for _ in range(8)]
    await wait_until(lambda: coordinator.pending_waiters == 8)
    assert coordinator.state is RefreshState.REFRESHING
    assert endpoint.calls == 1

    endpoint.release()
    outcomes = await asyncio.gather(*tasks)

    assert endpoint.calls == 1
    assert coordinator.refresh_count == 1
    assert all(outcome is outcomes[0] for outcome in outcomes)
    assert outcomes[0].success
    assert coordinator.pending_waiters == 0
    assert coordinator.state is RefreshState.IDLE


@pytest.mark.asyncio
async def test_failed_refresh_fans_out_failure_and_clears_store() -> None:
    store = make_store(make_credential(expires_in=-10))
    endpoint = StubRefreshEndpoint(
        [RefreshFailedError("Refresh endpoint returned status 401", status_code=401)],
        hold=True,
    )
    coordinator = RefreshCoordinator(store, endpoint)

    tasks = [asyncio.create_task(coordinator.refresh()) for _ in range(4)]
    await wait_until(lambda: coordinator.pending_waiters == 4)
    endpoint.release()
    outcomes = await asyncio.gather(*tasks)

    assert [outcome.success for outcome in outcomes] == [False] * 4
    assert {outcome.reason for outcome in outcomes} == {"Refresh endpoint returned status 401"}
    assert store.get() is None
    assert endpoint.calls == 1


@pytest.mark.asyncio
async def test_unexpected_endpoint_error_is_reported_as_failure() -> None:
    store = make_store(make_credential())
    coordinator = RefreshCoordinator(store, StubRefreshEndpoint([RuntimeError("boom")]))

    outcome = await coordinator.refresh()

    assert not outcome.success
    assert store.get() is None
    assert coordinator.state is RefreshState.IDLE


@pytest.mark.asyncio
async def test_blank_credential_from_endpoint_is_a_failure() -> None:
    store = make_store(make_credential())
    coordinator = RefreshCoordinator(store, StubRefreshEndpoint(["   "]))

    outcome = await coordinator.refresh()

    assert not outcome.success
    assert store.get() is None


@pytest.mark.asyncio
async def test_timed_out_refresh_returns_to_idle() -> None:
    store = make_store(make_credential(expires_in=-10))
    endpoint = SlowRefreshEndpoint()
    coordinator = RefreshCoordinator(store, endpoint, timeout=0.05)

    outcomes = await asyncio.gather(coordinator.refresh(), coordinator.refresh())

    assert [outcome.success for outcome in outcomes] == [False, False]
    assert outcomes[0].reason == "refresh timed out"
    assert endpoint.calls == 1
    assert coordinator.state is RefreshState.IDLE
    assert store.get() is None


@pytest.mark.asyncio
async def test_sequential_refreshes_each_hit_the_endpoint() -> None:
    store = make_store()
    endpoint = StubRefreshEndpoint([make_token(), make_token(7200)])
    coordinator = RefreshCoordinator(store, endpoint)

    await coordinator.refresh()
    await coordinator.refresh()

    assert endpoint.calls == 2
    assert coordinator.refresh_count == 2


@pytest.mark.asyncio
async def test_abandoning_waiter_does_not_cancel_shared_refresh() -> None:
    store = make_store(make_credential(expires_in=-10))
    new_token = make_token()
    endpoint = StubRefreshEndpoint([new_token], hold=True)
    coordinator = RefreshCoordinator(store, endpoint)

    initiator = asyncio.create_task(coordinator.refresh())
    follower = asyncio.create_task(coordinator.refresh())
    survivor = asyncio.create_task(coordinator.refresh())
    await wait_until(lambda: coordinator.pending_waiters == 3)

    initiator.cancel()
    follower.cancel()
    await wait_until(lambda: coordinator.pending_waiters == 1)
    assert coordinator.state is RefreshState.REFRESHING

    endpoint.release()
    outcome = await survivor

    assert outcome.success
    assert initiator.cancelled()
    assert follower.cancelled()
    assert store.get() == Credential.from_raw(new_token)
    assert endpoint.calls == 1


@pytest.mark.asyncio
async def test_refresh_completes_even_when_every_caller_leaves() -> None:
    store = make_store(make_credential(expires_in=-10))
    new_token = make_token()
    endpoint = StubRefreshEndpoint([new_token], hold=True)
    coordinator = RefreshCoordinator(store, endpoint)

    caller = asyncio.create_task(coordinator.refresh())
    await endpoint.started.wait()
    caller.cancel()
    await wait_until(lambda: coordinator.pending_waiters == 0)

    endpoint.release()
    await wait_until(lambda: coordinator.state is RefreshState.IDLE)

    assert store.get() == Credential.from_raw(new_token)


def test_single_flight_across_threads() -> None:
    store = make_store(make_credential(expires_in=-10))
    calls: list[int] = []
    release = threading.Event()

    class ThreadedEndpoint:
        async def fetch_credential(self) -> str:
            calls.append(1)
            while not release.is_set():
                await asyncio.sleep(0.01)
            return make_token()

    coordinator = RefreshCoordinator(store, ThreadedEndpoint())
    results: list[bool] = []
    errors: list[BaseException] = []
    barrier = threading.Barrier(4)

    def worker() -> None:
        async def run() -> None:
            barrier.wait()
            outcome = await coordinator.refresh()
            results.append(outcome.success)

        try:
            asyncio.run(run())
        except BaseException as exc:  # noqa: BLE001 - surfaced via assertion below
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()

    deadline = 200
    while coordinator.pending_waiters < 4 and deadline:
        threading.Event().wait(0.01)
        deadline -= 1
    release.set()
    for thread in threads:
        thread.join(timeout=5)

    assert not errors
    assert results == [True] * 4
    assert len(calls) == 1
    assert coordinator.refresh_count == 1


class _GatedEndpoint:
    """Blocks every call until ``release`` is set, whichever loop runs it."""

    def __init__(self) -> None:
        self.calls = 0
        self.release = threading.Event()
        self.token = make_token()

    async def fetch_credential(self) -> str:
        self.calls += 1
        while not self.release.is_set():
            await asyncio.sleep(0.01)
        return self.token


def _initiator_that_leaves(coordinator: RefreshCoordinator, expected_waiters: int) -> threading.Thread:
    async def run() -> None:
        caller = asyncio.create_task(coordinator.refresh())
        while coordinator.pending_waiters < expected_waiters:
            await asyncio.sleep(0.005)
        caller.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await caller
        # Returning lets asyncio.run cancel the refresh task hosted on this loop.

    return threading.Thread(target=lambda: asyncio.run(run()))


def test_refresh_survives_initiating_thread_shutting_down() -> None:
    old = make_credential(expires_in=-10)
    store = make_store(old)
    endpoint = _GatedEndpoint()
    coordinator = RefreshCoordinator(store, endpoint)
    outcomes: list[RefreshOutcome] = []

    def waiter() -> None:
        async def run() -> None:
            while coordinator.state is not RefreshState.REFRESHING:
                await asyncio.sleep(0.005)
            outcomes.append(await coordinator.refresh())

        asyncio.run(run())

    initiator = _initiator_that_leaves(coordinator, expected_waiters=2)
    follower = threading.Thread(target=waiter)
    initiator.start()
    follower.start()
    initiator.join(timeout=5)

    assert not initiator.is_alive()
    assert store.get() == old
    assert coordinator.state is RefreshState.REFRESHING

    endpoint.release.set()
    follower.join(timeout=5)

    assert [outcome.success for outcome in outcomes] == [True]
    assert store.get() == Credential.from_raw(endpoint.token)
    assert coordinator.state is RefreshState.IDLE
    assert coordinator.pending_waiters == 0


def test_interrupted_refresh_without_survivors_keeps_store() -> None:
    old = make_credential(expires_in=-10)
    store = make_store(old)
    coordinator = RefreshCoordinator(store, _GatedEndpoint())

    initiator = _initiator_that_leaves(coordinator, expected_waiters=1)
    initiator.start()
    initiator.join(timeout=5)

    assert not initiator.is_alive()
    assert store.get() == old
    assert coordinator.state is RefreshState.IDLE
