from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from .logging import get_logger


logger = get_logger(__name__)

T = TypeVar("T")


class CancellationError(asyncio.CancelledError):
    """Raised when a caller abandons an operation through a cancellation token."""

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(reason)
        self.reason = reason


class _CancellationState:
    __slots__ = ("cancelled", "reason", "callbacks", "tasks", "timer")

    def __init__(self) -> None:
        self.cancelled = False
        self.reason: str | None = None
        self.callbacks: list[Callable[["CancellationToken"], None]] = []
        self.tasks: set[asyncio.Task[object]] = set()
        self.timer: asyncio.TimerHandle | None = None


class CancellationToken:
    """Read-only handle that lets an operation observe its caller walking away."""

    __slots__ = ("_state",)

    def __init__(self, state: _CancellationState) -> None:
        self._state = state

    @property
    def cancelled(self) -> bool:
        return self._state.cancelled

    @property
    def reason(self) -> str | None:
        return self._state.reason

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise CancellationError(self._state.reason)

    def on_cancel(self, callback: Callable[["CancellationToken"], None]) -> Callable[[], None]:
        if self.cancelled:
            callback(self)
            return lambda: None

        self._state.callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._state.callbacks:
                self._state.callbacks.remove(callback)

        return unsubscribe

    def link_task(self, task: asyncio.Task[object] | None = None) -> Callable[[], None]:
        target = task or asyncio.current_task()
        if target is None:  # pragma: no cover - synchronous misuse
            raise RuntimeError("CancellationToken.link_task() must be called from within a running task")
        self._state.tasks.add(target)
        target.add_done_callback(self._state.tasks.discard)

        def unlink() -> None:
            self._state.tasks.discard(target)

        if self.cancelled:
            target.cancel(self._state.reason)
        return unlink

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled}, reason={self.reason!r})"


class CancellationTokenSource:
    """Owns a cancellation token and triggers cancellation on request."""

    __slots__ = ("_state", "_token")

    def __init__(self) -> None:
        self._state = _CancellationState()
        self._token = CancellationToken(self._state)

    @property
    def token(self) -> CancellationToken:
        return self._token

    def cancel(self, *, reason: str | None = None) -> bool:
        if self._state.cancelled:
            return False
        self._state.cancelled = True
        self._state.reason = reason
        if self._state.timer is not None:
            self._state.timer.cancel()
            self._state.timer = None
        for callback in list(self._state.callbacks):
            try:
                callback(self._token)
            except Exception:  # noqa: BLE001 - notifications must not block cancellation
                logger.exception("Cancellation callback raised an exception")
        for task in list(self._state.tasks):
            task.cancel(reason)
        return True

    def cancel_after(self, delay: float, *, reason: str = "timed out") -> None:
        """Cancel automatically once ``delay`` seconds elapse on the running loop."""
        if self._state.timer is not None:
            self._state.timer.cancel()
        loop = asyncio.get_running_loop()
        self._state.timer = loop.call_later(delay, lambda: self.cancel(reason=reason))

    def __enter__(self) -> CancellationToken:
        return self._token

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._state.timer is not None:
            self._state.timer.cancel()
            self._state.timer = None


async def await_with_cancellation(
    coro: Awaitable[T],
    token: CancellationToken | None,
) -> T:
    """Await ``coro`` in its own task so ``token`` can cancel it."""
    if token is None:
        return await coro
    token.raise_if_cancelled()
    task = asyncio.ensure_future(coro)
    unlink = token.link_task(task)
    try:
        return await task
    except asyncio.CancelledError:
        if token.cancelled:
            raise CancellationError(token.reason) from None
        raise
    finally:
        unlink()


__all__ = [
    "CancellationError",
    "CancellationToken",
    "CancellationTokenSource",
    "await_with_cancellation",
]
