"""Timeout and cancellation strategies for in-flight requests.

Two variants are available:

- :class:`AbortOnTimeout` arms an event loop timer that cancels the
  dispatch when the effective timeout elapses.
- :class:`AdvisoryTimeout` arms nothing and relies on the timeout that is
  handed to the transport.

Both receive the transport timeout, so the only difference is whether a
local timer can cut off the exchange.
"""

import abc
import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

T = TypeVar("T")


class CancellationStrategy(abc.ABC):
    """How the effective timeout of a request is enforced."""

    #: Whether the strategy can abort an in-flight request on its own.
    hard_abort: bool = False

    @abc.abstractmethod
    async def run(self, operation: Coroutine[Any, Any, T], timeout_ms: float) -> T:
        """Await ``operation`` under the given timeout (milliseconds)."""


class AbortOnTimeout(CancellationStrategy):
    """Cancel the dispatch when a local timer fires.

    Only one outcome is observable: if the operation settles before the
    timer callback runs, its result wins and the timer is a no-op;
    otherwise the operation is cancelled and :class:`TimeoutError` is
    raised. The timer is cleared on every exit path.
    """

    hard_abort = True

    async def run(self, operation: Coroutine[Any, Any, T], timeout_ms: float) -> T:
        loop = asyncio.get_running_loop()
        inner = asyncio.ensure_future(operation)
        timed_out = False

        def abort() -> None:
            nonlocal timed_out
            if not inner.done():
                timed_out = True
                inner.cancel()

        handle = loop.call_later(timeout_ms / 1000, abort)
        try:
            return await inner
        except asyncio.CancelledError:
            if timed_out:
                msg = f"Request aborted after {timeout_ms:g} ms"
                raise TimeoutError(msg) from None
            raise
        finally:
            handle.cancel()


class AdvisoryTimeout(CancellationStrategy):
    """Leave the timeout to the transport; no local timer is armed."""

    hard_abort = False

    async def run(self, operation: Coroutine[Any, Any, T], timeout_ms: float) -> T:  # noqa: ARG002
        return await operation
