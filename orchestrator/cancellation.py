import asyncio
from typing import Awaitable, TypeVar

T = TypeVar("T")


class RunCancelled(Exception):
    """Raised inside a run when its CancellationToken fires."""


class CancellationToken:
    """
    Run-scoped cancellation signal.

    cancel() may be called from the event loop or, via cancel_threadsafe(),
    from another thread.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def cancel_threadsafe(self) -> None:
        if self._loop is None:
            self._event.set()
        else:
            self._loop.call_soon_threadsafe(self._event.set)

    async def wait(self) -> None:
        self._loop = asyncio.get_running_loop()
        await self._event.wait()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await a coroutine unless the token fires first.

        Raises:
            RunCancelled: If cancelled before the awaitable finished; the
                awaitable's task is cancelled and awaited before raising.
        """
        if self.is_cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            elif asyncio.isfuture(awaitable):
                awaitable.cancel()
            raise RunCancelled()

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            if not waiter.done():
                waiter.cancel()

        if work.done():
            return work.result()

        work.cancel()
        await asyncio.gather(work, return_exceptions=True)
        raise RunCancelled()
