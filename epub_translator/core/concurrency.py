"""
Cooperative cancellation and admission control for the translation pipeline.

- CancellationToken: a one-way flag that can also be awaited, settable from
  any thread
- wait_or_cancel(): races a piece of work against cancellation
- ConcurrencyGate: limits how many tasks run at once (one gate per pool)
- gather_or_cancel(): gathers tasks and cancels the siblings of a failed one
"""
import asyncio
import logging
import threading
from typing import Any, Awaitable, Callable, Iterable, List, Optional, TypeVar

from epub_translator.core.exceptions import TranslationCancelled

logger = logging.getLogger(__name__)

T = TypeVar('T')


class CancellationToken:
    """
    Shared cancellation flag for one pipeline run.

    The flag only ever goes from False to True. ``cancel()`` is idempotent and
    may be called from a thread other than the one running the event loop.
    """

    def __init__(self):
        self._cancelled = False
        self._lock = threading.Lock()
        self._event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Request cancellation. Calling it again has no effect."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            event, loop = self._event, self._loop

        logger.info("🛑 Cancellation requested")
        if event is None:
            return
        try:
            running_loop = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None
        if running_loop is loop:
            event.set()
        elif not loop.is_closed():
            loop.call_soon_threadsafe(event.set)

    async def wait(self) -> None:
        """Suspend until cancellation is requested."""
        with self._lock:
            if self._event is None:
                self._event = asyncio.Event()
                self._loop = asyncio.get_running_loop()
            event = self._event
            if self._cancelled:
                event.set()
        await event.wait()


async def wait_or_cancel(awaitable: Awaitable[T], cancellation: Optional[CancellationToken],
                         release: Optional[Callable[[T], Awaitable[Any]]] = None) -> T:
    """
    Await ``awaitable`` unless cancellation is requested first.

    When cancellation wins, the pending work is cancelled and awaited so it
    can release what it holds, then TranslationCancelled is raised.

    Args:
        awaitable: The work to wait for
        cancellation: Optional token racing the work
        release: Called with the work's result when that result is discarded
            (e.g. closing a response that opened just as the run was cancelled)
    """
    if cancellation is None:
        return await awaitable
    if cancellation.is_cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise TranslationCancelled()

    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancellation.wait())
    try:
        await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        if release is not None and work.done() and not work.cancelled() and work.exception() is None:
            await release(work.result())
        raise
    finally:
        waiter.cancel()

    if work.done():
        return work.result()

    work.cancel()
    try:
        result = await work
    except asyncio.CancelledError:
        pass
    else:
        if release is not None:
            await release(result)
    raise TranslationCancelled()


class ConcurrencyGate:
    """
    Counting admission control.

    At most ``max_concurrent`` admitted tasks run at the same time across all
    callers sharing the gate. Waiting callers are woken when a slot frees.
    A failing task releases its slot and its error reaches the caller; the
    gate never retries.

    Example:
        >>> gate = ConcurrencyGate(3, name="requests")
        >>> result = await gate.admit(lambda: fetch(url))
    """

    def __init__(self, max_concurrent: int = 3, name: str = "gate"):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self.name = name
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        """Number of tasks currently holding a slot."""
        return self._in_flight

    async def admit(self, task: Callable[[], Awaitable[T]],
                    cancellation: Optional[CancellationToken] = None) -> T:
        """
        Run ``task`` once a slot is free.

        Args:
            task: Zero-argument callable returning an awaitable
            cancellation: Optional token; waiting for a slot stops when it fires

        Raises:
            TranslationCancelled: If cancellation is requested before a slot frees
        """
        await wait_or_cancel(self._semaphore.acquire(), cancellation, release=self._give_back)
        self._in_flight += 1
        try:
            return await task()
        finally:
            self._in_flight -= 1
            self._semaphore.release()

    async def _give_back(self, _acquired) -> None:
        """Return a slot acquired for a caller that stopped waiting."""
        self._semaphore.release()


async def gather_or_cancel(awaitables: Iterable[Awaitable[Any]]) -> List[Any]:
    """
    Run awaitables concurrently and return their results in submission order.

    If one fails, the others are cancelled and awaited before the error is
    re-raised, so no request outlives a failed run.
    """
    tasks = [asyncio.ensure_future(awaitable) for awaitable in awaitables]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
