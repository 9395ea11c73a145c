"""
Fire-and-forget scheduling of persistence writes.

Edits never wait for storage. Writes run on the caller's asyncio loop
when there is one, otherwise on a background loop thread started on
first use. A failed write is logged and dropped; in-memory state is
never rolled back.
"""

import asyncio
import concurrent.futures
import logging
import threading
from typing import Awaitable, Optional, Set, Union

logger = logging.getLogger(__name__)

Pending = Union[asyncio.Task, concurrent.futures.Future]


class PersistenceScheduler:
    """Runs persistence coroutines without blocking the interaction loop."""

    def __init__(self):
        self._pending: Set[Pending] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def schedule(self, coro: Awaitable, description: str = "write") -> Pending:
        """
        Start ``coro`` and return immediately.

        Returns:
            An :class:`asyncio.Task` when called inside a running loop,
            otherwise a :class:`concurrent.futures.Future`
        """
        guarded = self._guard(coro, description)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            pending = loop.create_task(guarded)
        else:
            pending = asyncio.run_coroutine_threadsafe(guarded, self._background_loop())
        self._pending.add(pending)
        pending.add_done_callback(self._pending.discard)
        return pending

    async def _guard(self, coro: Awaitable, description: str):
        try:
            return await coro
        except Exception as e:
            logger.warning(f"Persistence {description} failed: {e}", exc_info=True)
            return None

    def _background_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is None:
                self._loop = asyncio.new_event_loop()
                self._thread = threading.Thread(
                    target=self._loop.run_forever,
                    name="pointmarker-persistence",
                    daemon=True,
                )
                self._thread.start()
                logger.debug("Started background persistence loop")
            return self._loop

    async def drain(self):
        """Wait for every write scheduled so far."""
        while self._pending:
            pending = list(self._pending)
            await asyncio.gather(*(self._awaitable(p) for p in pending))
            self._pending.difference_update(pending)

    @staticmethod
    def _awaitable(pending: Pending):
        if isinstance(pending, concurrent.futures.Future):
            return asyncio.wrap_future(pending)
        return pending

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until background writes finish.

        Only futures running on the background loop are waited for.

        Returns:
            True if nothing is left pending
        """
        futures = [p for p in list(self._pending) if isinstance(p, concurrent.futures.Future)]
        if futures:
            concurrent.futures.wait(futures, timeout=timeout)
        return all(f.done() for f in futures)

    def shutdown(self, timeout: Optional[float] = 5.0):
        """Finish pending background writes and stop the loop thread."""
        self.wait(timeout)
        with self._lock:
            if self._loop is None:
                return
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout)
            self._loop.close()
            self._loop = None
            self._thread = None
