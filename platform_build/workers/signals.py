"""Per-module readiness hand-off between the sync and build workers.

Each module index owns one future. The sync worker resolves it once the
checkout is current; the build worker awaits it before touching the module.
Exactly one writer and one reader exist per index, so no further locking is
needed.
"""

from __future__ import annotations

import asyncio


class ReadinessSignals:
    """Single-use readiness futures keyed by module index.

    Must be created while an event loop is running.
    """

    def __init__(self, count: int):
        loop = asyncio.get_running_loop()
        self._futures: list[asyncio.Future[None]] = [loop.create_future() for _ in range(count)]

    def __len__(self) -> int:
        return len(self._futures)

    def is_set(self, index: int) -> bool:
        fut = self._futures[index]
        return fut.done() and not fut.cancelled() and fut.exception() is None

    def set(self, index: int) -> None:
        """Mark module *index* as synced.

        Raises:
            RuntimeError: If the signal was already set or aborted.
        """
        fut = self._futures[index]
        if fut.done():
            raise RuntimeError(f"Readiness of module {index} was already signalled")
        fut.set_result(None)

    def set_all(self) -> None:
        """Mark every module still pending as synced."""
        for index, fut in enumerate(self._futures):
            if not fut.done():
                self.set(index)

    def abort(self, exc: BaseException) -> None:
        """Fail every pending signal with *exc* so waiters stop waiting."""
        for fut in self._futures:
            if not fut.done():
                fut.set_exception(exc)
                # Mark as retrieved; waiters that never come would otherwise log it.
                fut.exception()

    async def wait(self, index: int, timeout: float | None = None) -> bool:
        """Wait until module *index* is ready.

        Args:
            index: Module index.
            timeout: Seconds to wait, or ``None`` to wait indefinitely.

        Returns:
            ``True`` once ready, ``False`` if *timeout* elapsed first.

        Raises:
            Exception: Whatever the signal was aborted with.
        """
        fut = self._futures[index]
        if fut.done():
            fut.result()
            return True
        if timeout is None:
            await asyncio.shield(fut)
            return True
        try:
            await asyncio.wait_for(asyncio.shield(fut), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True
