"""Cancellable poll streams with per-stream generation tickets."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, Optional, TypeVar

from ..api.errors import ApiError, SessionExpired
from ..logging import get_logger

logger = get_logger("kv.polling")

T = TypeVar("T")


class PollStream(Generic[T]):
    """A recurring fetch whose results are applied newest-issued-wins.

    Every fetch takes a ticket from a monotonically increasing generation
    counter. A result is applied only if its ticket is still the latest
    issued one when it arrives and the stream is active, so a slow earlier
    response can never overwrite a faster later one.
    """

    def __init__(
        self,
        name: str,
        fetch: Callable[[], Awaitable[T]],
        interval: float,
        on_update: Optional[Callable[[T], None]] = None,
        on_error: Optional[Callable[[ApiError], None]] = None,
    ):
        self.name = name
        self.fetch = fetch
        self.interval = interval
        self.on_update = on_update
        self.on_error = on_error
        self.generation = 0          # latest issued ticket
        self.applied_generation = 0  # ticket of the result in ``latest``
        self.latest: Optional[T] = None
        self._active = False
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._active

    @property
    def scheduled(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, schedule: bool = True) -> None:
        """Activate the stream; with ``schedule`` also start the timer task."""
        self._active = True
        if not schedule or self.scheduled:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name=f"poll-{self.name}")
        self._task.add_done_callback(self._on_done)

    def cancel(self) -> None:
        """Deactivate and cancel the timer without waiting (safe from sync callbacks)."""
        self._active = False
        self._stop_event.set()
        if self._task and not self._task.done():
            self._task.cancel()

    async def stop(self) -> None:
        """Deactivate, cancel the timer and wait for it to finish."""
        task = self._task
        self.cancel()
        self._task = None
        if task is None or task is asyncio.current_task():
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    def supersede(self) -> int:
        """Take the next ticket now, outdating every fetch already in flight."""
        self.generation += 1
        return self.generation

    async def poll(self, ticket: Optional[int] = None) -> bool:
        """Issue one fetch now. Returns True if its result was applied.

        ``ticket`` comes from ``supersede()`` when the caller must outdate
        in-flight fetches before its first await. ``SessionExpired``
        propagates; other ``ApiError``s are reported to ``on_error`` and
        leave ``latest`` untouched.
        """
        if ticket is None:
            ticket = self.supersede()
        try:
            result = await self.fetch()
        except SessionExpired:
            raise
        except ApiError as e:
            if self._active and ticket == self.generation:
                if self.on_error:
                    self.on_error(e)
                else:
                    logger.warning(
                        f"{self.name} poll failed, keeping previous data: {e}",
                        extra={"generation": ticket},
                    )
            return False

        if not self._active:
            logger.debug(
                f"{self.name} poll finished after stop, discarded",
                extra={"generation": ticket},
            )
            return False
        if ticket != self.generation:
            logger.debug(
                f"{self.name} poll superseded by #{self.generation}, discarded",
                extra={"generation": ticket},
            )
            return False

        self.latest = result
        self.applied_generation = ticket
        if self.on_update:
            self.on_update(result)
        return True

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.poll()
            except SessionExpired:
                logger.info(f"{self.name} poll stopped: session expired")
                self._active = False
                return

            # Wait for the interval, but exit immediately on stop
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
                break
            except asyncio.TimeoutError:
                pass

    def _on_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc:
            logger.error(f"{self.name} poll task crashed: {type(exc).__name__}: {exc}")
