"""
ThreatWatch Event Queue

FIFO of submitted events, drained on a fixed tick by a single task.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from ..exceptions import EngineNotReadyError, EngineStateError, QueueFullError
from ..events import DetectionResult, Event

logger = logging.getLogger(__name__)

EventHandler = Callable[[Event], Awaitable[DetectionResult]]


class EventQueue:
    """
    Cooperative event queue.

    Events are handled strictly in submission order, one at a time. A
    failure while handling one event is logged and the drain moves on to
    the next.
    """

    def __init__(
        self,
        handler: EventHandler,
        tick_interval: float = 1.0,
        max_size: int = 10000,
    ):
        """
        Initialize event queue.

        Args:
            handler: Coroutine that fully processes one event
            tick_interval: Seconds between periodic drains
            max_size: Maximum number of pending events
        """
        self.handler = handler
        self.tick_interval = tick_interval
        self.max_size = max_size

        self._queue: Optional[asyncio.Queue] = None
        self._wakeup: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        self._drain_task: Optional[asyncio.Task] = None
        self._running = False
        self._stats = {
            "submitted": 0,
            "processed": 0,
            "failed": 0,
        }

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue else 0

    async def start(self):
        """Start the drain loop."""
        if self._running:
            return

        self._queue = asyncio.Queue(maxsize=self.max_size)
        self._wakeup = asyncio.Event()
        self._running = True
        self._task = asyncio.create_task(self._run())

        logger.info(f"Event queue started (tick {self.tick_interval}s)")

    async def stop(self):
        """Stop the drain loop after handling everything already queued."""
        if not self._running:
            return

        self._running = False
        self._wakeup.set()

        if self._task:
            await self._task
            self._task = None

        await self.drain()
        logger.info("Event queue stopped")

    def submit(self, event: Event) -> None:
        """
        Enqueue an event without waiting for it to be processed.

        Raises:
            EngineNotReadyError: If the queue is not running
            QueueFullError: If the queue is at capacity
        """
        self._enqueue(event, None)

    async def process(self, event: Event) -> DetectionResult:
        """
        Enqueue an event, wake the drain loop and wait for its result.

        Events submitted earlier are still handled first.

        Raises:
            EngineStateError: If called from inside the drain, e.g. by a
                notification handler; use ``submit`` there instead
        """
        if self._drain_task is not None and asyncio.current_task() is self._drain_task:
            raise EngineStateError(
                "Cannot wait for an event from inside the event queue drain; use submit()"
            )

        future = asyncio.get_running_loop().create_future()
        self._enqueue(event, future)
        self._wakeup.set()
        return await future

    def _enqueue(self, event: Event, future: Optional[asyncio.Future]):
        if not self._running:
            raise EngineNotReadyError()

        try:
            self._queue.put_nowait((event, future))
        except asyncio.QueueFull:
            raise QueueFullError(
                f"Event queue is full ({self.max_size} pending events)"
            ) from None

        self._stats["submitted"] += 1

    async def _run(self):
        while self._running:
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self.tick_interval)
            except asyncio.TimeoutError:
                pass

            self._wakeup.clear()
            await self.drain()

    async def drain(self) -> int:
        """
        Handle every pending event in order.

        Returns:
            Number of events handled successfully
        """
        if self._queue is None:
            return 0

        handled = 0
        self._drain_task = asyncio.current_task()
        try:
            while not self._queue.empty():
                event, future = self._queue.get_nowait()

                try:
                    result = await self.handler(event)
                except Exception as e:
                    self._stats["failed"] += 1
                    logger.error(f"Error processing queued event {event.id}: {e}", exc_info=True)
                    if future is not None and not future.done():
                        future.set_exception(e)
                    continue
                finally:
                    self._queue.task_done()

                handled += 1
                self._stats["processed"] += 1
                if future is not None and not future.done():
                    future.set_result(result)
        finally:
            self._drain_task = None

        return handled

    def get_stats(self) -> Dict[str, Any]:
        """Get queue statistics."""
        return {
            **self._stats,
            "pending": self.pending,
            "running": self._running,
            "tick_interval": self.tick_interval,
        }
