import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from cryptopulse.core.exceptions import SignalQueueFullError
from cryptopulse.risk.models import Signal, utcnow

logger = logging.getLogger("SignalQueue")


class QueuedSignal:
    __slots__ = ("signal", "future", "enqueued_at", "cancelled")

    def __init__(self, signal: Signal, future: asyncio.Future):
        self.signal = signal
        self.future = future
        self.enqueued_at: datetime = utcnow()
        self.cancelled = False


class SignalQueue:
    """
    Bounded FIFO between signal arrival and the bot's single worker.

    Design:
    - put(): blocking backpressure with a timeout (signals are never dropped silently).
    - cancel(): marks a queued entry; the worker skips it when it reaches the head.
    - An entry leaves the pending index as soon as the worker takes it, after which
      it can no longer be cancelled.
    """

    def __init__(self, maxsize: int = 1000, put_timeout: float = 5.0):
        self.maxsize = maxsize
        self.put_timeout = put_timeout
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._pending: Dict[str, QueuedSignal] = {}

        # Stats for monitoring
        self.enqueued = 0
        self.cancelled = 0

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, signal_id: str) -> bool:
        return signal_id in self._pending

    async def put(self, signal: Signal) -> QueuedSignal:
        entry = QueuedSignal(signal, asyncio.get_running_loop().create_future())
        self._pending[signal.id] = entry
        try:
            await asyncio.wait_for(self._queue.put(entry), timeout=self.put_timeout)
        except asyncio.TimeoutError as e:
            self._pending.pop(signal.id, None)
            logger.error(f"❌ Signal queue full ({self.maxsize}): could not enqueue {signal.id} within {self.put_timeout}s")
            raise SignalQueueFullError(f"signal queue full, {signal.id} not accepted") from e

        self.enqueued += 1
        return entry

    async def get(self) -> QueuedSignal:
        """Next live entry in arrival order."""
        while True:
            entry: QueuedSignal = await self._queue.get()
            self._queue.task_done()
            if entry.cancelled:
                continue
            self._pending.pop(entry.signal.id, None)
            return entry

    def cancel(self, signal_id: str) -> Optional[QueuedSignal]:
        entry = self._pending.pop(signal_id, None)
        if entry is None:
            return None
        entry.cancelled = True
        self.cancelled += 1
        return entry

    def pending_for_symbol(self, symbol: str) -> List[QueuedSignal]:
        return [e for e in self._pending.values() if e.signal.symbol == symbol]

    def pending(self) -> List[QueuedSignal]:
        return list(self._pending.values())

    def get_stats(self) -> Dict[str, Any]:
        """Returns queue statistics for monitoring."""
        return {
            "queue_size": len(self._pending),
            "queue_max": self.maxsize,
            "queue_usage": f"{len(self._pending) / self.maxsize * 100:.1f}%",
            "signals_enqueued": self.enqueued,
            "signals_cancelled": self.cancelled,
        }
