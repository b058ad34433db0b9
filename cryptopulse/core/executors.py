import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, Optional

logger = logging.getLogger("Concurrency")

DEFAULT_POOL_WORKERS = 10


class ExchangeWorkerPool:
    """
    Process-wide thread pool for exchange SDKs that only offer blocking calls.
    Started and stopped by the application lifespan.
    """

    def __init__(self):
        self._pool: Optional[ThreadPoolExecutor] = None
        self.max_workers = DEFAULT_POOL_WORKERS

    @property
    def is_active(self) -> bool:
        return self._pool is not None

    def start(self, max_workers: Optional[int] = None) -> None:
        if self.is_active:
            return
        self.max_workers = max_workers or self.max_workers
        self._pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="ExchangeWorker")
        logger.info(f"🚀 Exchange worker pool started ({self.max_workers} threads)")

    def stop(self) -> None:
        pool, self._pool = self._pool, None
        if pool is None:
            return
        logger.info("🛑 Draining exchange worker pool...")
        pool.shutdown(wait=True)
        logger.info("✅ Exchange worker pool stopped")

    def get_pool(self) -> ThreadPoolExecutor:
        if self._pool is None:
            raise RuntimeError("Exchange worker pool is not running")
        return self._pool


exchange_pool = ExchangeWorkerPool()


async def run_in_pool(func: Callable, *args, **kwargs) -> Any:
    """Awaits a blocking call on the exchange worker pool."""
    if not exchange_pool.is_active:
        logger.error(f"⚠️ Blocking call to {getattr(func, '__name__', func)} refused: pool is down")
        raise RuntimeError("Exchange worker pool is not running")

    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(exchange_pool.get_pool(), partial(func, *args, **kwargs))
