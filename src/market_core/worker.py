"""Dedicated storage worker thread for blocking database calls."""

import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StorageWorker:
    """
    Runs blocking callables on a single background thread.

    Storage calls are serialized on this thread so that a slow database never
    blocks the event loop driving the scheduler or caller-facing actions.
    """

    def __init__(self, name: str = "market-storage"):
        self._name = name
        self._executor: Optional[ThreadPoolExecutor] = None

    def _ensure_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=self._name)
        return self._executor

    async def run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Execute func(*args, **kwargs) on the worker thread and await its result."""
        loop = asyncio.get_running_loop()
        call = functools.partial(func, *args, **kwargs)
        return await loop.run_in_executor(self._ensure_executor(), call)

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
            logger.debug(f"Storage worker {self._name} shut down")
