"""
Periodic job scheduler.

Each job body is an async callable returning a JobResult. Runs are timed by
asyncio tasks independent of any foreground loop, and every result is handed
to a supervisor task through a queue. The supervisor owns the failure policy:
log and keep the schedule, so a failed cycle is simply retried on the next
tick.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class JobResult:
    """Outcome of a single job run."""

    job: str
    ok: bool
    detail: Dict[str, Any] = field(default_factory=dict)
    error: Optional[BaseException] = None
    duration: float = 0.0

    @classmethod
    def success(cls, job: str, **detail: Any) -> JobResult:
        return cls(job=job, ok=True, detail=detail)

    @classmethod
    def failure(cls, job: str, error: BaseException, **detail: Any) -> JobResult:
        return cls(job=job, ok=False, detail=detail, error=error)


JobFunc = Callable[[], Awaitable[JobResult]]


@dataclass
class PeriodicJob:
    name: str
    func: JobFunc
    interval: float
    initial_delay: float = 0.0
    runs: int = 0
    failures: int = 0
    last_result: Optional[JobResult] = None

    def __post_init__(self):
        if self.interval <= 0:
            raise ValueError(f"Job {self.name} interval must be positive")
        if self.initial_delay < 0:
            raise ValueError(f"Job {self.name} initial_delay must be non-negative")


class MarketScheduler:
    """Drives periodic jobs and supervises their results."""

    def __init__(self) -> None:
        self._jobs: Dict[str, PeriodicJob] = {}
        self._tasks: List[asyncio.Task] = []
        self._supervisor: Optional[asyncio.Task] = None
        self._results: Optional[asyncio.Queue[JobResult]] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def add_job(
        self, name: str, func: JobFunc, interval: float, initial_delay: float = 0.0
    ) -> PeriodicJob:
        if self._running:
            raise RuntimeError("Cannot add jobs while the scheduler is running")
        if name in self._jobs:
            raise ValueError(f"Job {name} already registered")
        job = PeriodicJob(name=name, func=func, interval=interval, initial_delay=initial_delay)
        self._jobs[name] = job
        return job

    def get_job(self, name: str) -> Optional[PeriodicJob]:
        return self._jobs.get(name)

    async def start(self) -> None:
        if self._running:
            return
        # Queue is created here so it binds to the running loop
        self._results = asyncio.Queue()
        self._running = True
        self._supervisor = asyncio.create_task(self._supervise(), name="market-supervisor")
        for job in self._jobs.values():
            self._tasks.append(asyncio.create_task(self._run_periodic(job), name=f"job-{job.name}"))
        logger.info(f"Scheduler started with jobs: {', '.join(self._jobs) or 'none'}")

    async def stop(self) -> None:
        """Cancel all jobs, then let the supervisor drain outstanding results."""
        if not self._running:
            return
        self._running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        if self._results is not None:
            await self._results.join()
        if self._supervisor is not None:
            self._supervisor.cancel()
            await asyncio.gather(self._supervisor, return_exceptions=True)
            self._supervisor = None
        logger.info("Scheduler stopped")

    async def run_once(self, name: str) -> JobResult:
        """Run a job immediately, outside its schedule, and supervise the result."""
        job = self._jobs[name]
        result = await self._execute(job)
        self._record(job, result)
        return result

    async def _run_periodic(self, job: PeriodicJob) -> None:
        await asyncio.sleep(job.initial_delay)
        while True:
            result = await self._execute(job)
            assert self._results is not None
            await self._results.put(result)
            await asyncio.sleep(job.interval)

    async def _execute(self, job: PeriodicJob) -> JobResult:
        started = time.monotonic()
        try:
            result = await job.func()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            result = JobResult.failure(job.name, e)
        result.duration = time.monotonic() - started
        return result

    async def _supervise(self) -> None:
        assert self._results is not None
        while True:
            result = await self._results.get()
            try:
                job = self._jobs.get(result.job)
                if job is not None:
                    self._record(job, result)
            finally:
                self._results.task_done()

    def _record(self, job: PeriodicJob, result: JobResult) -> None:
        job.runs += 1
        job.last_result = result
        if result.ok:
            logger.debug(f"Job {job.name} completed in {result.duration:.3f}s: {result.detail}")
            return
        job.failures += 1
        logger.error(
            f"Job {job.name} failed (run {job.runs}, {job.failures} failure(s)); "
            f"retrying in {job.interval}s: {result.error}",
            exc_info=result.error,
        )
