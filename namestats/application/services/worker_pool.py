"""Worker pool — a fixed set of asyncio tasks polling the job queue."""

import asyncio
import logging
import os
import socket
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from namestats.application.services.job_processor import JobProcessor

logger = logging.getLogger(__name__)


@dataclass
class UnitCounters:
    """Job tallies owned by a single unit; the pool only reads them."""

    in_flight: int = 0
    succeeded: int = 0
    failed: int = 0


class WorkerPool:
    """Runs ``concurrency`` independent poll loops against one JobProcessor.

    Each unit claims and processes at most one job per tick, then waits
    ``poll_interval`` seconds or until shutdown. Units share no state; the
    job queue's atomic claim is the only coordination.

    A pool goes idle → running → stopping → stopped and cannot be restarted.
    """

    def __init__(
        self,
        processor: JobProcessor,
        concurrency: int = 4,
        poll_interval: float = 5.0,
        shutdown_timeout: float = 30.0,
        abort_grace: float = 5.0,
        stale_after: float | None = 3600.0,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be a positive integer")
        self._processor = processor
        self._concurrency = concurrency
        self._poll_interval = poll_interval
        self._shutdown_timeout = shutdown_timeout
        self._abort_grace = abort_grace
        self._stale_after = stale_after
        self._worker_prefix = f"{socket.gethostname()}-{os.getpid()}"

        self._state = "idle"
        self._stopping: asyncio.Event | None = None
        self._tasks: list[asyncio.Task] = []
        self._counters: dict[str, UnitCounters] = {}

    @property
    def state(self) -> str:
        return self._state

    @property
    def in_flight(self) -> int:
        return sum(c.in_flight for c in self._counters.values())

    def status(self) -> dict[str, Any]:
        return {
            "state": self._state,
            "concurrency": self._concurrency,
            "in_flight": self.in_flight,
            "succeeded": sum(c.succeeded for c in self._counters.values()),
            "failed": sum(c.failed for c in self._counters.values()),
        }

    # ── Lifecycle ────────────────────────────────────────────────────

    async def start(self, shutdown: asyncio.Event | None = None) -> None:
        """Spawn the worker tasks. Setting *shutdown* makes every unit exit."""
        if self._state == "stopped":
            raise RuntimeError("a stopped worker pool cannot be restarted")
        if self._state != "idle":
            raise RuntimeError("worker pool already started")

        if self._stale_after is not None:
            cutoff = datetime.now(timezone.utc) - timedelta(seconds=self._stale_after)
            await self._processor.requeue_stale(cutoff)

        self._stopping = shutdown or asyncio.Event()
        self._tasks = [
            asyncio.create_task(
                self._unit(f"{self._worker_prefix}-{n}"), name=f"namestats-worker-{n}"
            )
            for n in range(1, self._concurrency + 1)
        ]
        self._state = "running"
        logger.info(
            "WorkerPool started: %d unit(s), poll interval %.1fs",
            self._concurrency,
            self._poll_interval,
        )

    async def stop(self, timeout: float | None = None) -> None:
        """Stop every unit and wait for in-flight jobs to return.

        After *timeout* seconds (default ``shutdown_timeout``) the processor's
        abort signal is raised so running parses give up; units still running
        ``abort_grace`` seconds later are cancelled.
        """
        if self._state in ("idle", "stopped"):
            self._state = "stopped"
            return

        self._state = "stopping"
        self._stopping.set()
        timeout = self._shutdown_timeout if timeout is None else timeout

        _, pending = await asyncio.wait(self._tasks, timeout=timeout)
        if pending:
            logger.warning(
                "%d unit(s) still busy after %.1fs, aborting running jobs",
                len(pending),
                timeout,
            )
            self._processor.abort.set()
            _, pending = await asyncio.wait(pending, timeout=self._abort_grace)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.error("Cancelled %d unit(s) that ignored the abort signal", len(pending))

        self._tasks = []
        self._state = "stopped"
        logger.info("WorkerPool stopped")

    # ── Units ────────────────────────────────────────────────────────

    async def process_next(self, worker_id: str) -> bool:
        """Claim and process a single job. Returns False when the queue was empty."""
        job = await self._processor.claim_next(worker_id)
        if job is None:
            return False

        counters = self._counters.setdefault(worker_id, UnitCounters())
        counters.in_flight += 1
        try:
            if await self._processor.process(job):
                counters.succeeded += 1
            else:
                counters.failed += 1
        finally:
            counters.in_flight -= 1
        return True

    async def _unit(self, worker_id: str) -> None:
        logger.debug("Worker %s started", worker_id)
        while not self._stopping.is_set():
            try:
                await self.process_next(worker_id)
            except Exception:
                logger.exception("Worker %s polling error", worker_id)

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                pass
        logger.debug("Worker %s stopped", worker_id)
