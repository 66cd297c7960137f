"""
Scheduler tick loop.

A background thread wakes every `poll_interval` seconds and, for each
registered job type, submits a scheduled run when
`now >= next_run(schedule, last_run)`. Runs execute on a thread pool with one
worker per job type so a slow or failing job never delays another.

Usage:
    scheduler = Scheduler(orchestrator, poll_interval=30)
    scheduler.start()
    # ... ticks run in background ...
    scheduler.stop()
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime
from enum import Enum
from typing import Optional

from .entities import JobTrigger, JobType
from .errors import JobAlreadyRunningError
from .orchestrator import Orchestrator


logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    """Scheduler lifecycle states."""

    STOPPED = "STOPPED"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"


class Scheduler:
    """
    Drives scheduled runs through the Orchestrator.

    Key behaviors:
    1. Each tick compares now against each job type's next run
    2. Due job types are submitted to the worker pool
    3. A job type with a run in flight is skipped until it finishes
    4. Nothing is retried; the next run waits for the next due instant
    """

    def __init__(
        self,
        orchestrator: Orchestrator,
        poll_interval: float = 30.0,
    ):
        """
        Initialize Scheduler.

        Args:
            orchestrator: Orchestrator shared with the manual trigger path
            poll_interval: Seconds between ticks
        """
        self.orchestrator = orchestrator
        self.poll_interval = poll_interval

        self._state = SchedulerState.STOPPED
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._pool: Optional[ThreadPoolExecutor] = None
        self._inflight: dict[JobType, Future] = {}
        self._inflight_lock = threading.Lock()
        self._last_tick_at: Optional[datetime] = None
        # First tick since start; job types without history are due from here
        self._baseline: Optional[datetime] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def last_tick_at(self) -> Optional[datetime]:
        return self._last_tick_at

    def is_running(self) -> bool:
        return self._state == SchedulerState.RUNNING

    # =========================================================================
    # Single Tick
    # =========================================================================

    def tick(self, now: Optional[datetime] = None) -> dict[JobType, Future]:
        """
        Submit every due job type.

        Returns:
            Futures of the runs submitted by this tick, keyed by job type
        """
        now = now or self.orchestrator.clock()
        self._last_tick_at = now
        if self._baseline is None:
            self._baseline = now
        submitted: dict[JobType, Future] = {}

        for definition in self.orchestrator.registry:
            job_type = definition.job_type

            with self._inflight_lock:
                pending = self._inflight.get(job_type)
                if pending is not None and not pending.done():
                    logger.debug(f"[{job_type.value}] Still running, skipping tick")
                    continue

            if self.orchestrator.is_running(job_type):
                logger.debug(f"[{job_type.value}] Running via manual trigger, skipping tick")
                continue

            try:
                due_at = self.orchestrator.next_run_for(job_type, now=self._baseline)
            except Exception:
                logger.exception(f"[{job_type.value}] Could not compute next run")
                continue

            if now < due_at:
                continue

            future = self._get_pool().submit(self._run_scheduled, job_type)
            with self._inflight_lock:
                self._inflight[job_type] = future
            submitted[job_type] = future

        if submitted:
            logger.info(
                f"Tick submitted: {', '.join(t.value for t in submitted)}"
            )
        return submitted

    def _run_scheduled(self, job_type: JobType) -> None:
        try:
            self.orchestrator.run(job_type, trigger=JobTrigger.SCHEDULED)
        except JobAlreadyRunningError:
            logger.info(f"[{job_type.value}] Already running, scheduled run skipped")
        except Exception:
            logger.exception(f"[{job_type.value}] Scheduled run could not be recorded")

    def _get_pool(self) -> ThreadPoolExecutor:
        if self._pool is None:
            self._pool = ThreadPoolExecutor(
                max_workers=max(1, len(self.orchestrator.registry)),
                thread_name_prefix="cron-job",
            )
        return self._pool

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for submitted runs to finish.

        Returns:
            True if nothing is left in flight
        """
        with self._inflight_lock:
            pending = [f for f in self._inflight.values() if not f.done()]
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    # =========================================================================
    # Loop
    # =========================================================================

    def start(self, blocking: bool = False) -> None:
        """
        Start the tick loop.

        Args:
            blocking: If True, run in current thread. If False, run in background.
        """
        if self._state != SchedulerState.STOPPED:
            raise RuntimeError(f"Cannot start scheduler in {self._state.value} state")

        self._stop_event.clear()
        self._baseline = None
        self._state = SchedulerState.RUNNING
        logger.info(f"Scheduler started (poll interval {self.poll_interval}s)")

        if blocking:
            self._loop()
        else:
            self._thread = threading.Thread(target=self._loop, name="cron-scheduler", daemon=True)
            self._thread.start()

    def stop(self, timeout: float = 30.0) -> None:
        """
        Stop the tick loop and wait for in-flight runs.

        Runs are never preempted; after `timeout` seconds the pool is left to
        finish on its own.
        """
        if self._state == SchedulerState.STOPPED:
            return

        logger.info("Stopping scheduler...")
        self._state = SchedulerState.STOPPING
        self._stop_event.set()

        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Scheduler thread did not stop within timeout")
        self._thread = None

        if not self.wait_idle(timeout=timeout):
            logger.warning("In-flight runs did not finish within timeout")

        if self._pool is not None:
            self._pool.shutdown(wait=False)
            self._pool = None

        self._state = SchedulerState.STOPPED
        logger.info("Scheduler stopped")

    def _loop(self) -> None:
        logger.info("Scheduler loop started")

        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Error in scheduler tick: {e}", exc_info=True)
            self._stop_event.wait(self.poll_interval)

        logger.info("Scheduler loop ended")
