"""Per-source polling loops on top of APScheduler.

Each source owns one job (``poll:<source>``) with a one-shot DateTrigger.
When a cycle finishes, successfully or not, the job re-arms itself
``poll_interval_seconds`` later, so a slow cycle never overlaps the next one
of the same loop. If APScheduler drops the job (error, misfire, instance
limit), an event listener re-arms it.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable

from apscheduler.events import (
    EVENT_JOB_ERROR,
    EVENT_JOB_MAX_INSTANCES,
    EVENT_JOB_MISSED,
    JobEvent,
)
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from carwatch.ingestion.normalize import Source
from carwatch.jobs import CycleResult

logger = logging.getLogger(__name__)

CycleRunner = Callable[[Source], CycleResult]

_JOB_PREFIX = "poll:"
_SUPERVISED_EVENTS = EVENT_JOB_ERROR | EVENT_JOB_MISSED | EVENT_JOB_MAX_INSTANCES


def loop_job_id(source: Source) -> str:
    return f"{_JOB_PREFIX}{source.value}"


class PollScheduler:
    """Owns the polling loop of every source and their lifecycle."""

    def __init__(
        self,
        run_cycle: CycleRunner,
        sources: list[Source],
        interval_seconds: float,
        scheduler: BackgroundScheduler | None = None,
    ) -> None:
        self._run_cycle = run_cycle
        self._sources = list(sources)
        self._interval = interval_seconds
        self._scheduler = scheduler or BackgroundScheduler(
            job_defaults={"coalesce": True, "max_instances": 2, "misfire_grace_time": 60},
        )
        self._scheduler.add_listener(self._on_job_event, _SUPERVISED_EVENTS)
        self._lock = threading.Lock()
        self._lifecycle_lock = threading.Lock()
        self._last_results: dict[Source, CycleResult] = {}
        # A loop's one-shot job leaves the job store when it fires; while its
        # cycle runs the source is tracked here instead.
        self._in_cycle: set[Source] = set()
        self._running = False
        self._stopped = False

    @property
    def sources(self) -> list[Source]:
        return list(self._sources)

    @property
    def running(self) -> bool:
        return self._running

    def _ensure_scheduler(self) -> None:
        with self._lifecycle_lock:
            if self._stopped:
                raise RuntimeError("Polling has been stopped")
            if self._running:
                return
            self._scheduler.start()
            self._running = True

    def start(self) -> None:
        """Start the scheduler and run a first cycle of every idle source right away.

        Raises RuntimeError after stop().
        """
        self._ensure_scheduler()
        armed = [s for s in self._sources if not self._loop_scheduled(s)]
        for source in armed:
            self._arm(source, delay_seconds=0)
        if armed:
            logger.info(
                "Polling started for %s every %ss",
                ", ".join(s.value for s in armed), self._interval,
            )

    def stop(self, wait: bool = False) -> None:
        """Stop re-arming loops and shut the scheduler down. Final."""
        with self._lifecycle_lock:
            self._stopped = True
            if not self._running:
                return
            self._running = False
        self._scheduler.shutdown(wait=wait)
        logger.info("Polling stopped")

    def trigger(self, source: Source) -> str:
        """Request an immediate cycle for a source.

        Starts the scheduler if needed. If the source's loop is not
        scheduled it is armed to run now ("started"). Otherwise an extra
        one-off cycle runs alongside the loop ("triggered").

        Raises ValueError for a source that is not polled and RuntimeError
        after stop().
        """
        if source not in self._sources:
            raise ValueError(f"Source '{source.value}' is not polled")
        self._ensure_scheduler()

        if not self._loop_scheduled(source):
            self._arm(source, delay_seconds=0)
            return "started"

        self._scheduler.add_job(
            self._run_once,
            args=[source],
            name=f"Manual poll {source.value}",
        )
        return "triggered"

    def last_result(self, source: Source) -> CycleResult | None:
        with self._lock:
            return self._last_results.get(source)

    def status(self) -> list[dict]:
        """Per-source snapshot: next wake time and last cycle outcome."""
        snapshot = []
        for source in self._sources:
            job = self._scheduler.get_job(loop_job_id(source)) if self._running else None
            next_run = getattr(job, "next_run_time", None) if job is not None else None
            with self._lock:
                in_cycle = source in self._in_cycle
            last = self.last_result(source)
            snapshot.append({
                "source": source.value,
                "scheduled": self._running and (job is not None or in_cycle),
                "next_run_at": next_run.isoformat() if next_run else None,
                "last_started_at": last.started_at if last else None,
                "last_finished_at": last.finished_at if last else None,
                "last_fetched": last.fetched if last else None,
                "last_inserted": last.inserted if last else None,
                "last_error": last.error if last else None,
            })
        return snapshot

    # -- internals ---------------------------------------------------------

    def _loop_scheduled(self, source: Source) -> bool:
        with self._lock:
            if source in self._in_cycle:
                return True
        return self._scheduler.get_job(loop_job_id(source)) is not None

    def _arm(self, source: Source, delay_seconds: float) -> None:
        run_date = datetime.now(timezone.utc) + timedelta(seconds=delay_seconds)
        self._scheduler.add_job(
            self._run_loop_cycle,
            trigger=DateTrigger(run_date=run_date),
            args=[source],
            id=loop_job_id(source),
            name=f"Poll {source.value}",
            replace_existing=True,
        )

    def _run_once(self, source: Source) -> None:
        try:
            result = self._run_cycle(source)
        except Exception:
            logger.exception("Unhandled error in %s cycle", source.value)
            return
        with self._lock:
            self._last_results[source] = result

    def _run_loop_cycle(self, source: Source) -> None:
        with self._lock:
            self._in_cycle.add(source)
        try:
            self._run_once(source)
        finally:
            try:
                if self._running:
                    self._arm(source, delay_seconds=self._interval)
            finally:
                with self._lock:
                    self._in_cycle.discard(source)

    def _on_job_event(self, event: JobEvent) -> None:
        if not self._running:
            return
        for source in self._sources:
            if event.job_id == loop_job_id(source):
                logger.warning(
                    "Poll job for %s dropped by scheduler (event %s); re-arming",
                    source.value, event.code,
                )
                self._arm(source, delay_seconds=self._interval)
                return
