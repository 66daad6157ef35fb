"""APScheduler engine driving periodic poll cycles."""

import asyncio
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from modbus_exporter.logging import get_logger
from modbus_exporter.scheduler.jobs import CycleReport, PollCycle, SchedulerState

logger = get_logger(__name__)

POLL_JOB_ID = "modbus_poll"


class PollScheduler:
    """
    Runs a PollCycle on a fixed interval.

    State machine: IDLE -> READING -> DECODING -> EXPORTING -> IDLE, with a
    terminal STOPPED state. Ticks sit on a fixed grid measured from start,
    not from the end of the previous cycle. Only one cycle runs at a time;
    a tick that fires while a cycle is still running is skipped, so a slow
    cycle costs at most one tick instead of pushing every later tick back.
    """

    def __init__(self, cycle: PollCycle, interval_s: float, job_id: str = POLL_JOB_ID):
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self.cycle = cycle
        self.interval_s = interval_s
        self.job_id = job_id

        self._state = SchedulerState.IDLE
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._stop_requested = False
        self._stopped = asyncio.Event()

        self.cycles_run = 0
        self.failed_cycles = 0
        self.consecutive_failed_cycles = 0
        self.last_report: Optional[CycleReport] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._state != SchedulerState.STOPPED

    def _set_state(self, state: SchedulerState) -> None:
        if state != self._state:
            logger.debug(f"Scheduler state {self._state.value} -> {state.value}")
        self._state = state

    async def start(self) -> None:
        """
        Start ticking. The first cycle runs immediately.

        Must be awaited from the event loop that will run the cycles.
        """
        if self._state == SchedulerState.STOPPED:
            raise RuntimeError("Scheduler has been stopped and cannot be restarted")
        if self._scheduler is not None:
            logger.warning("Scheduler already started")
            return

        self._scheduler = AsyncIOScheduler(
            event_loop=asyncio.get_running_loop(),
            timezone=timezone.utc,
        )
        self._scheduler.add_job(
            self._tick,
            trigger=IntervalTrigger(seconds=self.interval_s, timezone=timezone.utc),
            id=self.job_id,
            name="Modbus Register Polling",
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            f"Poll scheduler started: interval={self.interval_s}s, "
            f"ranges={len(self.cycle.ranges)}, sinks={[s.name for s in self.cycle.sinks]}"
        )

    def stop(self) -> None:
        """
        Request a stop.

        From IDLE the scheduler stops at once. During a cycle no further tick
        is scheduled and the in-flight reads/exports are left to finish (or
        time out); the scheduler stops when that cycle ends.
        """
        if self._state == SchedulerState.STOPPED:
            return
        self._stop_requested = True

        if self._scheduler is not None and self._scheduler.get_job(self.job_id) is not None:
            self._scheduler.remove_job(self.job_id)

        if self._state == SchedulerState.IDLE:
            self._finish_stop()
        else:
            logger.info(f"Stop requested during {self._state.value}; waiting for the cycle to finish")

    def _finish_stop(self) -> None:
        if self._state == SchedulerState.STOPPED:
            return
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        self._set_state(SchedulerState.STOPPED)
        self._stopped.set()
        logger.info("Poll scheduler stopped")

    async def wait_stopped(self) -> None:
        """Wait until the scheduler reaches STOPPED."""
        await self._stopped.wait()

    async def _tick(self) -> None:
        """Run one cycle; failures are reported, never propagated to APScheduler."""
        if self._stop_requested:
            return

        try:
            report = await self.cycle.run(on_state=self._set_state)
            self.last_report = report
            if report.ok:
                self.consecutive_failed_cycles = 0
            else:
                self.failed_cycles += 1
                self.consecutive_failed_cycles += 1
        except Exception as e:
            self.failed_cycles += 1
            self.consecutive_failed_cycles += 1
            logger.error(f"Error executing poll cycle: {e}", exc_info=True)
        finally:
            self.cycles_run += 1
            if self._stop_requested:
                # Shut down once this job has completed so APScheduler does not
                # cancel the task that is finishing right now
                asyncio.get_running_loop().call_soon(self._finish_stop)
            else:
                self._set_state(SchedulerState.IDLE)

    def status(self) -> dict:
        """Snapshot of scheduler state and counters."""
        return {
            "state": self._state.value,
            "interval_s": self.interval_s,
            "cycles_run": self.cycles_run,
            "failed_cycles": self.failed_cycles,
            "consecutive_failed_cycles": self.consecutive_failed_cycles,
            "last_cycle": self.last_report.to_dict() if self.last_report else None,
        }
