"""Poll cycle and periodic scheduler."""

from modbus_exporter.scheduler.engine import POLL_JOB_ID, PollScheduler
from modbus_exporter.scheduler.jobs import CycleReport, PollCycle, SchedulerState

__all__ = ["POLL_JOB_ID", "PollScheduler", "CycleReport", "PollCycle", "SchedulerState"]
