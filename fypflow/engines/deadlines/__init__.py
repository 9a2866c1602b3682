"""
Deadline Engine - sweep of passed deadlines and its periodic scheduler.
"""

from fypflow.engines.deadlines.processor import DeadlineProcessor, run_deadline_sweep
from fypflow.engines.deadlines.scheduler import DeadlineSweepScheduler

__all__ = ["DeadlineProcessor", "DeadlineSweepScheduler", "run_deadline_sweep"]
