"""Scheduling of periodic refresh runs."""

from .apsched_adapter import REFRESH_JOB_ID, MirrorScheduler

__all__ = ["MirrorScheduler", "REFRESH_JOB_ID"]
