"""User interface helpers."""

from .progress import MirrorProgress, ProgressState

__all__ = ["MirrorProgress", "ProgressState"]
