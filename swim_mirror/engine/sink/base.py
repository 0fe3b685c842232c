"""Result sink SPI."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from ...model.records import TopTime


class BaseResultSink(ABC):
    """Uniform contract for persisting one accepted record set per identity.

    ``write`` may be called again for the same identity after an invalidation;
    implementations replace the previous set rather than appending to it.
    Failures are raised as :class:`~swim_mirror.errors.SinkError`.
    """

    @abstractmethod
    def write(self, identity: str, records: Sequence[TopTime]) -> None:
        """Persist ``records`` under ``identity``."""

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""


__all__ = ["BaseResultSink"]
