"""User-Agent pool abstraction."""

from __future__ import annotations

from typing import Iterable, List, Optional


class UserAgentPool:
    """Pick user agents for worker sessions from the configured list."""

    def __init__(self, user_agents: Iterable[str] | None = None) -> None:
        self._uas: List[str] = []
        if user_agents:
            self._uas.extend(ua.strip() for ua in user_agents if ua.strip())

    def assign(self, count: int) -> List[Optional[str]]:
        """One agent per session, cycling through the list in order."""

        if not self._uas:
            return [None] * count
        return [self._uas[index % len(self._uas)] for index in range(count)]


__all__ = ["UserAgentPool"]
