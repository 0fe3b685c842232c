"""Fixed set of outbound proxies handed out one per worker."""

from __future__ import annotations

import random
from pathlib import Path
from threading import Lock
from typing import Iterable, List, Optional


class ProxyPool:
    """Distinct proxies for the worker identities, optionally read from a file.

    A proxy is leased to exactly one worker; ``assign`` never returns the same
    proxy twice. ``file_path`` must exist when given.
    """

    def __init__(
        self,
        proxies: Iterable[str] | None = None,
        file_path: Path | None = None,
        shuffle: bool = False,
    ) -> None:
        self._lock = Lock()
        self._proxies: List[str] = []
        self._leased: set[str] = set()
        if proxies:
            self._proxies.extend(p.strip() for p in proxies if p and p.strip())
        if file_path is not None:
            lines = file_path.read_text(encoding="utf-8").splitlines()
            self._proxies.extend(line.strip() for line in lines if line.strip())
        # Duplicates would put two workers on one network path.
        self._proxies = list(dict.fromkeys(self._proxies))
        if shuffle:
            random.shuffle(self._proxies)

    @property
    def empty(self) -> bool:
        return not self._proxies

    @property
    def available(self) -> int:
        with self._lock:
            return len(self._proxies) - len(self._leased)

    def __len__(self) -> int:
        return len(self._proxies)

    def lease(self) -> Optional[str]:
        """Return an unleased proxy, or ``None`` when the pool is exhausted."""

        with self._lock:
            for proxy in self._proxies:
                if proxy not in self._leased:
                    self._leased.add(proxy)
                    return proxy
            return None

    def assign(self, count: int) -> List[Optional[str]]:
        """Lease ``count`` distinct proxies; an empty pool means direct connections."""

        if self.empty:
            return [None] * count
        if count > self.available:
            raise ValueError(f"Requested {count} proxies but only {self.available} are free")
        return [self.lease() for _ in range(count)]


__all__ = ["ProxyPool"]
