"""Infra layer utilities (storage, metrics, proxy and UA pools)."""

from .metrics import MirrorMetrics
from .proxy_pool import ProxyPool
from .storage import SQLiteManager
from .ua_pool import UserAgentPool

__all__ = ["MirrorMetrics", "ProxyPool", "SQLiteManager", "UserAgentPool"]
