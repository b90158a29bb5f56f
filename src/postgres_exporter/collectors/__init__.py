"""PostgreSQL statistics collectors.

Importing this package registers every built-in collector with
``default_registry``.
"""

from __future__ import annotations

from .base import NAMESPACE, BaseCollector
from .info import InfoCollector
from .locks import LocksCollector
from .registry import (
    CollectorOverrides,
    Registry,
    RegistryEntry,
    default_registry,
    register_collector,
)
from .stat_activity import StatActivityCollector
from .stat_bgwriter import StatBgwriterCollector
from .stat_database import StatDatabaseCollector

__all__ = [
    "NAMESPACE",
    "BaseCollector",
    "CollectorOverrides",
    "InfoCollector",
    "LocksCollector",
    "Registry",
    "RegistryEntry",
    "StatActivityCollector",
    "StatBgwriterCollector",
    "StatDatabaseCollector",
    "default_registry",
    "register_collector",
]
