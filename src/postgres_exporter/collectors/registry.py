"""Startup-time registry of collector factories."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from ..errors import ConfigurationError
from .base import BaseCollector

log = logging.getLogger(__name__)

CollectorFactory = Callable[[], BaseCollector]


@dataclass(frozen=True, slots=True)
class RegistryEntry:
    name: str
    enabled_by_default: bool
    factory: CollectorFactory


@dataclass(frozen=True, slots=True)
class CollectorOverrides:
    """Explicit include/exclude on top of the enabled-by-default flags."""

    enable: frozenset[str] = field(default_factory=frozenset)
    disable: frozenset[str] = field(default_factory=frozenset)


class Registry:
    """Maps collector names to factories.

    Populated during import (see ``register_collector``) and sealed by the
    first ``resolve_enabled`` call; registering after that is an error, so
    scrapes never race with registration.
    """

    def __init__(self) -> None:
        self._entries: dict[str, RegistryEntry] = {}
        self._sealed = False

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> None:
        self._sealed = True

    def register(self, name: str, enabled_by_default: bool, factory: CollectorFactory) -> None:
        if self._sealed:
            raise ConfigurationError(f"cannot register collector {name!r}: registry is sealed")
        if name in self._entries:
            raise ConfigurationError(f"collector {name!r} is already registered")
        self._entries[name] = RegistryEntry(name, enabled_by_default, factory)

    def entries(self) -> list[RegistryEntry]:
        return list(self._entries.values())

    def names(self) -> list[str]:
        return list(self._entries)

    def is_enabled(self, name: str, overrides: CollectorOverrides | None = None) -> bool:
        overrides = overrides or CollectorOverrides()
        if name in overrides.disable:
            return False
        if name in overrides.enable:
            return True
        return self._entries[name].enabled_by_default

    def validate(self, overrides: CollectorOverrides) -> None:
        """Reject unknown collector names and names both enabled and disabled."""
        unknown = sorted((overrides.enable | overrides.disable) - self._entries.keys())
        if unknown:
            raise ConfigurationError(f"unknown collector(s): {', '.join(unknown)}")
        both = sorted(overrides.enable & overrides.disable)
        if both:
            raise ConfigurationError(
                f"collector(s) both enabled and disabled: {', '.join(both)}"
            )

    def resolve_enabled(
        self, overrides: CollectorOverrides | None = None
    ) -> tuple[BaseCollector, ...]:
        """Seal the registry and build every selected collector once.

        Any construction failure, and two collectors describing the same
        metric name, raise ConfigurationError.
        """
        overrides = overrides or CollectorOverrides()
        self.validate(overrides)
        self.seal()

        collectors: list[BaseCollector] = []
        owners: dict[str, str] = {}
        for entry in self._entries.values():
            if not self.is_enabled(entry.name, overrides):
                continue
            try:
                collector = entry.factory()
            except ConfigurationError:
                raise
            except Exception as e:
                raise ConfigurationError(
                    f"collector {entry.name!r} failed to initialise: {e}"
                ) from e

            for desc in collector.describe():
                owner = owners.setdefault(desc.name, entry.name)
                if owner != entry.name:
                    raise ConfigurationError(
                        f"metric {desc.name!r} is described by both {owner!r} and {entry.name!r}"
                    )
            collectors.append(collector)

        log.info(
            "collectors_resolved",
            extra={"collector": [c.name for c in collectors]},
        )
        return tuple(collectors)


default_registry = Registry()


def register_collector(
    name: str, enabled_by_default: bool = True
) -> Callable[[type[BaseCollector]], type[BaseCollector]]:
    """Class decorator registering a collector with ``default_registry``."""

    def decorator(cls: type[BaseCollector]) -> type[BaseCollector]:
        default_registry.register(name, enabled_by_default, cls)
        return cls

    return decorator
