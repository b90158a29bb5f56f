"""Base collector interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

from ..context import ScrapeContext
from ..db import Connection
from ..metrics import Emit, MetricDescriptor

NAMESPACE = "postgres"


class BaseCollector(ABC):
    """Abstract base class for all statistics collectors.

    A collector holds only its descriptors. Each ``update`` call is a fresh
    unit of work over the connection it is given: it issues its queries one
    after another, closing each result set before starting the next, and
    raises on the first failure. Samples emitted before the failure stay
    emitted.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry name, also used as the ``collector`` label."""
        ...

    @abstractmethod
    def describe(self) -> Iterable[MetricDescriptor]:
        """Every descriptor this collector can emit."""
        ...

    @abstractmethod
    def update(self, ctx: ScrapeContext, conn: Connection, emit: Emit) -> None:
        """Query the database and emit samples.

        Must not close *conn* and must not emit after returning.
        """
        ...
