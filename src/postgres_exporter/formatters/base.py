"""Base formatter interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..core import ScrapeResult


class BaseFormatter(ABC):
    """Abstract base class for output formatters."""

    @abstractmethod
    def format(self, result: ScrapeResult) -> str:
        """Format one scrape's samples to string."""
        ...
