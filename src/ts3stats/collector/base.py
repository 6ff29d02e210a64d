"""
Base collector interface.

A collector is anything that can produce a batch of measurements for
one tick. The poll loop only talks to this interface, so it doesn't
care whether the data comes from a live ServerQuery session or a fake.
"""

from abc import ABC, abstractmethod
from typing import List

from ts3stats.measurement import Measurement


class MetricsCollector(ABC):
    """Interface for all metrics sources."""

    @abstractmethod
    def collect(self) -> List[Measurement]:
        """Run one full scan and return its measurements."""
        ...

    @abstractmethod
    def name(self) -> str:
        """Human-readable name for this source."""
        ...
