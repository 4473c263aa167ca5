"""
Collector capability.

Anything the registry can gather from implements Collector: it names its
descriptors up front and produces fresh MetricFamily values on demand. The
built-in instruments (metrics_registry.instruments) and the process collector
are Collectors; user code may implement its own.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from metrics_registry.desc import Desc
from metrics_registry.models import MetricFamily


class Collector(ABC):
    """
    Base class for everything that can be registered.

    desc() MUST return the same descriptors on every call; the registry
    derives the collector's identity from them. collect() MUST be fast and
    non-blocking, since it runs under the registry's read lock. It must not
    register or unregister on the same registry; the lock is not reentrant.
    """

    @abstractmethod
    def desc(self) -> List[Desc]:
        """Descriptors of every metric this collector can produce."""

    @abstractmethod
    def collect(self) -> List[MetricFamily]:
        """Current values, as zero or more metric families."""
