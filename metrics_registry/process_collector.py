"""
Process resource collector.

Reports CPU time, file descriptors, memory and start time of one process via
psutil. Only Linux exposes every value (max fds comes from RLIMIT_NOFILE), so
the default registry registers it on Linux only.
"""

from __future__ import annotations

import logging
import os
from typing import Callable, List, Optional, Tuple

import psutil

from metrics_registry.collector import Collector
from metrics_registry.desc import Desc, build_fq_name
from metrics_registry.models import CounterValue, GaugeValue, Metric, MetricFamily, MetricType

logger = logging.getLogger(__name__)


def is_supported() -> bool:
    return bool(psutil.LINUX)


class ProcessCollector(Collector):
    """
    Collector for one process's resource usage.

    Usage:
        registry.register(ProcessCollector.for_self())
    """

    def __init__(self, pid: int, namespace: str = ""):
        self.pid = pid
        self._proc = psutil.Process(pid)

        def d(name: str, help: str) -> Desc:
            return Desc.new(build_fq_name(namespace, "", name), help)

        self._metrics: List[Tuple[Desc, MetricType, Callable[[], float]]] = [
            (d("process_cpu_seconds_total", "Total user and system CPU time spent in seconds."),
             MetricType.COUNTER, self._cpu_seconds),
            (d("process_open_fds", "Number of open file descriptors."),
             MetricType.GAUGE, lambda: float(self._proc.num_fds())),
            (d("process_max_fds", "Maximum number of open file descriptors."),
             MetricType.GAUGE, self._max_fds),
            (d("process_virtual_memory_bytes", "Virtual memory size in bytes."),
             MetricType.GAUGE, lambda: float(self._proc.memory_info().vms)),
            (d("process_resident_memory_bytes", "Resident memory size in bytes."),
             MetricType.GAUGE, lambda: float(self._proc.memory_info().rss)),
            (d("process_start_time_seconds", "Start time of the process since unix epoch in seconds."),
             MetricType.GAUGE, lambda: float(self._proc.create_time())),
        ]

    @classmethod
    def for_self(cls, namespace: str = "") -> ProcessCollector:
        return cls(os.getpid(), namespace)

    def _cpu_seconds(self) -> float:
        t = self._proc.cpu_times()
        return float(t.user + t.system)

    def _max_fds(self) -> float:
        soft, _hard = self._proc.rlimit(psutil.RLIMIT_NOFILE)
        return float(soft)

    def desc(self) -> List[Desc]:
        return [d for d, _, _ in self._metrics]

    def collect(self) -> List[MetricFamily]:
        families = []
        for d, mtype, read in self._metrics:
            value = self._read(d, read)
            if value is None:
                continue
            if mtype is MetricType.COUNTER:
                m = Metric(counter=CounterValue(value=value))
            else:
                m = Metric(gauge=GaugeValue(value=value))
            families.append(MetricFamily(name=d.fq_name, help=d.help, type=mtype, metric=[m]))
        return families

    def _read(self, d: Desc, read: Callable[[], float]) -> Optional[float]:
        try:
            return read()
        except (psutil.Error, AttributeError, OSError) as e:
            logger.debug(f"Skipping {d.fq_name} for pid {self.pid}: {e}")
            return None
