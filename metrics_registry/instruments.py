"""
Built-in instruments.

Counter, Gauge and Histogram each hold one labelled value behind a lock and
are Collectors in their own right. The *Vec forms partition one descriptor by
variable label values and hand out a child instrument per combination.

Usage:
    requests = CounterVec(Opts("requests_total", "Handled requests"), ["code"])
    registry.register(requests)
    requests.with_label_values("200").inc()
"""

from __future__ import annotations

import bisect
import math
import threading
from abc import abstractmethod
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from metrics_registry.collector import Collector
from metrics_registry.desc import Desc, Opts
from metrics_registry.errors import DescriptorError, MetricsError
from metrics_registry.models import (
    Bucket,
    CounterValue,
    GaugeValue,
    HistogramValue,
    Metric,
    MetricFamily,
    MetricType,
)

DEFAULT_BUCKETS: Tuple[float, ...] = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


def check_buckets(buckets: Sequence[float]) -> Tuple[float, ...]:
    """
    Validate histogram upper bounds.

    A trailing +Inf is dropped; the encoders always emit the +Inf bucket.

    Raises:
        MetricsError: If no finite bounds remain or bounds are not increasing
    """
    bounds = [float(b) for b in buckets]
    if bounds and math.isinf(bounds[-1]) and bounds[-1] > 0:
        bounds.pop()
    if not bounds:
        raise MetricsError("histogram needs at least one finite bucket")
    for lo, hi in zip(bounds, bounds[1:]):
        if hi <= lo:
            raise MetricsError(f"histogram buckets must be strictly increasing: {lo} >= {hi}")
    return tuple(bounds)


class _Instrument(Collector):
    metric_type: MetricType

    def _bind(self, desc: Desc, label_values: Sequence[str]) -> None:
        self._desc = desc
        self._labels = desc.label_pairs(label_values)
        self._lock = threading.Lock()

    @classmethod
    def _child(cls, desc: Desc, label_values: Sequence[str], **kwargs):
        obj = cls.__new__(cls)
        obj._bind(desc, label_values)
        obj._reset(**kwargs)
        return obj

    @abstractmethod
    def _reset(self, **kwargs) -> None:
        """Put the value back to its initial state."""

    @abstractmethod
    def metric(self) -> Metric:
        """Current value as a Metric."""

    def desc(self) -> List[Desc]:
        return [self._desc]

    def collect(self) -> List[MetricFamily]:
        return [MetricFamily(
            name=self._desc.fq_name,
            help=self._desc.help,
            type=self.metric_type,
            metric=[self.metric()],
        )]


class Counter(_Instrument):
    """Monotonically increasing value."""

    metric_type = MetricType.COUNTER

    def __init__(self, name: str, help: str, *, namespace: str = "", subsystem: str = "",
                 const_labels: Optional[Mapping[str, str]] = None):
        opts = Opts(name, help, namespace, subsystem, dict(const_labels or {}))
        self._bind(opts.describe(), ())
        self._reset()

    def _reset(self) -> None:
        self._value = 0.0

    def inc(self) -> None:
        self.inc_by(1.0)

    def inc_by(self, v: float) -> None:
        if v < 0:
            raise MetricsError(f"counter {self._desc.fq_name} cannot decrease (inc_by {v})")
        with self._lock:
            self._value += v

    def get(self) -> float:
        with self._lock:
            return self._value

    def metric(self) -> Metric:
        return Metric(label=list(self._labels), counter=CounterValue(value=self.get()))


class Gauge(_Instrument):
    """Value that can go up and down."""

    metric_type = MetricType.GAUGE

    def __init__(self, name: str, help: str, *, namespace: str = "", subsystem: str = "",
                 const_labels: Optional[Mapping[str, str]] = None):
        opts = Opts(name, help, namespace, subsystem, dict(const_labels or {}))
        self._bind(opts.describe(), ())
        self._reset()

    def _reset(self) -> None:
        self._value = 0.0

    def set(self, v: float) -> None:
        with self._lock:
            self._value = float(v)

    def add(self, v: float) -> None:
        with self._lock:
            self._value += v

    def sub(self, v: float) -> None:
        self.add(-v)

    def inc(self) -> None:
        self.add(1.0)

    def dec(self) -> None:
        self.add(-1.0)

    def get(self) -> float:
        with self._lock:
            return self._value

    def metric(self) -> Metric:
        return Metric(label=list(self._labels), gauge=GaugeValue(value=self.get()))


class Histogram(_Instrument):
    """Observations counted into cumulative buckets, plus their sum and count."""

    metric_type = MetricType.HISTOGRAM

    def __init__(self, name: str, help: str, *, buckets: Sequence[float] = DEFAULT_BUCKETS,
                 namespace: str = "", subsystem: str = "",
                 const_labels: Optional[Mapping[str, str]] = None):
        opts = Opts(name, help, namespace, subsystem, dict(const_labels or {}))
        self._bind(opts.describe(), ())
        self._reset(buckets=check_buckets(buckets))

    def _reset(self, buckets: Tuple[float, ...] = DEFAULT_BUCKETS) -> None:
        self._upper_bounds = buckets
        self._counts = [0] * len(buckets)
        self._sum = 0.0
        self._count = 0

    def observe(self, v: float) -> None:
        i = bisect.bisect_left(self._upper_bounds, v)
        with self._lock:
            if i < len(self._counts):
                self._counts[i] += 1
            self._sum += v
            self._count += 1

    def get_sample_count(self) -> int:
        with self._lock:
            return self._count

    def get_sample_sum(self) -> float:
        with self._lock:
            return self._sum

    def metric(self) -> Metric:
        with self._lock:
            counts = list(self._counts)
            total, count = self._sum, self._count
        buckets = []
        cumulative = 0
        for upper, n in zip(self._upper_bounds, counts):
            cumulative += n
            buckets.append(Bucket(cumulative_count=cumulative, upper_bound=upper))
        return Metric(
            label=list(self._labels),
            histogram=HistogramValue(sample_count=count, sample_sum=total, bucket=buckets),
        )


class MetricVec(Collector):
    """One descriptor partitioned by variable label values."""

    child_type = _Instrument

    def __init__(self, opts: Opts, label_names: Sequence[str], **child_kwargs):
        self._desc = opts.describe(label_names)
        self._child_kwargs = child_kwargs
        self._children: Dict[Tuple[str, ...], _Instrument] = {}
        self._lock = threading.Lock()

    def desc(self) -> List[Desc]:
        return [self._desc]

    def with_label_values(self, *values: str):
        """Child for the given label values (in label-name declaration order)."""
        key = tuple(str(v) for v in values)
        with self._lock:
            child = self._children.get(key)
            if child is None:
                child = self.child_type._child(self._desc, key, **self._child_kwargs)
                self._children[key] = child
            return child

    def with_labels(self, labels: Mapping[str, str]):
        """Child for a label-name to label-value mapping."""
        return self.with_label_values(*self._values_for(labels))

    def remove_label_values(self, *values: str) -> bool:
        with self._lock:
            return self._children.pop(tuple(str(v) for v in values), None) is not None

    def remove_labels(self, labels: Mapping[str, str]) -> bool:
        return self.remove_label_values(*self._values_for(labels))

    def reset(self) -> None:
        with self._lock:
            self._children.clear()

    def _values_for(self, labels: Mapping[str, str]) -> List[str]:
        expected = self._desc.variable_labels
        if len(labels) != len(expected) or set(labels) != set(expected):
            raise DescriptorError(
                f"{self._desc.fq_name}: label names {sorted(labels)} do not match {list(expected)}"
            )
        return [str(labels[name]) for name in expected]

    def collect(self) -> List[MetricFamily]:
        with self._lock:
            children = list(self._children.values())
        if not children:
            # A family with no metrics cannot be encoded
            return []
        return [MetricFamily(
            name=self._desc.fq_name,
            help=self._desc.help,
            type=self.child_type.metric_type,
            metric=[c.metric() for c in children],
        )]


class CounterVec(MetricVec):
    child_type = Counter


class GaugeVec(MetricVec):
    child_type = Gauge


class HistogramVec(MetricVec):
    child_type = Histogram

    def __init__(self, opts: Opts, label_names: Sequence[str], buckets: Sequence[float] = DEFAULT_BUCKETS):
        super().__init__(opts, label_names, buckets=check_buckets(buckets))
