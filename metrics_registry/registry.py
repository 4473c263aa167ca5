"""
Collector registry.

Registration invariants (checked under the write lock, all-or-nothing):
1. A descriptor id (fq_name + const label values) is accepted at most once
2. Every descriptor sharing an fq_name shares one dim hash (label names + help)
3. A collector exposes each descriptor id at most once
4. A collector is identified by the sum of its descriptor ids; equal sums
   mean "already registered"

Known names/shapes and accepted descriptor ids are never forgotten, not even
on unregister: a name keeps its shape for the lifetime of the process.

gather() takes only the read lock, merges families by name and sorts them
deterministically so repeated scrapes of the same state are byte-identical.
"""

from __future__ import annotations

import functools
import logging
import threading
from typing import Dict, List, Optional, Set

from metrics_registry.collector import Collector
from metrics_registry.errors import (
    AlreadyRegisteredError,
    DuplicateDescriptorError,
    DuplicateInCollectorError,
    InconsistentDescriptorError,
    NotRegisteredError,
    RegistrationError,
)
from metrics_registry.hashing import combine_ids
from metrics_registry.models import Metric, MetricFamily
from metrics_registry.rwlock import RWLock

logger = logging.getLogger(__name__)


def collector_id(c: Collector) -> int:
    """Structural identity of a collector: sum mod 2**64 of its distinct descriptor ids."""
    seen: Set[int] = set()
    ordered = []
    for d in c.desc():
        if d.id not in seen:
            seen.add(d.id)
            ordered.append(d.id)
    return combine_ids(ordered)


def compare_metrics(m1: Metric, m2: Metric) -> int:
    """
    Order metrics by label values, then label count, then timestamp.

    Inconsistent metrics (different label counts, identical label sets) still
    get a reproducible position. A missing timestamp means "now" and sorts last.
    """
    if len(m1.label) != len(m2.label):
        return -1 if len(m1.label) < len(m2.label) else 1

    for lp1, lp2 in zip(m1.label, m2.label):
        if lp1.value != lp2.value:
            return -1 if lp1.value < lp2.value else 1

    t1, t2 = m1.timestamp_ms, m2.timestamp_ms
    if t1 == t2:
        return 0
    if t1 is None:
        return 1
    if t2 is None:
        return -1
    return -1 if t1 < t2 else 1


metric_sort_key = functools.cmp_to_key(compare_metrics)


class Registry:
    """
    Registers collectors and gathers their metrics into sorted MetricFamilies.

    A Registry object is the shared handle: hand the same instance to any
    number of threads, they all see one core. register/unregister take the
    write lock; gather takes the read lock and may run concurrently with
    other gathers.

    Usage:
        registry = Registry()
        registry.register(Counter("jobs_total", "Jobs run"))
        families = registry.gather()
    """

    def __init__(self) -> None:
        self._lock = RWLock()
        self._collectors_by_id: Dict[int, Collector] = {}
        self._dim_hashes_by_name: Dict[str, int] = {}
        self._desc_ids: Set[int] = set()

    def register(self, c: Collector) -> None:
        """
        Include a collector in future gathers.

        Raises:
            AlreadyRegisteredError: An equal collector (same descriptor set) is registered
            DuplicateDescriptorError: A descriptor id was already accepted
            InconsistentDescriptorError: Known fq_name with another label shape or help
            DuplicateInCollectorError: The collector exposes one descriptor twice
        """
        with self._lock.write():
            try:
                self._register(c)
            except RegistrationError as e:
                logger.warning(f"Registration rejected: {e}")
                raise

    def _register(self, c: Collector) -> None:
        new_ids: Set[int] = set()
        new_dims: Dict[str, int] = {}
        cid = 0
        error: Optional[RegistrationError] = None

        for d in c.desc():
            if d.id in self._desc_ids:
                error = error or DuplicateDescriptorError(
                    f"descriptor {d!r} already exists with the same "
                    f"fully-qualified name and const label values"
                )

            known = self._dim_hashes_by_name.get(d.fq_name, new_dims.get(d.fq_name))
            if known is not None and known != d.dim_hash:
                error = error or InconsistentDescriptorError(
                    f"a previously registered descriptor with the same fully-qualified "
                    f"name as {d!r} has different label names or a different help string"
                )
            new_dims.setdefault(d.fq_name, d.dim_hash)

            if d.id in new_ids:
                error = error or DuplicateInCollectorError(
                    f"a duplicate descriptor within the same collector "
                    f"the same fully-qualified name: {d.fq_name!r}"
                )
            else:
                new_ids.add(d.id)
                cid = combine_ids((cid, d.id))

        existing = self._collectors_by_id.get(cid)
        if existing is not None:
            raise AlreadyRegisteredError(f"collector {c!r} is already registered", existing=existing)
        if error is not None:
            raise error

        self._collectors_by_id[cid] = c
        self._desc_ids.update(new_ids)
        for name, dim in new_dims.items():
            self._dim_hashes_by_name.setdefault(name, dim)
        logger.debug(f"Registered collector {cid:016x} ({len(new_ids)} descriptors)")

    def unregister(self, c: Collector) -> None:
        """
        Remove the registered collector equal to `c` (same descriptor set).

        Raises:
            NotRegisteredError: No equal collector is registered
        """
        cid = collector_id(c)
        with self._lock.write():
            if self._collectors_by_id.pop(cid, None) is None:
                raise NotRegisteredError(f"collector {c.desc()!r} is not registered")
        # dim hashes and descriptor ids stay: names must remain consistent
        # for the lifetime of the process
        logger.debug(f"Unregistered collector {cid:016x}")

    def gather(self) -> List[MetricFamily]:
        """
        Collect from every registered collector.

        Returns:
            Families in ascending name order, each with metrics sorted by
            label values (see compare_metrics)
        """
        by_name: Dict[str, MetricFamily] = {}
        with self._lock.read():
            for c in self._collectors_by_id.values():
                for mf in c.collect():
                    existing = by_name.get(mf.name)
                    if existing is None:
                        by_name[mf.name] = mf.merge_copy()
                    else:
                        # Type and help are not cross-checked between collectors
                        existing.metric.extend(mf.metric)

        for mf in by_name.values():
            mf.metric.sort(key=metric_sort_key)
        return [by_name[name] for name in sorted(by_name)]

    def collectors(self) -> List[Collector]:
        """Snapshot of the registered collectors."""
        with self._lock.read():
            return list(self._collectors_by_id.values())

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._collectors_by_id)


# ============================================================
# PROCESS-WIDE DEFAULT REGISTRY
# ============================================================

_default_registry: Optional[Registry] = None
_default_lock = threading.Lock()


def _register_process_collector(reg: Registry) -> None:
    from metrics_registry.process_collector import ProcessCollector, is_supported
    from metrics_registry.settings import Settings

    settings = Settings.load_process()
    if not settings.PROCESS_COLLECTOR or not is_supported():
        return
    reg.register(ProcessCollector.for_self(settings.PROCESS_NAMESPACE))


def default_registry() -> Registry:
    """The shared registry, created (once) on first use."""
    global _default_registry
    if _default_registry is None:
        with _default_lock:
            if _default_registry is None:
                reg = Registry()
                _register_process_collector(reg)
                logger.info(f"Default registry initialized ({len(reg)} collectors)")
                _default_registry = reg
    return _default_registry


def register(c: Collector) -> None:
    """Register `c` with the default registry."""
    default_registry().register(c)


def unregister(c: Collector) -> None:
    """Unregister the collector equal to `c` from the default registry."""
    default_registry().unregister(c)


def gather() -> List[MetricFamily]:
    """Gather the default registry."""
    return default_registry().gather()
