"""
Registry behaviour: register, unregister, gather ordering.

Run with: pytest tests/test_registry.py -v
"""

from typing import List

import pytest

from metrics_registry.collector import Collector
from metrics_registry.desc import Desc, Opts
from metrics_registry.errors import (
    AlreadyRegisteredError,
    DuplicateDescriptorError,
    DuplicateInCollectorError,
    InconsistentDescriptorError,
    NotRegisteredError,
)
from metrics_registry.instruments import Counter, CounterVec, Gauge
from metrics_registry.models import (
    CounterValue,
    LabelPair,
    Metric,
    MetricFamily,
    MetricType,
)
from metrics_registry.registry import Registry, collector_id


class MultipleCollector(Collector):
    """Collector backing several families with its own descriptor list."""

    def __init__(self, counters: List[Counter], descs: List[Desc] = None):
        self.counters = counters
        self.descs = descs if descs is not None else [d for c in counters for d in c.desc()]

    def desc(self):
        return self.descs

    def collect(self):
        out = []
        for c in self.counters:
            c.inc()
            out.extend(c.collect())
        return out


class StaticCollector(Collector):
    """Returns prebuilt families verbatim."""

    def __init__(self, desc: Desc, families: List[MetricFamily]):
        self._desc = desc
        self.families = families

    def desc(self):
        return [self._desc]

    def collect(self):
        return self.families


class TestRegister:
    """Registration and its consistency checks."""

    def test_register_gather_unregister(self, registry):
        counter = Counter("test", "test help")
        registry.register(counter)
        counter.inc()

        mfs = registry.gather()
        assert len(mfs) == 1
        assert mfs[0].name == "test"
        assert mfs[0].type == MetricType.COUNTER
        assert mfs[0].metric[0].counter.value == 1.0

        registry.unregister(counter)
        assert registry.gather() == []

    def test_register_same_collector_twice(self, registry):
        counter = Counter("test", "test help")
        registry.register(counter)

        with pytest.raises(AlreadyRegisteredError) as exc:
            registry.register(counter)
        assert exc.value.existing is counter

        # First registration stays active
        assert [mf.name for mf in registry.gather()] == ["test"]

    def test_register_structurally_equal_collector(self, registry):
        first = Counter("test", "test help", const_labels={"a": "1"})
        second = Counter("test", "test help", const_labels={"a": "1"})
        registry.register(first)

        with pytest.raises(AlreadyRegisteredError) as exc:
            registry.register(second)
        assert exc.value.existing is first

    def test_duplicate_descriptor_in_other_collector(self, registry):
        registry.register(Counter("c1", "c1 help"))
        mc = MultipleCollector([Counter("c1", "c1 help"), Counter("c2", "c2 help")])

        with pytest.raises(DuplicateDescriptorError):
            registry.register(mc)

    def test_inconsistent_label_names(self, registry):
        registry.register(Counter("test", "test help", const_labels={"x": "1"}))
        vec = CounterVec(Opts("test", "test help", const_labels={"x": "2"}), ["method"])

        with pytest.raises(InconsistentDescriptorError):
            registry.register(vec)

    def test_inconsistent_help(self, registry):
        registry.register(Gauge("test", "first help", const_labels={"x": "1"}))

        with pytest.raises(InconsistentDescriptorError):
            registry.register(Gauge("test", "second help", const_labels={"x": "2"}))

    def test_compatible_const_label_variants(self, registry):
        registry.register(Gauge("test", "test help", const_labels={"x": "1"}))
        registry.register(Gauge("test", "test help", const_labels={"x": "2"}))

        mfs = registry.gather()
        assert len(mfs) == 1
        assert [m.label[0].value for m in mfs[0].metric] == ["1", "2"]

    def test_duplicate_within_collector(self, registry):
        c = Counter("dup", "dup help")
        mc = MultipleCollector([c], descs=[c.desc()[0], c.desc()[0]])

        with pytest.raises(DuplicateInCollectorError):
            registry.register(mc)
        assert len(registry) == 0

    def test_register_multiple_collector(self, registry):
        mc = MultipleCollector([Counter("c1", "c1 is a counter"), Counter("c2", "c2 is a counter")])
        registry.register(mc)

        mfs = registry.gather()
        assert [mf.name for mf in mfs] == ["c1", "c2"]
        assert all(mf.metric[0].counter.value == 1.0 for mf in mfs)


class TestUnregister:
    """Unregistration by structural identity."""

    def test_unregister_twice(self, registry):
        counter = Counter("test", "test help")
        registry.register(counter)

        registry.unregister(counter)
        with pytest.raises(NotRegisteredError):
            registry.unregister(counter)

    def test_unregister_equal_collector(self, registry):
        registry.register(Counter("test", "test help"))

        # A separately built but equal collector identifies the registration
        registry.unregister(Counter("test", "test help"))
        assert len(registry) == 0

    def test_unregister_unknown(self, registry):
        with pytest.raises(NotRegisteredError):
            registry.unregister(Counter("never", "never registered"))

    def test_collector_id_ignores_duplicates_and_order(self):
        a = Counter("a", "a help")
        b = Counter("b", "b help")
        ab = MultipleCollector([a, b])
        ba = MultipleCollector([b, a], descs=[b.desc()[0], a.desc()[0], b.desc()[0]])
        assert collector_id(ab) == collector_id(ba)


class TestGather:
    """Snapshot merging and deterministic ordering."""

    def test_empty_registry(self, registry):
        assert registry.gather() == []

    def test_gather_order_by_name(self, registry):
        counter_a = Counter("test_a_counter", "test help")
        counter_b = Counter("test_b_counter", "test help")
        counter_2 = Counter("test_2_counter", "test help")
        registry.register(counter_b)
        registry.register(counter_2)
        registry.register(counter_a)

        mfs = registry.gather()
        assert [mf.name for mf in mfs] == ["test_2_counter", "test_a_counter", "test_b_counter"]

    def test_gather_order_by_label_values(self, registry):
        opts = Opts("test", "test help", const_labels={"a": "1", "b": "2"})
        counter_vec = CounterVec(opts, ["cc", "c1", "a2", "c0"])
        registry.register(counter_vec)

        counter_vec.with_labels({"cc": "12", "c1": "a1", "a2": "0", "c0": "hello"}).inc()

        map2 = {"cc": "12", "c1": "0", "a2": "0", "c0": "hello"}
        for _ in range(2):
            counter_vec.with_labels(map2).inc()

        map3 = {"cc": "12", "c1": "0", "a2": "da", "c0": "hello"}
        for _ in range(3):
            counter_vec.with_labels(map3).inc()

        map4 = {"cc": "12", "c1": "0", "a2": "da", "c0": "你好"}
        for _ in range(4):
            counter_vec.with_labels(map4).inc()

        mfs = registry.gather()
        assert len(mfs) == 1
        ms = mfs[0].metric
        assert len(ms) == 4
        assert [int(m.counter.value) for m in ms] == [2, 1, 3, 4]
        assert [lp.name for lp in ms[0].label] == ["a", "a2", "b", "c0", "c1", "cc"]

    def test_merges_same_named_families(self, registry):
        desc_x = Desc.new("shared", "shared help", const_labels={"src": "x"})
        desc_y = Desc.new("shared", "shared help", const_labels={"src": "y"})

        def family(src):
            return MetricFamily(
                name="shared", help="shared help", type=MetricType.COUNTER,
                metric=[Metric(label=[LabelPair(name="src", value=src)], counter=CounterValue(value=1))],
            )

        registry.register(StaticCollector(desc_y, [family("y")]))
        registry.register(StaticCollector(desc_x, [family("x")]))

        mfs = registry.gather()
        assert len(mfs) == 1
        assert [m.label[0].value for m in mfs[0].metric] == ["x", "y"]

    def test_merge_does_not_mutate_collector_output(self, registry):
        desc_x = Desc.new("shared", "shared help", const_labels={"src": "x"})
        desc_y = Desc.new("shared", "shared help", const_labels={"src": "y"})
        fam_x = MetricFamily(name="shared", type=MetricType.GAUGE, metric=[Metric(label=[LabelPair(name="src", value="x")])])
        fam_y = MetricFamily(name="shared", type=MetricType.GAUGE, metric=[Metric(label=[LabelPair(name="src", value="y")])])
        registry.register(StaticCollector(desc_x, [fam_x]))
        registry.register(StaticCollector(desc_y, [fam_y]))

        registry.gather()
        registry.gather()
        assert len(fam_x.metric) == 1
        assert len(fam_y.metric) == 1

    def test_inconsistent_metrics_sort_reproducibly(self, registry):
        desc = Desc.new("odd", "odd help")
        metrics = [
            Metric(label=[LabelPair(name="a", value="1")], timestamp_ms=None),
            Metric(label=[LabelPair(name="a", value="1")], timestamp_ms=20),
            Metric(label=[], timestamp_ms=5),
            Metric(label=[LabelPair(name="a", value="1")], timestamp_ms=10),
            Metric(label=[LabelPair(name="a", value="0"), LabelPair(name="b", value="0")]),
        ]
        registry.register(StaticCollector(desc, [MetricFamily(name="odd", metric=metrics)]))

        first = registry.gather()[0].metric
        second = registry.gather()[0].metric
        assert first == second
        assert [len(m.label) for m in first] == [0, 1, 1, 1, 2]
        assert [m.timestamp_ms for m in first[1:4]] == [10, 20, None]

    def test_registry_handle_shared_across_threads(self, registry):
        import threading

        counter = Counter("test", "test help")
        registry.register(counter)
        counter.inc()

        seen = []
        t = threading.Thread(target=lambda: seen.append(len(registry.gather())))
        t.start()
        t.join(timeout=5)
        assert seen == [1]
