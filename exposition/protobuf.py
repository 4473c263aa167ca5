"""
Delimited protobuf exposition format.

Each family is one io.prometheus.client.MetricFamily message prefixed with
its varint-encoded length. The message classes are built at import time from
a FileDescriptorProto equivalent to the upstream metrics.proto (proto2), so no
generated module is needed.
"""

from __future__ import annotations

from typing import Sequence

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

from exposition.base import Encoder
from metrics_registry.models import Metric, MetricFamily

PROTOBUF_FORMAT = (
    "application/vnd.google.protobuf; "
    "proto=io.prometheus.client.MetricFamily; encoding=delimited"
)

PACKAGE = "io.prometheus.client"

_F = descriptor_pb2.FieldDescriptorProto
OPTIONAL, REPEATED = _F.LABEL_OPTIONAL, _F.LABEL_REPEATED

# message -> [(field, number, type, label, type_name)]
SCHEMA = {
    "LabelPair": [("name", 1, _F.TYPE_STRING, OPTIONAL, None),
                  ("value", 2, _F.TYPE_STRING, OPTIONAL, None)],
    "Gauge": [("value", 1, _F.TYPE_DOUBLE, OPTIONAL, None)],
    "Counter": [("value", 1, _F.TYPE_DOUBLE, OPTIONAL, None)],
    "Quantile": [("quantile", 1, _F.TYPE_DOUBLE, OPTIONAL, None),
                 ("value", 2, _F.TYPE_DOUBLE, OPTIONAL, None)],
    "Summary": [("sample_count", 1, _F.TYPE_UINT64, OPTIONAL, None),
                ("sample_sum", 2, _F.TYPE_DOUBLE, OPTIONAL, None),
                ("quantile", 3, _F.TYPE_MESSAGE, REPEATED, "Quantile")],
    "Untyped": [("value", 1, _F.TYPE_DOUBLE, OPTIONAL, None)],
    "Histogram": [("sample_count", 1, _F.TYPE_UINT64, OPTIONAL, None),
                  ("sample_sum", 2, _F.TYPE_DOUBLE, OPTIONAL, None),
                  ("bucket", 3, _F.TYPE_MESSAGE, REPEATED, "Bucket")],
    "Bucket": [("cumulative_count", 1, _F.TYPE_UINT64, OPTIONAL, None),
               ("upper_bound", 2, _F.TYPE_DOUBLE, OPTIONAL, None)],
    "Metric": [("label", 1, _F.TYPE_MESSAGE, REPEATED, "LabelPair"),
               ("gauge", 2, _F.TYPE_MESSAGE, OPTIONAL, "Gauge"),
               ("counter", 3, _F.TYPE_MESSAGE, OPTIONAL, "Counter"),
               ("summary", 4, _F.TYPE_MESSAGE, OPTIONAL, "Summary"),
               ("untyped", 5, _F.TYPE_MESSAGE, OPTIONAL, "Untyped"),
               ("histogram", 7, _F.TYPE_MESSAGE, OPTIONAL, "Histogram"),
               ("timestamp_ms", 6, _F.TYPE_INT64, OPTIONAL, None)],
    "MetricFamily": [("name", 1, _F.TYPE_STRING, OPTIONAL, None),
                     ("help", 2, _F.TYPE_STRING, OPTIONAL, None),
                     ("type", 3, _F.TYPE_ENUM, OPTIONAL, "MetricType"),
                     ("metric", 4, _F.TYPE_MESSAGE, REPEATED, "Metric")],
}

METRIC_TYPES = [("COUNTER", 0), ("GAUGE", 1), ("SUMMARY", 2), ("UNTYPED", 3), ("HISTOGRAM", 4)]


def _file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    fdp = descriptor_pb2.FileDescriptorProto(
        name="io/prometheus/client/metrics.proto",
        package=PACKAGE,
        syntax="proto2",
    )
    enum = fdp.enum_type.add(name="MetricType")
    for name, number in METRIC_TYPES:
        enum.value.add(name=name, number=number)

    for message, fields in SCHEMA.items():
        msg = fdp.message_type.add(name=message)
        for name, number, ftype, label, type_name in fields:
            f = msg.field.add(name=name, number=number, type=ftype, label=label)
            if type_name:
                f.type_name = f".{PACKAGE}.{type_name}"
    return fdp


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_file_descriptor().SerializeToString())

MetricFamilyPB = message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.MetricFamily"))


def varint(n: int) -> bytes:
    """Base-128 varint, as used for protobuf length prefixes."""
    out = bytearray()
    while True:
        bits = n & 0x7F
        n >>= 7
        if n:
            out.append(bits | 0x80)
        else:
            out.append(bits)
            return bytes(out)


def parse_delimited(data: bytes) -> list:
    """Split a delimited stream back into MetricFamily messages."""
    messages = []
    pos = 0
    while pos < len(data):
        size, shift = 0, 0
        while True:
            byte = data[pos]
            pos += 1
            size |= (byte & 0x7F) << shift
            shift += 7
            if not byte & 0x80:
                break
        messages.append(MetricFamilyPB.FromString(data[pos:pos + size]))
        pos += size
    return messages


def to_message(mf: MetricFamily):
    """Convert a MetricFamily model into its protobuf message."""
    pb = MetricFamilyPB(name=mf.name, type=int(mf.type))
    if mf.help:
        pb.help = mf.help
    for m in mf.metric:
        _fill_metric(pb.metric.add(), m)
    return pb


def _fill_metric(pm, m: Metric) -> None:
    for lp in m.label:
        pm.label.add(name=lp.name, value=lp.value)
    if m.timestamp_ms is not None:
        pm.timestamp_ms = m.timestamp_ms
    if m.counter is not None:
        pm.counter.value = m.counter.value
    if m.gauge is not None:
        pm.gauge.value = m.gauge.value
    if m.untyped is not None:
        pm.untyped.value = m.untyped.value
    if m.summary is not None:
        pm.summary.sample_count = m.summary.sample_count
        pm.summary.sample_sum = m.summary.sample_sum
        for q in m.summary.quantile:
            pm.summary.quantile.add(quantile=q.quantile, value=q.value)
    if m.histogram is not None:
        pm.histogram.sample_count = m.histogram.sample_count
        pm.histogram.sample_sum = m.histogram.sample_sum
        for b in m.histogram.bucket:
            pm.histogram.bucket.add(cumulative_count=b.cumulative_count, upper_bound=b.upper_bound)


class ProtobufEncoder(Encoder):
    """Length-delimited MetricFamily messages, one per family."""

    def format_type(self) -> str:
        return PROTOBUF_FORMAT

    def render(self, families: Sequence[MetricFamily]) -> bytes:
        out = bytearray()
        for mf in families:
            body = to_message(mf).SerializeToString()
            out += varint(len(body))
            out += body
        return bytes(out)
