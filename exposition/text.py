"""
Prometheus text exposition format, version 0.0.4.

    # HELP <name> <escaped help>
    # TYPE <name> <counter|gauge|summary|untyped|histogram>
    <name>{<label>="<escaped value>",...} <value> [<timestamp_ms>]

Summaries expand to one line per quantile plus _sum and _count; histograms to
one _bucket line per upper bound (always ending with le="+Inf") plus _sum and
_count.
"""

from __future__ import annotations

import io
import math
from typing import List, Optional, Sequence, Tuple

from prometheus_client.utils import floatToGoString

from exposition.base import Encoder
from metrics_registry.errors import MetricsError
from metrics_registry.models import Metric, MetricFamily, MetricType

TEXT_FORMAT = "text/plain; version=0.0.4"


def escape_help(s: str) -> str:
    return s.replace("\\", "\\\\").replace("\n", "\\n")


def escape_label_value(s: str) -> str:
    return s.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


class TextEncoder(Encoder):
    """Line-oriented, human-readable encoder."""

    def format_type(self) -> str:
        return TEXT_FORMAT

    def render(self, families: Sequence[MetricFamily]) -> bytes:
        out = io.StringIO()
        for mf in families:
            self._write_family(mf, out)
        return out.getvalue().encode("utf-8")

    def _write_family(self, mf: MetricFamily, out: io.StringIO) -> None:
        name = mf.name
        if mf.help:
            out.write(f"# HELP {name} {escape_help(mf.help)}\n")
        out.write(f"# TYPE {name} {mf.type.text_name}\n")

        for m in mf.metric:
            if mf.type is MetricType.COUNTER:
                _write_sample(out, name, m, _require(m.counter, mf, "counter").value)
            elif mf.type is MetricType.GAUGE:
                _write_sample(out, name, m, _require(m.gauge, mf, "gauge").value)
            elif mf.type is MetricType.UNTYPED:
                _write_sample(out, name, m, _require(m.untyped, mf, "untyped").value)
            elif mf.type is MetricType.SUMMARY:
                s = _require(m.summary, mf, "summary")
                for q in s.quantile:
                    _write_sample(out, name, m, q.value, ("quantile", floatToGoString(q.quantile)))
                _write_sample(out, f"{name}_sum", m, s.sample_sum)
                _write_sample(out, f"{name}_count", m, s.sample_count)
            elif mf.type is MetricType.HISTOGRAM:
                h = _require(m.histogram, mf, "histogram")
                inf_seen = False
                for b in h.bucket:
                    _write_sample(out, f"{name}_bucket", m, b.cumulative_count,
                                  ("le", floatToGoString(b.upper_bound)))
                    if math.isinf(b.upper_bound) and b.upper_bound > 0:
                        inf_seen = True
                if not inf_seen:
                    _write_sample(out, f"{name}_bucket", m, h.sample_count, ("le", "+Inf"))
                _write_sample(out, f"{name}_sum", m, h.sample_sum)
                _write_sample(out, f"{name}_count", m, h.sample_count)


def _require(value, mf: MetricFamily, kind: str):
    if value is None:
        raise MetricsError(f"expected {kind} in metric of family {mf.name!r}")
    return value


def _format_value(v) -> str:
    if isinstance(v, int) and not isinstance(v, bool):
        return str(v)
    return floatToGoString(v)


def _write_sample(
    out: io.StringIO,
    name: str,
    m: Metric,
    value,
    extra: Optional[Tuple[str, str]] = None,
) -> None:
    pairs: List[str] = [f'{lp.name}="{escape_label_value(lp.value)}"' for lp in m.label]
    if extra is not None:
        pairs.append(f'{extra[0]}="{escape_label_value(extra[1])}"')

    out.write(name)
    if pairs:
        out.write("{" + ",".join(pairs) + "}")
    out.write(" " + _format_value(value))
    if m.timestamp_ms is not None:
        out.write(f" {m.timestamp_ms}")
    out.write("\n")
