"""
Metric snapshot models (io.prometheus.client wire shape).

A MetricFamily is produced fresh by every Registry.gather() and handed to an
encoder. Nothing here is cached or persisted; instruments build new models on
each collect().
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class MetricType(int, Enum):
    """Metric family type, numbered as in io.prometheus.client."""
    COUNTER = 0
    GAUGE = 1
    SUMMARY = 2
    UNTYPED = 3
    HISTOGRAM = 4

    @property
    def text_name(self) -> str:
        return self.name.lower()


class LabelPair(BaseModel):
    name: str
    value: str

    model_config = {"frozen": True}


class CounterValue(BaseModel):
    value: float = 0.0


class GaugeValue(BaseModel):
    value: float = 0.0


class UntypedValue(BaseModel):
    value: float = 0.0


class Quantile(BaseModel):
    quantile: float
    value: float


class SummaryValue(BaseModel):
    sample_count: int = 0
    sample_sum: float = 0.0
    quantile: List[Quantile] = Field(default_factory=list)


class Bucket(BaseModel):
    cumulative_count: int
    upper_bound: float


class HistogramValue(BaseModel):
    sample_count: int = 0
    sample_sum: float = 0.0
    bucket: List[Bucket] = Field(default_factory=list)


class Metric(BaseModel):
    """One sample set of a family: its labels plus exactly one value payload."""
    label: List[LabelPair] = Field(default_factory=list)
    timestamp_ms: Optional[int] = None
    counter: Optional[CounterValue] = None
    gauge: Optional[GaugeValue] = None
    summary: Optional[SummaryValue] = None
    untyped: Optional[UntypedValue] = None
    histogram: Optional[HistogramValue] = None


class MetricFamily(BaseModel):
    name: str = ""
    help: str = ""
    type: MetricType = MetricType.UNTYPED
    metric: List[Metric] = Field(default_factory=list)

    def merge_copy(self) -> MetricFamily:
        """Shallow copy whose metric list can be appended to independently."""
        return self.model_copy(update={"metric": list(self.metric)})
