from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import BinaryIO, Sequence

from metrics_registry.errors import MalformedFamilyError, MalformedReason
from metrics_registry.models import MetricFamily

logger = logging.getLogger(__name__)


def check_metric_family(mf: MetricFamily) -> None:
    """
    Structural preconditions every encoder enforces.

    Raises:
        MalformedFamilyError: NO_METRICS if the family is empty,
            MISSING_NAME if it has no name
    """
    if not mf.metric:
        raise MalformedFamilyError(MalformedReason.NO_METRICS, mf)
    if not mf.name:
        raise MalformedFamilyError(MalformedReason.MISSING_NAME, mf)


class Encoder(ABC):
    """
    Serializes gathered metric families into one wire format.

    encode() is all-or-nothing: every family is checked and the whole output
    is rendered in memory before a single write to the sink, so a failed call
    writes zero bytes.

    Metric and label names are NOT checked for legality; invalid names give
    invalid output.
    """

    def encode(self, families: Sequence[MetricFamily], sink: BinaryIO) -> None:
        for mf in families:
            try:
                check_metric_family(mf)
            except MalformedFamilyError as e:
                logger.warning(f"{type(self).__name__} rejected snapshot: {e}")
                raise
        sink.write(self.render(families))

    @abstractmethod
    def render(self, families: Sequence[MetricFamily]) -> bytes:
        """Encode already-checked families into bytes."""

    @abstractmethod
    def format_type(self) -> str:
        """Content type of the output, for HTTP Content-Type headers."""
