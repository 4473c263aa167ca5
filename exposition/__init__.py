"""
Exposition encoders for gathered metric families.

    TextEncoder      text/plain; version=0.0.4
    ProtobufEncoder  length-delimited io.prometheus.client.MetricFamily
"""

from exposition.base import Encoder, check_metric_family
from exposition.protobuf import PROTOBUF_FORMAT, ProtobufEncoder
from exposition.text import TEXT_FORMAT, TextEncoder

ENCODERS = {
    "text": TextEncoder,
    "protobuf": ProtobufEncoder,
}

__all__ = [
    "Encoder",
    "check_metric_family",
    "ENCODERS",
    "PROTOBUF_FORMAT",
    "ProtobufEncoder",
    "TEXT_FORMAT",
    "TextEncoder",
]
