"""
Metrics Registry - In-process metric registration and snapshot gathering.

Wire schema: io.prometheus.client (text 0.0.4 + delimited protobuf)
"""

__version__ = "0.3.0"

# u64 arithmetic for descriptor ids and collector ids
ID_MASK = (1 << 64) - 1
