from __future__ import annotations

import hashlib
import json
from typing import Any, Iterable

from metrics_registry import ID_MASK

# Field separator; 0xff never occurs in UTF-8 text
SEP = b"\xff"

def canonical(obj: Any) -> bytes:
    """Canonical JSON serialization for deterministic hashing."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

def u64(data: bytes) -> int:
    """First 8 bytes of SHA-256 as an unsigned 64-bit integer."""
    return int.from_bytes(hashlib.sha256(data).digest()[:8], "big")

# Domain-separated hashing (an id can never equal a dim hash of the same input)
def h_desc_id(fq_name: str, const_label_values: Iterable[str]) -> int:
    """Identity of a metric: name plus const label values (ordered by label name)."""
    parts = [fq_name, *const_label_values]
    return u64(b"DESCID\x00" + SEP.join(p.encode("utf-8") for p in parts))

def h_dim(fq_name: str, help: str, label_names: Iterable[str]) -> int:
    """Shape of a metric: name, help text and the sorted set of label names."""
    payload = {"name": fq_name, "help": help, "labels": sorted(set(label_names))}
    return u64(b"DESCDIM\x00" + canonical(payload))

def combine_ids(ids: Iterable[int]) -> int:
    """Order-independent combination of distinct descriptor ids (sum mod 2**64)."""
    total = 0
    for i in ids:
        total = (total + i) & ID_MASK
    return total
