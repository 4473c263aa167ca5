"""
Metric descriptors.

A Desc is the immutable identity of one metric definition:

    id       = H(fq_name || const label values ordered by label name)
    dim_hash = H(fq_name, help, sorted label names (const + variable))

Two descriptors built independently for "the same metric" share an id, which
is how the registry detects double instrumentation. Two descriptors that share
a name but not a shape differ in dim_hash, which is how it detects
inconsistent redefinition.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from metrics_registry.errors import DescriptorError
from metrics_registry.hashing import h_desc_id, h_dim
from metrics_registry.models import LabelPair

METRIC_NAME_RE = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:]*$")
LABEL_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
RESERVED_LABEL_PREFIX = "__"


def build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    """Join the non-empty parts of a metric name with underscores."""
    if not name:
        return ""
    return "_".join(p for p in (namespace, subsystem, name) if p)


def is_valid_label_name(name: str) -> bool:
    return bool(LABEL_NAME_RE.match(name)) and not name.startswith(RESERVED_LABEL_PREFIX)


@dataclass(frozen=True)
class Desc:
    """Immutable descriptor; build with Desc.new()."""

    fq_name: str
    help: str
    const_label_pairs: Tuple[LabelPair, ...]
    variable_labels: Tuple[str, ...]
    id: int
    dim_hash: int

    @staticmethod
    def new(
        fq_name: str,
        help: str,
        variable_labels: Sequence[str] = (),
        const_labels: Optional[Mapping[str, str]] = None,
    ) -> Desc:
        """
        Build and validate a descriptor.

        Raises:
            DescriptorError: Empty help, illegal metric or label name,
                or a label name used twice
        """
        const_labels = dict(const_labels or {})

        if not help:
            raise DescriptorError(f"help is empty for {fq_name!r}")
        if not METRIC_NAME_RE.match(fq_name):
            raise DescriptorError(f"{fq_name!r} is not a valid metric name")

        seen = set()
        for label_name in [*sorted(const_labels), *variable_labels]:
            if not is_valid_label_name(label_name):
                raise DescriptorError(f"{label_name!r} is not a valid label name")
            if label_name in seen:
                raise DescriptorError(f"duplicate label name {label_name!r} in {fq_name!r}")
            seen.add(label_name)

        pairs = tuple(LabelPair(name=k, value=str(const_labels[k])) for k in sorted(const_labels))
        return Desc(
            fq_name=fq_name,
            help=help,
            const_label_pairs=pairs,
            variable_labels=tuple(variable_labels),
            id=h_desc_id(fq_name, [p.value for p in pairs]),
            dim_hash=h_dim(fq_name, help, seen),
        )

    def const_labels(self) -> Dict[str, str]:
        return {p.name: p.value for p in self.const_label_pairs}

    def label_pairs(self, values: Sequence[str]) -> List[LabelPair]:
        """Const pairs plus variable pairs for `values`, ordered by label name."""
        if len(values) != len(self.variable_labels):
            raise DescriptorError(
                f"{self.fq_name}: expected {len(self.variable_labels)} label values, got {len(values)}"
            )
        pairs = list(self.const_label_pairs)
        pairs.extend(LabelPair(name=n, value=v) for n, v in zip(self.variable_labels, values))
        pairs.sort(key=lambda p: p.name)
        return pairs

    def __repr__(self) -> str:
        labels = ",".join(f'{p.name}="{p.value}"' for p in self.const_label_pairs)
        return f"Desc({self.fq_name}{{{labels}}}, variable_labels={list(self.variable_labels)})"


@dataclass
class Opts:
    """Options shared by every instrument constructor."""

    name: str
    help: str
    namespace: str = ""
    subsystem: str = ""
    const_labels: Dict[str, str] = field(default_factory=dict)

    def fq_name(self) -> str:
        return build_fq_name(self.namespace, self.subsystem, self.name)

    def describe(self, label_names: Sequence[str] = ()) -> Desc:
        return Desc.new(self.fq_name(), self.help, label_names, self.const_labels)
