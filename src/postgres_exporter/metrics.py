"""Metric descriptors, samples and the per-scrape output stream."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from enum import Enum

from .errors import ConfigurationError

_METRIC_NAME_RE = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:]*$")
_LABEL_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


class ValueType(str, Enum):
    GAUGE = "gauge"
    COUNTER = "counter"


@dataclass(frozen=True, slots=True)
class MetricDescriptor:
    """Immutable metadata for one exposed metric.

    Built once per collector instance and shared by every scrape.
    """

    name: str
    help: str
    label_names: tuple[str, ...] = ()
    value_type: ValueType = ValueType.GAUGE

    def sample(self, value: float, *label_values: str) -> MetricSample:
        return MetricSample(self, float(value), tuple(label_values))


@dataclass(frozen=True, slots=True)
class MetricSample:
    """One observation for a descriptor."""

    descriptor: MetricDescriptor
    value: float
    label_values: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if len(self.label_values) != len(self.descriptor.label_names):
            raise ValueError(
                f"{self.descriptor.name}: expected {len(self.descriptor.label_names)} "
                f"label values, got {len(self.label_values)}"
            )

    @property
    def kind(self) -> ValueType:
        return self.descriptor.value_type

    @property
    def labels(self) -> dict[str, str]:
        return dict(zip(self.descriptor.label_names, self.label_values))


Emit = Callable[[MetricSample], None]


def build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    """Join the non-empty parts with underscores.

    >>> build_fq_name("postgres", "stat_activity", "connections")
    'postgres_stat_activity_connections'
    """
    return "_".join(part for part in (namespace, subsystem, name) if part)


def new_descriptor(
    namespace: str,
    subsystem: str,
    name: str,
    help: str,
    label_names: Sequence[str] = (),
    value_type: ValueType = ValueType.GAUGE,
) -> MetricDescriptor:
    """Build and validate a descriptor.

    Raises ConfigurationError for names Prometheus would reject. Collectors
    build their descriptors in ``__init__`` so a bad one stops the exporter
    at startup instead of failing every scrape.
    """
    fq_name = build_fq_name(namespace, subsystem, name)
    if not _METRIC_NAME_RE.match(fq_name):
        raise ConfigurationError(f"invalid metric name: {fq_name!r}")

    labels = tuple(label_names)
    for label in labels:
        if not _LABEL_NAME_RE.match(label) or label.startswith("__"):
            raise ConfigurationError(f"{fq_name}: invalid label name {label!r}")
    if len(set(labels)) != len(labels):
        raise ConfigurationError(f"{fq_name}: duplicate label names {labels!r}")

    return MetricDescriptor(name=fq_name, help=help, label_names=labels, value_type=value_type)


class SampleStream:
    """Ordered, unbounded conduit of samples produced during one scrape.

    ``emit`` is handed to collectors; the orchestrator closes the stream once
    every collector has returned.
    """

    def __init__(self) -> None:
        self._samples: list[MetricSample] = []
        self._closed = False

    def emit(self, sample: MetricSample) -> None:
        if self._closed:
            raise RuntimeError("sample stream is closed")
        self._samples.append(sample)

    def close(self) -> None:
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[MetricSample]:
        return iter(self._samples)

    def __len__(self) -> int:
        return len(self._samples)
