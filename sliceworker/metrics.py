"""Gauges describing slices, and small helpers for timing and decoding."""

from __future__ import annotations

import struct
import threading
from datetime import datetime
from typing import Mapping, Sequence

from .logs import new_logger

log = new_logger(__name__)

CLUSTER_NAME = "clusterName"
NAMESPACE = "namespace"
SLICE = "slice"
SERVICE = "service"


class Gauge:
    """A named gauge holding one value for each combination of label values."""

    def __init__(self, name: str, description: str, labels: Sequence[str]) -> None:
        self.name = name
        self.description = description
        self.labels = tuple(labels)
        self._values: dict[tuple[str, ...], float] = {}
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"Gauge({self.name!r}, labels={self.labels!r})"

    def _key(self, labels: Mapping[str, str]) -> tuple[str, ...]:
        if set(labels) != set(self.labels):
            raise ValueError(
                f"gauge {self.name} takes labels {sorted(self.labels)}, "
                f"got {sorted(labels)}"
            )
        return tuple(labels[name] for name in self.labels)

    def set(self, labels: Mapping[str, str], value: float) -> None:
        key = self._key(labels)
        with self._lock:
            self._values[key] = float(value)

    def value(self, labels: Mapping[str, str]) -> float:
        """Return the recorded value; KeyError when none was recorded."""
        key = self._key(labels)
        with self._lock:
            try:
                return self._values[key]
            except KeyError:
                raise KeyError(f"no value recorded for {dict(labels)}") from None


app_pods_gauge = Gauge(
    "kubeslice_slice_app_pods",
    "No. of app pods in slice",
    (CLUSTER_NAME, SLICE, NAMESPACE),
)
service_export_available_endpoints_gauge = Gauge(
    "kubeslice_service_export_available_endpoints",
    "No. of service exports avaialble endpoints in slice",
    (CLUSTER_NAME, SLICE, NAMESPACE, SERVICE),
)

REGISTRY: dict[str, Gauge] = {
    gauge.name: gauge
    for gauge in (app_pods_gauge, service_export_available_endpoints_gauge)
}


def record_app_pods_count(
    count: int, cluster_name: str, slice_name: str, namespace: str
) -> None:
    """Record the number of app pods active in the slice's namespace."""
    log.info(
        "Recording app pod count",
        extra={"count": count, "clusterName": cluster_name, "slice": slice_name, "ns": namespace},
    )
    app_pods_gauge.set(
        {CLUSTER_NAME: cluster_name, SLICE: slice_name, NAMESPACE: namespace}, count
    )


def record_service_export_available_endpoints_count(
    count: int, cluster_name: str, slice_name: str, namespace: str, service: str
) -> None:
    """Record the number of available endpoints of an exported service."""
    log.info(
        "Recording serviceexport available endpoint",
        extra={
            "count": count,
            "clusterName": cluster_name,
            "slice": slice_name,
            "ns": namespace,
            "svc": service,
        },
    )
    service_export_available_endpoints_gauge.set(
        {CLUSTER_NAME: cluster_name, SLICE: slice_name, NAMESPACE: namespace, SERVICE: service},
        count,
    )


def _elapsed_seconds(start: datetime) -> float:
    now = datetime.now(start.tzinfo) if start.tzinfo else datetime.now()
    return (now - start).total_seconds()


def since_in_milliseconds(start: datetime) -> float:
    """Return the time since start in milliseconds."""
    return _elapsed_seconds(start) * 1e3


def since_in_seconds(start: datetime) -> float:
    """Return the seconds since start, divided by one million."""
    return _elapsed_seconds(start) / 1e6


def float64_from_bytes(data: bytes) -> float:
    """Decode the first eight bytes as a little-endian IEEE 754 double."""
    if len(data) < 8:
        raise ValueError(f"need 8 bytes, got {len(data)}")
    return struct.unpack("<d", bytes(data[:8]))[0]