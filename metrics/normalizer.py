from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from metrics.schema import Snapshot
from utils.helpers import format_timestamp

# Series vocabulary. Consumers may rely on these names; bump the version when
# a name is added, removed or changes meaning.
SERIES_VOCABULARY_VERSION = 1

SIGNAL_DBM = "signal_dbm"
SIGNAL_PERCENT = "signal_percent"
CHANNEL = "channel"
LINK_SPEED = "link_speed"
LATENCY_LOOPBACK = "latency_loopback"
LATENCY_ROUTER = "latency_router"
LATENCY_AVG = "latency_avg"
LATENCY_MIN = "latency_min"
LATENCY_MAX = "latency_max"
JITTER = "jitter"
PACKET_LOSS = "packet_loss"
CONNECTED = "connected"
LOOPBACK_REACHABLE = "loopback_reachable"
ROUTER_REACHABLE = "router_reachable"
INTERNET_REACHABLE = "internet_reachable"
HTTP_RESPONSE_TIME = "http_response_time"
DNS_RESOLUTION_TIME = "dns_resolution_time"
CPU_USAGE = "cpu_usage"
MEMORY_USAGE = "memory_usage"

METRIC_UNITS: Dict[str, str] = {
    SIGNAL_DBM: "dBm",
    SIGNAL_PERCENT: "percent",
    CHANNEL: "channel",
    LINK_SPEED: "Mbps",
    LATENCY_LOOPBACK: "ms",
    LATENCY_ROUTER: "ms",
    LATENCY_AVG: "ms",
    LATENCY_MIN: "ms",
    LATENCY_MAX: "ms",
    JITTER: "ms",
    PACKET_LOSS: "percent",
    CONNECTED: "boolean",
    LOOPBACK_REACHABLE: "boolean",
    ROUTER_REACHABLE: "boolean",
    INTERNET_REACHABLE: "boolean",
    HTTP_RESPONSE_TIME: "ms",
    DNS_RESOLUTION_TIME: "ms",
    CPU_USAGE: "percent",
    MEMORY_USAGE: "percent",
}

METRIC_NAMES = frozenset(METRIC_UNITS)


@dataclass(frozen=True)
class Metric:
    """
    One flattened time-series point.
    """
    name: str
    value: float
    timestamp: datetime

    @property
    def unit(self) -> str:
        return METRIC_UNITS[self.name]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "unit": self.unit,
            "timestamp": format_timestamp(self.timestamp),
        }


class MetricNormalizer:
    """
    Flattens a snapshot's heterogeneous numeric fields into series points.
    """

    @staticmethod
    def normalize_snapshot(snapshot: Snapshot) -> List[Metric]:
        """
        Convert a snapshot into metrics.

        Link metrics only exist while the link is up; optional latency, HTTP
        and DNS timings only when they were measured. Packet loss, the
        connectivity booleans (as 0/1) and CPU/memory are always present.
        """
        metrics: List[Metric] = []

        def add(name: str, value: Optional[float]):
            if value is not None:
                metrics.append(Metric(name=name, value=float(value), timestamp=snapshot.timestamp))

        link = snapshot.link
        if link is not None:
            add(SIGNAL_DBM, link.signal_dbm)
            add(SIGNAL_PERCENT, link.signal_quality_percent)
            add(CHANNEL, link.channel)
            add(LINK_SPEED, link.link_speed_mbps)

        latency = snapshot.latency
        add(LATENCY_LOOPBACK, latency.loopback_latency_ms)
        add(LATENCY_ROUTER, latency.router_latency_ms)
        add(LATENCY_AVG, latency.average_latency_ms)
        add(LATENCY_MIN, latency.min_latency_ms)
        add(LATENCY_MAX, latency.max_latency_ms)
        add(JITTER, latency.jitter_ms)
        add(PACKET_LOSS, latency.packet_loss_percent)

        connectivity = snapshot.connectivity
        add(CONNECTED, 1 if connectivity.is_connected else 0)
        add(LOOPBACK_REACHABLE, 1 if connectivity.loopback_reachable else 0)
        add(ROUTER_REACHABLE, 1 if connectivity.router_reachable else 0)
        add(INTERNET_REACHABLE, 1 if connectivity.internet_reachable else 0)
        add(HTTP_RESPONSE_TIME, connectivity.http_response_time_ms)

        add(DNS_RESOLUTION_TIME, snapshot.dns.average_resolution_time_ms)

        add(CPU_USAGE, snapshot.system.cpu_usage_percent)
        add(MEMORY_USAGE, snapshot.system.memory_usage_percent)

        return metrics
