"""
Snapshot data model.

One Snapshot is assembled per sampling cycle and is never mutated afterwards.
Every record serializes to plain JSON-compatible dicts (`to_dict`) and can be
rebuilt from them (`from_dict`); the metrics store persists that form.
"""
import statistics
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from events.event_model import Event
from utils.helpers import format_timestamp, parse_timestamp, utcnow


class WifiBand(Enum):
    BAND_2_4GHZ = "2.4GHz"
    BAND_5GHZ = "5GHz"
    BAND_6GHZ = "6GHz"
    UNKNOWN = "Unknown"

    @classmethod
    def from_frequency(cls, freq_mhz: int) -> "WifiBand":
        if 2400 <= freq_mhz <= 2500:
            return cls.BAND_2_4GHZ
        if 5150 <= freq_mhz <= 5900:
            return cls.BAND_5GHZ
        if 5925 <= freq_mhz <= 7125:
            return cls.BAND_6GHZ
        return cls.UNKNOWN


@dataclass(frozen=True)
class LinkInfo:
    """Wireless adapter and association details. Only exists while the link is up."""
    ssid: str
    bssid: str
    signal_dbm: int
    signal_quality_percent: int
    channel: int
    frequency_mhz: int
    band: WifiBand = WifiBand.UNKNOWN
    phy_type: str = ""
    link_speed_mbps: int = 0
    rx_rate_mbps: Optional[int] = None
    tx_rate_mbps: Optional[int] = None
    security_type: str = ""
    adapter_name: str = ""
    adapter_mac: str = ""
    ipv4_address: Optional[str] = None
    ipv6_address: Optional[str] = None
    gateway: Optional[str] = None
    dns_servers: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ssid": self.ssid,
            "bssid": self.bssid,
            "signal_dbm": self.signal_dbm,
            "signal_quality_percent": self.signal_quality_percent,
            "channel": self.channel,
            "frequency_mhz": self.frequency_mhz,
            "band": self.band.value,
            "phy_type": self.phy_type,
            "link_speed_mbps": self.link_speed_mbps,
            "rx_rate_mbps": self.rx_rate_mbps,
            "tx_rate_mbps": self.tx_rate_mbps,
            "security_type": self.security_type,
            "adapter_name": self.adapter_name,
            "adapter_mac": self.adapter_mac,
            "ipv4_address": self.ipv4_address,
            "ipv6_address": self.ipv6_address,
            "gateway": self.gateway,
            "dns_servers": list(self.dns_servers),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LinkInfo":
        return cls(
            ssid=data["ssid"],
            bssid=data["bssid"],
            signal_dbm=int(data["signal_dbm"]),
            signal_quality_percent=int(data["signal_quality_percent"]),
            channel=int(data["channel"]),
            frequency_mhz=int(data["frequency_mhz"]),
            band=WifiBand(data.get("band", WifiBand.UNKNOWN.value)),
            phy_type=data.get("phy_type", ""),
            link_speed_mbps=int(data.get("link_speed_mbps", 0)),
            rx_rate_mbps=data.get("rx_rate_mbps"),
            tx_rate_mbps=data.get("tx_rate_mbps"),
            security_type=data.get("security_type", ""),
            adapter_name=data.get("adapter_name", ""),
            adapter_mac=data.get("adapter_mac", ""),
            ipv4_address=data.get("ipv4_address"),
            ipv6_address=data.get("ipv6_address"),
            gateway=data.get("gateway"),
            dns_servers=tuple(data.get("dns_servers", ())),
        )


@dataclass(frozen=True)
class ConnectivityResult:
    is_connected: bool = False
    loopback_reachable: bool = False
    router_reachable: bool = False
    internet_reachable: bool = False
    http_test_success: bool = False
    http_response_time_ms: Optional[float] = None
    tcp_connections_established: int = 0
    tcp_connections_failed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_connected": self.is_connected,
            "loopback_reachable": self.loopback_reachable,
            "router_reachable": self.router_reachable,
            "internet_reachable": self.internet_reachable,
            "http_test_success": self.http_test_success,
            "http_response_time_ms": self.http_response_time_ms,
            "tcp_connections_established": self.tcp_connections_established,
            "tcp_connections_failed": self.tcp_connections_failed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConnectivityResult":
        return cls(
            is_connected=bool(data.get("is_connected", False)),
            loopback_reachable=bool(data.get("loopback_reachable", False)),
            router_reachable=bool(data.get("router_reachable", False)),
            internet_reachable=bool(data.get("internet_reachable", False)),
            http_test_success=bool(data.get("http_test_success", False)),
            http_response_time_ms=data.get("http_response_time_ms"),
            tcp_connections_established=int(data.get("tcp_connections_established", 0)),
            tcp_connections_failed=int(data.get("tcp_connections_failed", 0)),
        )


@dataclass(frozen=True)
class PingResult:
    target: str
    packets_sent: int = 0
    packets_received: int = 0
    packet_loss_percent: float = 100.0
    resolved_ip: Optional[str] = None
    min_ms: Optional[float] = None
    avg_ms: Optional[float] = None
    max_ms: Optional[float] = None
    stddev_ms: Optional[float] = None
    individual_times_ms: Tuple[float, ...] = ()
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "resolved_ip": self.resolved_ip,
            "packets_sent": self.packets_sent,
            "packets_received": self.packets_received,
            "packet_loss_percent": self.packet_loss_percent,
            "min_ms": self.min_ms,
            "avg_ms": self.avg_ms,
            "max_ms": self.max_ms,
            "stddev_ms": self.stddev_ms,
            "individual_times_ms": list(self.individual_times_ms),
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PingResult":
        return cls(
            target=data["target"],
            resolved_ip=data.get("resolved_ip"),
            packets_sent=int(data.get("packets_sent", 0)),
            packets_received=int(data.get("packets_received", 0)),
            packet_loss_percent=float(data.get("packet_loss_percent", 100.0)),
            min_ms=data.get("min_ms"),
            avg_ms=data.get("avg_ms"),
            max_ms=data.get("max_ms"),
            stddev_ms=data.get("stddev_ms"),
            individual_times_ms=tuple(data.get("individual_times_ms", ())),
            error=data.get("error"),
        )


def population_stddev(values: List[float]) -> Optional[float]:
    """Population standard deviation, or None for fewer than two values."""
    if len(values) < 2:
        return None
    return statistics.pstdev(values)


@dataclass(frozen=True)
class LatencyResult:
    targets: Tuple[PingResult, ...] = ()
    loopback_latency_ms: Optional[float] = None
    router_latency_ms: Optional[float] = None
    average_latency_ms: Optional[float] = None
    min_latency_ms: Optional[float] = None
    max_latency_ms: Optional[float] = None
    jitter_ms: Optional[float] = None
    packet_loss_percent: float = 0.0

    @classmethod
    def from_pings(cls, targets: Iterable[PingResult],
                   loopback_latency_ms: Optional[float] = None,
                   router_latency_ms: Optional[float] = None) -> "LatencyResult":
        """
        Derive the aggregate figures across all target pings.

        min/avg/max come from every individual round trip, jitter is their
        population standard deviation and packet loss is computed from the
        summed sent/received counters.
        """
        targets = tuple(targets)
        all_times = sorted(t for ping in targets for t in ping.individual_times_ms)
        total_sent = sum(ping.packets_sent for ping in targets)
        total_received = sum(ping.packets_received for ping in targets)

        average = min_ms = max_ms = None
        if all_times:
            min_ms = all_times[0]
            max_ms = all_times[-1]
            average = sum(all_times) / len(all_times)

        packet_loss = 0.0
        if total_sent > 0:
            packet_loss = ((total_sent - total_received) / total_sent) * 100

        return cls(
            targets=targets,
            loopback_latency_ms=loopback_latency_ms,
            router_latency_ms=router_latency_ms,
            average_latency_ms=average,
            min_latency_ms=min_ms,
            max_latency_ms=max_ms,
            jitter_ms=population_stddev(all_times),
            packet_loss_percent=packet_loss,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "targets": [t.to_dict() for t in self.targets],
            "loopback_latency_ms": self.loopback_latency_ms,
            "router_latency_ms": self.router_latency_ms,
            "average_latency_ms": self.average_latency_ms,
            "min_latency_ms": self.min_latency_ms,
            "max_latency_ms": self.max_latency_ms,
            "jitter_ms": self.jitter_ms,
            "packet_loss_percent": self.packet_loss_percent,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LatencyResult":
        return cls(
            targets=tuple(PingResult.from_dict(t) for t in data.get("targets", ())),
            loopback_latency_ms=data.get("loopback_latency_ms"),
            router_latency_ms=data.get("router_latency_ms"),
            average_latency_ms=data.get("average_latency_ms"),
            min_latency_ms=data.get("min_latency_ms"),
            max_latency_ms=data.get("max_latency_ms"),
            jitter_ms=data.get("jitter_ms"),
            packet_loss_percent=float(data.get("packet_loss_percent", 0.0)),
        )


@dataclass(frozen=True)
class DnsQueryResult:
    domain: str
    dns_server: str
    success: bool
    resolution_time_ms: Optional[float] = None
    resolved_ips: Tuple[str, ...] = ()
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.domain,
            "dns_server": self.dns_server,
            "resolution_time_ms": self.resolution_time_ms,
            "resolved_ips": list(self.resolved_ips),
            "success": self.success,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DnsQueryResult":
        return cls(
            domain=data["domain"],
            dns_server=data["dns_server"],
            success=bool(data["success"]),
            resolution_time_ms=data.get("resolution_time_ms"),
            resolved_ips=tuple(data.get("resolved_ips", ())),
            error=data.get("error"),
        )


@dataclass(frozen=True)
class DnsResult:
    queries: Tuple[DnsQueryResult, ...] = ()
    average_resolution_time_ms: Optional[float] = None
    failures: int = 0

    @classmethod
    def from_queries(cls, queries: Iterable[DnsQueryResult]) -> "DnsResult":
        queries = tuple(queries)
        times = [q.resolution_time_ms for q in queries
                 if q.success and q.resolution_time_ms is not None]
        return cls(
            queries=queries,
            average_resolution_time_ms=(sum(times) / len(times)) if times else None,
            failures=sum(1 for q in queries if not q.success),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "queries": [q.to_dict() for q in self.queries],
            "average_resolution_time_ms": self.average_resolution_time_ms,
            "failures": self.failures,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DnsResult":
        return cls(
            queries=tuple(DnsQueryResult.from_dict(q) for q in data.get("queries", ())),
            average_resolution_time_ms=data.get("average_resolution_time_ms"),
            failures=int(data.get("failures", 0)),
        )


@dataclass(frozen=True)
class SystemCounters:
    bytes_sent: int = 0
    bytes_received: int = 0
    packets_sent: int = 0
    packets_received: int = 0
    errors_in: int = 0
    errors_out: int = 0
    drops_in: int = 0
    drops_out: int = 0
    active_connections: int = 0
    cpu_usage_percent: float = 0.0
    memory_usage_percent: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bytes_sent": self.bytes_sent,
            "bytes_received": self.bytes_received,
            "packets_sent": self.packets_sent,
            "packets_received": self.packets_received,
            "errors_in": self.errors_in,
            "errors_out": self.errors_out,
            "drops_in": self.drops_in,
            "drops_out": self.drops_out,
            "active_connections": self.active_connections,
            "cpu_usage_percent": self.cpu_usage_percent,
            "memory_usage_percent": self.memory_usage_percent,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SystemCounters":
        return cls(**{name: data[name] for name in cls.__dataclass_fields__ if name in data})


@dataclass(frozen=True)
class Snapshot:
    """
    Atomic health reading for one sampling cycle.
    `link` is None while the wireless link is down.
    """
    snapshot_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=utcnow)
    link: Optional[LinkInfo] = None
    connectivity: ConnectivityResult = field(default_factory=ConnectivityResult)
    latency: LatencyResult = field(default_factory=LatencyResult)
    dns: DnsResult = field(default_factory=DnsResult)
    system: SystemCounters = field(default_factory=SystemCounters)
    events: Tuple[Event, ...] = ()

    @property
    def is_link_up(self) -> bool:
        return self.link is not None

    def with_events(self, events: Iterable[Event]) -> "Snapshot":
        """Return a copy carrying the given events."""
        return replace(self, events=tuple(events))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.snapshot_id,
            "timestamp": format_timestamp(self.timestamp),
            "link": self.link.to_dict() if self.link else None,
            "connectivity": self.connectivity.to_dict(),
            "latency": self.latency.to_dict(),
            "dns": self.dns.to_dict(),
            "system": self.system.to_dict(),
            "events": [e.to_dict() for e in self.events],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Snapshot":
        """
        Rebuild a snapshot from its serialized form.

        Raises:
            KeyError, ValueError, TypeError: If the payload is malformed.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Snapshot payload must be an object, got {type(data).__name__}")
        link = data.get("link")
        return cls(
            snapshot_id=data["id"],
            timestamp=parse_timestamp(data["timestamp"]),
            link=LinkInfo.from_dict(link) if link else None,
            connectivity=ConnectivityResult.from_dict(data.get("connectivity") or {}),
            latency=LatencyResult.from_dict(data.get("latency") or {}),
            dns=DnsResult.from_dict(data.get("dns") or {}),
            system=SystemCounters.from_dict(data.get("system") or {}),
            events=tuple(Event.from_dict(e) for e in data.get("events", ())),
        )
