"""
Event detection.

`detect` compares a freshly assembled snapshot with the rolling state left by
the previous accepted snapshot and with the alert thresholds. It is a pure
function: the same inputs always yield the same events (ids are derived from
the snapshot id and emission index, timestamps are the snapshot's) and the
same replacement state.
"""
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from events.event_model import Event, EventSeverity, EventType
from metrics.schema import Snapshot, WifiBand
from thresholds.rules import AlertThresholds, ThresholdState

_STATE_SEVERITY = {
    ThresholdState.WARNING: EventSeverity.WARNING,
    ThresholdState.CRITICAL: EventSeverity.CRITICAL,
}


@dataclass(frozen=True)
class RollingState:
    """
    What the detector remembers between cycles.
    Replaced wholesale after every accepted snapshot.
    """
    was_connected: bool = False
    last_ssid: Optional[str] = None
    last_bssid: Optional[str] = None
    last_channel: Optional[int] = None
    last_band: Optional[WifiBand] = None
    last_signal_dbm: Optional[int] = None
    last_ip: Optional[str] = None
    internet_was_reachable: bool = False

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> "RollingState":
        link = snapshot.link
        return cls(
            was_connected=link is not None,
            last_ssid=link.ssid if link else None,
            last_bssid=link.bssid if link else None,
            last_channel=link.channel if link else None,
            last_band=link.band if link else None,
            last_signal_dbm=link.signal_dbm if link else None,
            last_ip=link.ipv4_address if link else None,
            internet_was_reachable=snapshot.connectivity.internet_reachable,
        )


class _EventBuilder:
    """Collects events in emission order with deterministic ids."""

    def __init__(self, snapshot: Snapshot):
        self._snapshot = snapshot
        self.events: List[Event] = []

    def emit(self, event_type: EventType, severity: EventSeverity, description: str,
             details: Optional[Dict[str, Any]] = None):
        index = len(self.events)
        event_id = uuid.uuid5(uuid.NAMESPACE_URL, f"{self._snapshot.snapshot_id}/events/{index}")
        self.events.append(Event(
            event_type=event_type,
            severity=severity,
            description=description,
            details=details or {},
            timestamp=self._snapshot.timestamp,
            event_id=str(event_id),
        ))


def detect(snapshot: Snapshot, prior_state: Optional[RollingState],
           thresholds: AlertThresholds) -> Tuple[List[Event], RollingState]:
    """
    Derive the events for one snapshot.

    Args:
        snapshot: The newly assembled snapshot.
        prior_state: State from the previous accepted snapshot, or None on
            the first cycle of a session.
        thresholds: Alert thresholds for this run.

    Returns:
        (events in emission order, replacement RollingState)
    """
    out = _EventBuilder(snapshot)
    link = snapshot.link
    latency = snapshot.latency
    connectivity = snapshot.connectivity

    # 1. Link presence
    if link is None:
        out.emit(EventType.CONNECTION_DROPPED, EventSeverity.CRITICAL,
                 "WiFi connection dropped",
                 {"last_ssid": prior_state.last_ssid if prior_state else None})
    elif prior_state is not None and not prior_state.was_connected:
        out.emit(EventType.CONNECTION_RESTORED, EventSeverity.INFO,
                 "WiFi connection restored", {"ssid": link.ssid})

    # 2. Signal strength
    if link is not None:
        state = thresholds.signal_rule.evaluate_state(link.signal_dbm)
        if state is not ThresholdState.OK:
            label = "Critical signal strength" if state is ThresholdState.CRITICAL else "Low signal strength"
            out.emit(EventType.SIGNAL_STRENGTH_LOW, _STATE_SEVERITY[state],
                     f"{label}: {link.signal_dbm} dBm ({link.signal_quality_percent}%)",
                     {"signal_dbm": link.signal_dbm,
                      "signal_percent": link.signal_quality_percent})

    # 3. Latency
    if latency.average_latency_ms is not None:
        state = thresholds.latency_rule.evaluate_state(latency.average_latency_ms)
        if state is not ThresholdState.OK:
            label = "Critical latency" if state is ThresholdState.CRITICAL else "High latency"
            out.emit(EventType.HIGH_LATENCY, _STATE_SEVERITY[state],
                     f"{label}: {latency.average_latency_ms:.1f}ms",
                     {"latency_ms": latency.average_latency_ms})

    # 4. Jitter
    if latency.jitter_ms is not None:
        if thresholds.jitter_rule.evaluate_state(latency.jitter_ms) is not ThresholdState.OK:
            out.emit(EventType.HIGH_JITTER, EventSeverity.WARNING,
                     f"High jitter: {latency.jitter_ms:.1f}ms",
                     {"jitter_ms": latency.jitter_ms})

    # 5. Packet loss
    state = thresholds.packet_loss_rule.evaluate_state(latency.packet_loss_percent)
    if state is not ThresholdState.OK:
        label = "Critical packet loss" if state is ThresholdState.CRITICAL else "Packet loss detected"
        out.emit(EventType.PACKET_LOSS, _STATE_SEVERITY[state],
                 f"{label}: {latency.packet_loss_percent:.1f}%",
                 {"packet_loss_percent": latency.packet_loss_percent})

    # 6. Router / internet reachability
    if connectivity.is_connected:
        if not connectivity.router_reachable:
            out.emit(EventType.INTERNET_UNREACHABLE, EventSeverity.CRITICAL,
                     "Router/gateway is not reachable (local network issue)",
                     {"issue_type": "router_unreachable"})
        elif not connectivity.internet_reachable:
            out.emit(EventType.INTERNET_UNREACHABLE, EventSeverity.CRITICAL,
                     "Internet is not reachable (router OK, ISP/internet issue)",
                     {"issue_type": "internet_unreachable", "router_reachable": True})

    # 7. DNS
    if snapshot.dns.failures > 0:
        out.emit(EventType.DNS_FAILURE, EventSeverity.WARNING,
                 f"{snapshot.dns.failures} DNS queries failed",
                 {"failures": snapshot.dns.failures})

    # 8. Association changes. First observations never produce a diff.
    if link is not None and prior_state is not None:
        if prior_state.last_bssid is not None and prior_state.last_bssid != link.bssid:
            out.emit(EventType.BSSID_CHANGE, EventSeverity.WARNING,
                     f"Access point changed from {prior_state.last_bssid} to {link.bssid}",
                     {"old_bssid": prior_state.last_bssid, "new_bssid": link.bssid})
        if prior_state.last_channel is not None and prior_state.last_channel != link.channel:
            out.emit(EventType.CHANNEL_CHANGE, EventSeverity.INFO,
                     f"Channel changed from {prior_state.last_channel} to {link.channel}",
                     {"old_channel": prior_state.last_channel, "new_channel": link.channel})
        if prior_state.last_band is not None and prior_state.last_band != link.band:
            out.emit(EventType.BAND_SWITCH, EventSeverity.WARNING,
                     f"Band switched from {prior_state.last_band.value} to {link.band.value}",
                     {"old_band": prior_state.last_band.value, "new_band": link.band.value})
        if prior_state.last_ip is not None and link.ipv4_address is not None \
                and prior_state.last_ip != link.ipv4_address:
            out.emit(EventType.IP_ADDRESS_CHANGE, EventSeverity.INFO,
                     f"IP address changed from {prior_state.last_ip} to {link.ipv4_address}",
                     {"old_ip": prior_state.last_ip, "new_ip": link.ipv4_address})

    # 9. Internet restoration, independent of the link-level restore
    if prior_state is not None and not prior_state.internet_was_reachable \
            and connectivity.internet_reachable:
        out.emit(EventType.CONNECTION_RESTORED, EventSeverity.INFO,
                 "Internet connectivity restored", {"scope": "internet"})

    return out.events, RollingState.from_snapshot(snapshot)
