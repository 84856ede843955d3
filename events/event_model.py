import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import total_ordering
from typing import Any, Dict

from utils.helpers import format_timestamp, parse_timestamp, utcnow


class EventType(Enum):
    CONNECTION_DROPPED = "ConnectionDropped"
    CONNECTION_RESTORED = "ConnectionRestored"
    SIGNAL_STRENGTH_LOW = "SignalStrengthLow"
    SIGNAL_STRENGTH_RECOVERED = "SignalStrengthRecovered"
    HIGH_LATENCY = "HighLatency"
    LATENCY_NORMALIZED = "LatencyNormalized"
    PACKET_LOSS = "PacketLoss"
    DNS_FAILURE = "DnsFailure"
    DNS_RECOVERED = "DnsRecovered"
    BAND_SWITCH = "BandSwitch"
    CHANNEL_CHANGE = "ChannelChange"
    BSSID_CHANGE = "BssidChange"
    IP_ADDRESS_CHANGE = "IpAddressChange"
    GATEWAY_UNREACHABLE = "GatewayUnreachable"
    INTERNET_UNREACHABLE = "InternetUnreachable"
    HIGH_JITTER = "HighJitter"
    ADAPTER_RESET = "AdapterReset"
    SPEED_DEGRADED = "SpeedDegraded"
    SPEED_RECOVERED = "SpeedRecovered"


@total_ordering
class EventSeverity(Enum):
    """Event severity, ordered INFO < WARNING < ERROR < CRITICAL."""
    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return list(type(self)).index(self)

    def __lt__(self, other):
        if not isinstance(other, EventSeverity):
            return NotImplemented
        return self.rank < other.rank


@dataclass(frozen=True)
class Event:
    """
    A typed network event derived from one snapshot.
    Immutable once created; owned by its parent snapshot.
    """
    event_type: EventType
    severity: EventSeverity
    description: str
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> dict:
        return {
            "id": self.event_id,
            "timestamp": format_timestamp(self.timestamp),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "description": self.description,
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        """
        Rebuild an event from its serialized form.

        Raises:
            KeyError, ValueError, TypeError: If the payload is not a valid event.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Event payload must be an object, got {type(data).__name__}")
        details = data.get("details")
        if details is None:
            details = {}
        if not isinstance(details, dict):
            raise ValueError(f"Event details must be an object, got {type(details).__name__}")

        return cls(
            event_type=EventType(data["event_type"]),
            severity=EventSeverity(data["severity"]),
            description=data["description"],
            details=details,
            timestamp=parse_timestamp(data["timestamp"]),
            event_id=data["id"],
        )
