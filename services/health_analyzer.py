"""
Rule-based health assessment of a monitoring period.

All functions are pure: they only look at PeriodStatistics and the per-type
event counts, so the same period always yields the same score, issues and
recommendations.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from events.event_model import EventType
from metrics.aggregator import PeriodStatistics

EventCounts = Mapping[Union[str, EventType], int]


@dataclass(frozen=True)
class HealthAssessment:
    score: int
    rating: str
    issues: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "rating": self.rating,
            "issues": list(self.issues),
            "recommendations": list(self.recommendations),
        }


def analyze(stats: PeriodStatistics, events_by_type: EventCounts) -> HealthAssessment:
    value = score(stats)
    return HealthAssessment(
        score=value,
        rating=rating(value),
        issues=issues(stats, events_by_type),
        recommendations=recommendations(stats, events_by_type),
    )


def _band_deduction(value: Optional[float], bands, above: bool) -> int:
    """First matching (threshold, deduction) band, checked from the worst."""
    if value is None:
        return 0
    for threshold, deduction in bands:
        if (value > threshold) if above else (value < threshold):
            return deduction
    return 0


def score(stats: PeriodStatistics) -> int:
    """
    Health score in [0, 100]. Starts at 100; every deduction is non-negative.
    """
    deductions = 0

    if stats.connection_uptime_percent < 100.0:
        deductions += int((100.0 - stats.connection_uptime_percent) * 2.0)
    if stats.internet_uptime_percent < 100.0:
        deductions += int((100.0 - stats.internet_uptime_percent) * 1.5)

    deductions += _band_deduction(stats.signal_strength_avg_dbm,
                                  ((-80.0, 20), (-70.0, 10), (-60.0, 5)), above=False)
    deductions += _band_deduction(stats.latency_avg_ms,
                                  ((200.0, 20), (100.0, 10), (50.0, 5)), above=True)
    deductions += _band_deduction(stats.jitter_avg_ms,
                                  ((50.0, 20), (30.0, 10), (15.0, 5)), above=True)
    deductions += _band_deduction(stats.packet_loss_avg_percent,
                                  ((5.0, 20), (1.0, 10), (0.1, 5)), above=True)

    deductions += stats.critical_events * 5
    deductions += stats.error_events * 2
    deductions += stats.warning_events

    return max(0, min(100, 100 - deductions))


def rating(value: int) -> str:
    if value >= 90:
        return "Excellent"
    if value >= 75:
        return "Good"
    if value >= 60:
        return "Fair"
    if value >= 40:
        return "Poor"
    return "Critical"


def signal_rating(dbm: float) -> str:
    dbm = int(dbm)
    if dbm >= -50:
        return "(Excellent)"
    if dbm >= -60:
        return "(Good)"
    if dbm >= -70:
        return "(Fair)"
    if dbm >= -80:
        return "(Poor)"
    return "(Very Poor)"


def latency_rating(ms: float) -> str:
    ms = int(ms)
    if ms <= 20:
        return "(Excellent)"
    if ms <= 50:
        return "(Good)"
    if ms <= 100:
        return "(Fair)"
    if ms <= 200:
        return "(Poor)"
    return "(Very Poor)"


def jitter_rating(ms: float) -> str:
    ms = int(ms)
    if ms <= 10:
        return "(Excellent)"
    if ms <= 20:
        return "(Good)"
    if ms <= 30:
        return "(Fair)"
    if ms <= 50:
        return "(Poor)"
    return "(Very Poor)"


def _count(events_by_type: EventCounts, event_type: EventType) -> int:
    return int(events_by_type.get(event_type.value, events_by_type.get(event_type, 0)))


_FREQUENT_EVENT_ISSUES = (
    (EventType.BSSID_CHANGE,
     "Frequent BSSID changes ({} times) - your device may be roaming between access points"),
    (EventType.CHANNEL_CHANGE,
     "Frequent channel changes ({} times) - possible interference or router auto-channel issues"),
    (EventType.BAND_SWITCH,
     "Frequent band switching ({} times) - unstable 5GHz connection or band steering issues"),
    (EventType.DNS_FAILURE,
     "Multiple DNS failures ({} times) - DNS server issues detected"),
)


def issues(stats: PeriodStatistics, events_by_type: EventCounts) -> List[str]:
    """Every matching issue rule, in rule order."""
    found = []

    if stats.total_disconnections > 0:
        found.append(f"WiFi connection dropped {stats.total_disconnections} time(s) "
                     f"during the monitoring period")
    if stats.connection_uptime_percent < 99.0:
        found.append(f"WiFi connection uptime is only {stats.connection_uptime_percent:.1f}% "
                     f"(expected >99%)")
    if stats.internet_uptime_percent < 99.0:
        found.append(f"Internet connectivity uptime is only {stats.internet_uptime_percent:.1f}% "
                     f"(expected >99%)")

    if stats.signal_strength_avg_dbm is not None and stats.signal_strength_avg_dbm < -75.0:
        found.append(f"Average signal strength is weak at {stats.signal_strength_avg_dbm:.0f} dBm "
                     f"(should be above -70 dBm)")
    if stats.signal_strength_min_dbm is not None and stats.signal_strength_min_dbm < -85:
        found.append(f"Signal strength dropped to critically low levels "
                     f"({stats.signal_strength_min_dbm} dBm)")

    if stats.latency_avg_ms is not None and stats.latency_avg_ms > 100.0:
        found.append(f"Average latency is high at {stats.latency_avg_ms:.1f}ms "
                     f"(should be below 50ms for good performance)")
    if stats.latency_p95_ms is not None and stats.latency_p95_ms > 200.0:
        found.append(f"95th percentile latency is very high at {stats.latency_p95_ms:.1f}ms "
                     f"indicating frequent spikes")

    if stats.jitter_avg_ms is not None and stats.jitter_avg_ms > 30.0:
        found.append(f"High jitter detected ({stats.jitter_avg_ms:.1f}ms) - "
                     f"this can cause issues with real-time applications")

    if stats.packet_loss_avg_percent > 1.0:
        found.append(f"Significant packet loss detected ({stats.packet_loss_avg_percent:.2f}%) - "
                     f"this can cause connection issues")

    for event_type, template in _FREQUENT_EVENT_ISSUES:
        count = _count(events_by_type, event_type)
        if count > 5:
            found.append(template.format(count))

    return found


def recommendations(stats: PeriodStatistics, events_by_type: EventCounts) -> List[str]:
    """Every matching recommendation rule, in rule order."""
    advice = []

    if stats.signal_strength_avg_dbm is not None and stats.signal_strength_avg_dbm < -75.0:
        advice.extend([
            "Move closer to your WiFi router or access point",
            "Consider adding a WiFi extender or mesh network node",
            "Check for physical obstructions between your device and the router",
        ])

    if _count(events_by_type, EventType.BAND_SWITCH) > 3:
        advice.extend([
            "Consider disabling band steering on your router and manually selecting 5GHz",
            "If 5GHz is unstable, try using 2.4GHz for better range at lower speeds",
        ])

    if _count(events_by_type, EventType.CHANNEL_CHANGE) > 5:
        advice.extend([
            "Use a WiFi analyzer app to find the least congested channel",
            "Manually set your router to a specific channel instead of auto",
        ])

    if _count(events_by_type, EventType.BSSID_CHANGE) > 5:
        advice.extend([
            "If you have multiple access points, ensure they have different SSIDs "
            "or configure proper roaming",
            "Check if your router's roaming aggressiveness settings can be adjusted",
        ])

    if stats.latency_avg_ms is not None and stats.latency_avg_ms > 100.0:
        advice.extend([
            "Check for bandwidth-heavy applications running in the background",
            "Consider enabling QoS (Quality of Service) on your router",
            "Test with a wired connection to determine if the issue is WiFi-specific",
        ])

    if stats.jitter_avg_ms is not None and stats.jitter_avg_ms > 30.0:
        advice.extend([
            "High jitter often indicates network congestion - "
            "check for other devices using bandwidth",
            "Update your router's firmware to the latest version",
        ])

    if stats.packet_loss_avg_percent > 1.0:
        advice.extend([
            "Packet loss can be caused by interference - "
            "check for nearby electronics (microwaves, cordless phones)",
            "Try changing your WiFi channel to reduce interference",
            "Check your router and modem for overheating issues",
        ])

    if _count(events_by_type, EventType.DNS_FAILURE) > 3:
        advice.append("Consider using alternative DNS servers like 8.8.8.8 (Google) "
                      "or 1.1.1.1 (Cloudflare)")

    if stats.total_disconnections > 2:
        advice.extend([
            "Frequent disconnections may indicate driver issues - "
            "update your WiFi adapter drivers",
            "Check your router's logs for any error messages",
            "Disable WiFi power saving mode in your adapter settings",
        ])

    if advice:
        advice.append("Consider restarting your router if you haven't done so recently")

    return advice
