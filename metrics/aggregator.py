from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from statistics import mean
from typing import Any, Dict, Iterable, List, Optional

from events.event_model import EventSeverity
from metrics.schema import Snapshot
from utils.helpers import calculate_uptime_percentage, format_timestamp, utcnow


def get_cutoff_time(time_range: str) -> datetime:
    """
    Calculate the cutoff datetime based on the time range string.

    Args:
        time_range: String indicating range (e.g., 'last_1h', 'last_24h', 'last_7d')

    Returns:
        Aware UTC datetime for the cutoff time
    """
    now = utcnow()
    if time_range == "last_1h":
        return now - timedelta(hours=1)
    elif time_range == "last_6h":
        return now - timedelta(hours=6)
    elif time_range == "last_24h":
        return now - timedelta(hours=24)
    elif time_range == "last_7d":
        return now - timedelta(days=7)
    elif time_range == "last_30d":
        return now - timedelta(days=30)

    # Default to 24h if unknown
    return now - timedelta(hours=24)


def nearest_rank(sorted_values: List[float], fraction: float) -> Optional[float]:
    """
    Nearest-rank percentile: index floor(n * fraction), clamped to the last
    element. No interpolation.
    """
    if not sorted_values:
        return None
    index = int(len(sorted_values) * fraction)
    return sorted_values[min(index, len(sorted_values) - 1)]


@dataclass(frozen=True)
class PeriodStatistics:
    """
    Summary of every snapshot in a time range. Always recomputed, never stored.
    """
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    sample_count: int = 0

    signal_strength_avg_dbm: Optional[float] = None
    signal_strength_min_dbm: Optional[int] = None
    signal_strength_max_dbm: Optional[int] = None
    signal_quality_avg_percent: Optional[float] = None

    latency_avg_ms: Optional[float] = None
    latency_min_ms: Optional[float] = None
    latency_max_ms: Optional[float] = None
    latency_p95_ms: Optional[float] = None
    latency_p99_ms: Optional[float] = None
    jitter_avg_ms: Optional[float] = None

    packet_loss_avg_percent: float = 0.0
    connection_uptime_percent: float = 0.0
    internet_uptime_percent: float = 0.0
    total_disconnections: int = 0

    info_events: int = 0
    warning_events: int = 0
    error_events: int = 0
    critical_events: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["start_time"] = format_timestamp(self.start_time) if self.start_time else None
        data["end_time"] = format_timestamp(self.end_time) if self.end_time else None
        return data


def aggregate_snapshots(snapshots: Iterable[Snapshot],
                        start_time: Optional[datetime] = None,
                        end_time: Optional[datetime] = None) -> PeriodStatistics:
    """
    Fold snapshots into period statistics.

    Snapshots are processed oldest first regardless of input order, so the
    result only depends on the set of snapshots supplied.

    Args:
        snapshots: Snapshots in the range, any order
        start_time: Reported range start when there are no snapshots
        end_time: Reported range end when there are no snapshots

    Returns:
        PeriodStatistics; a zero result for an empty input
    """
    ordered = sorted(snapshots, key=lambda s: (s.timestamp, s.snapshot_id))
    if not ordered:
        return PeriodStatistics(start_time=start_time, end_time=end_time)

    signal_values: List[int] = []
    quality_values: List[int] = []
    latency_values: List[float] = []
    jitter_values: List[float] = []
    packet_loss_values: List[float] = []
    connected_count = 0
    internet_count = 0
    disconnections = 0
    severity_counts = {severity: 0 for severity in EventSeverity}
    was_connected: Optional[bool] = None

    for snapshot in ordered:
        if snapshot.link is not None:
            signal_values.append(snapshot.link.signal_dbm)
            quality_values.append(snapshot.link.signal_quality_percent)
            connected_count += 1
            was_connected = True
        else:
            # Only the true -> false transition counts as a disconnection
            if was_connected:
                disconnections += 1
            was_connected = False

        if snapshot.connectivity.internet_reachable:
            internet_count += 1

        if snapshot.latency.average_latency_ms is not None:
            latency_values.append(snapshot.latency.average_latency_ms)
        if snapshot.latency.jitter_ms is not None:
            jitter_values.append(snapshot.latency.jitter_ms)
        packet_loss_values.append(snapshot.latency.packet_loss_percent)

        for event in snapshot.events:
            severity_counts[event.severity] += 1

    sample_count = len(ordered)
    latency_values.sort()

    return PeriodStatistics(
        start_time=ordered[0].timestamp,
        end_time=ordered[-1].timestamp,
        sample_count=sample_count,
        signal_strength_avg_dbm=float(mean(signal_values)) if signal_values else None,
        signal_strength_min_dbm=min(signal_values) if signal_values else None,
        signal_strength_max_dbm=max(signal_values) if signal_values else None,
        signal_quality_avg_percent=float(mean(quality_values)) if quality_values else None,
        latency_avg_ms=float(mean(latency_values)) if latency_values else None,
        latency_min_ms=latency_values[0] if latency_values else None,
        latency_max_ms=latency_values[-1] if latency_values else None,
        latency_p95_ms=nearest_rank(latency_values, 0.95),
        latency_p99_ms=nearest_rank(latency_values, 0.99),
        jitter_avg_ms=float(mean(jitter_values)) if jitter_values else None,
        packet_loss_avg_percent=float(mean(packet_loss_values)) if packet_loss_values else 0.0,
        connection_uptime_percent=calculate_uptime_percentage(connected_count, sample_count),
        internet_uptime_percent=calculate_uptime_percentage(internet_count, sample_count),
        total_disconnections=disconnections,
        info_events=severity_counts[EventSeverity.INFO],
        warning_events=severity_counts[EventSeverity.WARNING],
        error_events=severity_counts[EventSeverity.ERROR],
        critical_events=severity_counts[EventSeverity.CRITICAL],
    )
