from datetime import datetime
from typing import List, Mapping, Optional, Sequence

from events.event_model import Event, EventSeverity
from metrics.aggregator import PeriodStatistics
from services import health_analyzer
from utils.helpers import TimeBound

RECENT_CRITICAL_LIMIT = 10

_HEAVY_RULE = "═" * 67
_LIGHT_RULE = "─" * 67


def _banner(title: str) -> List[str]:
    return [_HEAVY_RULE, title.center(67).rstrip(), _HEAVY_RULE]


def _section(title: str) -> List[str]:
    return [_LIGHT_RULE, title.center(67).rstrip(), _LIGHT_RULE, ""]


def _format_time(value: Optional[datetime], fmt: str = "%Y-%m-%d %H:%M:%S UTC") -> str:
    return value.strftime(fmt) if value else "n/a"


def generate_report(stats: PeriodStatistics, events: Sequence[Event],
                    event_counts: Mapping[str, int]) -> str:
    """
    Render the text analysis report.

    Args:
        stats: Statistics for the reported period
        events: Events in the period, newest first
        event_counts: Event type -> count, in display order

    Returns:
        The report; identical inputs always render identical text
    """
    assessment = health_analyzer.analyze(stats, event_counts)
    lines = _banner("WiFi Stability Analysis Report")
    lines.append("")
    lines.append(f"Report Period: {_format_time(stats.start_time)} to {_format_time(stats.end_time)}")
    lines.append(f"Total Samples: {stats.sample_count}")
    lines.append("")

    lines += _section("OVERALL HEALTH SCORE")
    lines.append(f"  Score: {assessment.score}/100 - {assessment.rating}")
    lines.append("")

    lines += _section("CONNECTION RELIABILITY")
    lines.append(f"  WiFi Connection Uptime:    {stats.connection_uptime_percent:>6.1f}%")
    lines.append(f"  Internet Uptime:           {stats.internet_uptime_percent:>6.1f}%")
    lines.append(f"  Total Disconnections:      {stats.total_disconnections:>6}")
    lines.append(f"  Average Packet Loss:       {stats.packet_loss_avg_percent:>6.2f}%")
    lines.append("")

    lines += _section("SIGNAL QUALITY")
    if stats.signal_strength_avg_dbm is not None:
        avg = stats.signal_strength_avg_dbm
        lines.append(f"  Average Signal:    {avg:>6.1f} dBm  {health_analyzer.signal_rating(avg)}")
    if stats.signal_strength_min_dbm is not None:
        low = stats.signal_strength_min_dbm
        lines.append(f"  Minimum Signal:    {low:>6} dBm  {health_analyzer.signal_rating(low)}")
    if stats.signal_strength_max_dbm is not None:
        high = stats.signal_strength_max_dbm
        lines.append(f"  Maximum Signal:    {high:>6} dBm  {health_analyzer.signal_rating(high)}")
    if stats.signal_quality_avg_percent is not None:
        lines.append(f"  Average Quality:   {stats.signal_quality_avg_percent:>6.1f}%")
    lines.append("")

    lines += _section("LATENCY ANALYSIS")
    if stats.latency_avg_ms is not None:
        lines.append(f"  Average Latency:   {stats.latency_avg_ms:>8.1f} ms  "
                     f"{health_analyzer.latency_rating(stats.latency_avg_ms)}")
    for label, value in (("Minimum Latency", stats.latency_min_ms),
                         ("Maximum Latency", stats.latency_max_ms),
                         ("95th Percentile", stats.latency_p95_ms),
                         ("99th Percentile", stats.latency_p99_ms)):
        if value is not None:
            lines.append(f"  {label}:   {value:>8.1f} ms")
    if stats.jitter_avg_ms is not None:
        lines.append(f"  Average Jitter:    {stats.jitter_avg_ms:>8.1f} ms  "
                     f"{health_analyzer.jitter_rating(stats.jitter_avg_ms)}")
    lines.append("")

    lines += _section("EVENT SUMMARY")
    lines.append(f"  Critical Events:   {stats.critical_events:>6}")
    lines.append(f"  Error Events:      {stats.error_events:>6}")
    lines.append(f"  Warning Events:    {stats.warning_events:>6}")
    lines.append(f"  Info Events:       {stats.info_events:>6}")
    lines.append("")
    if event_counts:
        lines.append("  Events by Type:")
        for event_type, count in event_counts.items():
            lines.append(f"    - {event_type}: {count}")
        lines.append("")

    lines += _section("ISSUES DETECTED")
    if assessment.issues:
        lines += [f"  {i}. {issue}" for i, issue in enumerate(assessment.issues, 1)]
    else:
        lines.append("  No significant issues detected.")
    lines.append("")

    lines += _section("RECOMMENDATIONS")
    if assessment.recommendations:
        lines += [f"  {i}. {rec}" for i, rec in enumerate(assessment.recommendations, 1)]
    else:
        lines.append("  Your WiFi connection appears to be stable. No immediate actions needed.")
    lines.append("")

    critical = [e for e in events if e.severity == EventSeverity.CRITICAL][:RECENT_CRITICAL_LIMIT]
    if critical:
        lines += _section("RECENT CRITICAL EVENTS")
        for event in critical:
            lines.append(f"  [{_format_time(event.timestamp, '%Y-%m-%d %H:%M:%S')}] "
                         f"{event.event_type.value}: {event.description}")
        lines.append("")

    lines += _banner("END OF REPORT")
    return "\n".join(lines) + "\n"


def generate_store_report(store, start: TimeBound = None, end: TimeBound = None) -> str:
    """Build the report for a range straight from the metrics store."""
    return generate_report(
        store.aggregate(start, end),
        store.query_events(start, end),
        store.event_counts_by_type(start, end),
    )
