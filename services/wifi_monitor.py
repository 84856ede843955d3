import logging
from typing import Optional

from errors import MonitorError
from events.detector import RollingState, detect
from events.event_model import EventSeverity
from metrics.schema import Snapshot
from services.assembler import SnapshotAssembler
from services.metrics_store import MetricsStore
from thresholds.rules import AlertThresholds

logger = logging.getLogger(__name__)

_EVENT_LOG_LEVELS = {
    EventSeverity.CRITICAL: logging.ERROR,
    EventSeverity.ERROR: logging.ERROR,
    EventSeverity.WARNING: logging.WARNING,
    EventSeverity.INFO: logging.INFO,
}


class WifiMonitor:
    """
    One sampling session: collect, detect, persist.

    The rolling state is owned by this object and only replaced once a
    cycle's snapshot has been stored.
    """

    def __init__(self, store: MetricsStore, assembler: SnapshotAssembler,
                 thresholds: Optional[AlertThresholds] = None):
        self.store = store
        self.assembler = assembler
        self.thresholds = thresholds or AlertThresholds()
        self.state: Optional[RollingState] = None
        self.cycles_completed = 0
        self.cycles_failed = 0

    def run_cycle(self) -> Optional[Snapshot]:
        """
        Run one monitoring cycle.

        Returns:
            The stored snapshot, or None if the cycle failed
        """
        try:
            snapshot = self.assembler.collect()
            events, new_state = detect(snapshot, self.state, self.thresholds)
            snapshot = snapshot.with_events(events)
            self.store.append(snapshot)
        except MonitorError as e:
            self.cycles_failed += 1
            logger.error("Monitoring cycle skipped: %s", e)
            return None

        self.state = new_state
        self.cycles_completed += 1
        self.log_snapshot_summary(snapshot)
        return snapshot

    def log_snapshot_summary(self, snapshot: Snapshot):
        link = snapshot.link
        if link:
            logger.info("WiFi Status: ssid=%s signal=%d dBm (%d%%) channel=%d band=%s",
                        link.ssid, link.signal_dbm, link.signal_quality_percent,
                        link.channel, link.band.value)
        else:
            logger.warning("WiFi not connected")

        latency = snapshot.latency
        if latency.average_latency_ms is not None:
            logger.info("Latency: avg=%.1fms min=%s max=%s jitter=%s loss=%.1f%%",
                        latency.average_latency_ms,
                        _ms(latency.min_latency_ms), _ms(latency.max_latency_ms),
                        _ms(latency.jitter_ms), latency.packet_loss_percent)

        conn = snapshot.connectivity
        logger.info("Connectivity: connected=%s loopback=%s router=%s internet=%s http_time=%s",
                    conn.is_connected, conn.loopback_reachable, conn.router_reachable,
                    conn.internet_reachable, _ms(conn.http_response_time_ms))

        for event in snapshot.events:
            logger.log(_EVENT_LOG_LEVELS[event.severity], "[%s] %s",
                       event.event_type.value, event.description)


def _ms(value: Optional[float]) -> str:
    return f"{value:.1f}ms" if value is not None else "n/a"
