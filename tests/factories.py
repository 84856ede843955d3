"""Builders for snapshots used across the test modules."""
import uuid
from datetime import datetime, timedelta, timezone

from metrics.schema import (
    ConnectivityResult, DnsQueryResult, DnsResult, LatencyResult, LinkInfo,
    PingResult, Snapshot, SystemCounters, WifiBand,
)

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_link(**overrides):
    fields = dict(
        ssid="HomeNet",
        bssid="aa:bb:cc:dd:ee:01",
        signal_dbm=-55,
        signal_quality_percent=64,
        channel=36,
        frequency_mhz=5180,
        band=WifiBand.BAND_5GHZ,
        phy_type="802.11ax",
        link_speed_mbps=866,
        ipv4_address="192.168.1.20",
        gateway="192.168.1.1",
        dns_servers=("192.168.1.1",),
    )
    fields.update(overrides)
    return LinkInfo(**fields)


def make_latency(avg=20.0, jitter=2.0, loss=0.0):
    return LatencyResult(
        targets=(PingResult(target="8.8.8.8", packets_sent=4, packets_received=4,
                            packet_loss_percent=0.0, avg_ms=avg,
                            individual_times_ms=(avg, avg, avg, avg)),),
        loopback_latency_ms=0.1,
        router_latency_ms=2.0,
        average_latency_ms=avg,
        min_latency_ms=avg,
        max_latency_ms=avg,
        jitter_ms=jitter,
        packet_loss_percent=loss,
    )


def make_dns(failures=0):
    queries = [DnsQueryResult(domain="google.com", dns_server="8.8.8.8", success=True,
                              resolution_time_ms=12.0, resolved_ips=("142.250.0.1",))]
    queries += [DnsQueryResult(domain="cloudflare.com", dns_server="1.1.1.1", success=False,
                               error="timeout") for _ in range(failures)]
    return DnsResult.from_queries(queries)


def make_snapshot(offset_s=0, link_up=True, link=None, avg=20.0, jitter=2.0, loss=0.0,
                  router=True, internet=True, dns_failures=0, events=(), snapshot_id=None):
    if link_up and link is None:
        link = make_link()
    if not link_up:
        link = None
    return Snapshot(
        snapshot_id=snapshot_id or str(uuid.uuid4()),
        timestamp=BASE_TIME + timedelta(seconds=offset_s),
        link=link,
        connectivity=ConnectivityResult(
            is_connected=link is not None,
            loopback_reachable=True,
            router_reachable=router,
            internet_reachable=internet,
            http_test_success=internet,
            http_response_time_ms=35.0 if internet else None,
        ),
        latency=make_latency(avg, jitter, loss),
        dns=make_dns(dns_failures),
        system=SystemCounters(bytes_sent=1000, bytes_received=5000,
                              cpu_usage_percent=12.5, memory_usage_percent=48.0),
        events=tuple(events),
    )
