import logging
import uuid
from typing import Callable, Optional, Sequence, TypeVar

from errors import ProbeFailure
from metrics.schema import (
    ConnectivityResult, DnsResult, LatencyResult, Snapshot, SystemCounters,
)
from services.probe import ProbeAdapter
from utils.helpers import utcnow

logger = logging.getLogger(__name__)

T = TypeVar('T')


class SnapshotAssembler:
    """
    Builds one immutable Snapshot per call from the probe.

    A failing sub-probe only degrades its own field to the default value;
    the rest of the snapshot is still collected.
    """

    def __init__(self, probe: ProbeAdapter,
                 ping_targets: Sequence[str] = ('8.8.8.8', '1.1.1.1', 'google.com'),
                 dns_servers: Sequence[str] = ('8.8.8.8', '1.1.1.1'),
                 dns_domains: Sequence[str] = ('google.com', 'cloudflare.com', 'microsoft.com')):
        self.probe = probe
        self.ping_targets = tuple(ping_targets)
        self.dns_servers = tuple(dns_servers)
        self.dns_domains = tuple(dns_domains)

    @classmethod
    def from_config(cls, probe: ProbeAdapter, config) -> "SnapshotAssembler":
        return cls(
            probe,
            ping_targets=config.get('PING_TARGETS', ('8.8.8.8', '1.1.1.1', 'google.com')),
            dns_servers=config.get('DNS_SERVERS', ('8.8.8.8', '1.1.1.1')),
            dns_domains=config.get('DNS_TEST_DOMAINS', ('google.com', 'cloudflare.com', 'microsoft.com')),
        )

    def collect(self) -> Snapshot:
        snapshot_id = str(uuid.uuid4())
        timestamp = utcnow()

        link = self._sample('link', self.probe.read_link, None)
        gateway: Optional[str] = link.gateway if link else None

        system = self._sample('system', self.probe.read_system_counters, SystemCounters())
        connectivity = self._sample('connectivity',
                                    lambda: self.probe.test_connectivity(gateway),
                                    ConnectivityResult())
        latency = self._sample('latency',
                               lambda: self.probe.measure_latency(self.ping_targets, gateway),
                               LatencyResult())
        dns = self._sample('dns',
                           lambda: self.probe.resolve(self.dns_domains, self.dns_servers),
                           DnsResult())

        return Snapshot(
            snapshot_id=snapshot_id,
            timestamp=timestamp,
            link=link,
            connectivity=connectivity,
            latency=latency,
            dns=dns,
            system=system,
        )

    def _sample(self, name: str, read: Callable[[], T], default: T) -> T:
        try:
            return read()
        except ProbeFailure as e:
            logger.warning("Probe '%s' failed, using default: %s", name, e)
            return default
