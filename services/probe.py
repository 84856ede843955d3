"""
OS network probe.

`ProbeAdapter` is the contract the snapshot assembler samples through.
`SystemProbe` is the default implementation: it shells out to `netsh`/`nmcli`
and `ping`, uses requests for the HTTP reachability check, dnspython for
per-server resolution and psutil for interface counters. Every call is
bounded by a timeout and reports failure as ProbeFailure.
"""
import logging
import platform
import re
import socket
import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

import dns.exception
import dns.resolver
import psutil
import requests

from errors import ProbeFailure
from metrics.schema import (
    ConnectivityResult, DnsQueryResult, DnsResult, LatencyResult, LinkInfo,
    PingResult, SystemCounters, WifiBand, population_stddev,
)

logger = logging.getLogger(__name__)

LOOPBACK_ADDRESS = '127.0.0.1'
CONNECTIVITY_PING_COUNT = 2
LATENCY_PING_COUNT = 4

# 5 GHz channels are not evenly spaced from a single base frequency
_5GHZ_CHANNELS = {
    36: 5180, 40: 5200, 44: 5220, 48: 5240, 52: 5260, 56: 5280, 60: 5300,
    64: 5320, 100: 5500, 104: 5520, 108: 5540, 112: 5560, 116: 5580,
    120: 5600, 124: 5620, 128: 5640, 132: 5660, 136: 5680, 140: 5700,
    144: 5720, 149: 5745, 153: 5765, 157: 5785, 161: 5805, 165: 5825,
}


def channel_to_frequency(channel: int) -> int:
    """Center frequency in MHz for a WiFi channel number, 0 if unknown."""
    if 1 <= channel <= 13:
        return 2407 + channel * 5
    if channel == 14:
        return 2484
    if channel in _5GHZ_CHANNELS:
        return _5GHZ_CHANNELS[channel]
    if 165 < channel <= 233:
        return 5950 + channel * 5
    return 0


def quality_to_dbm(quality: int) -> int:
    """Map a 0-100% signal quality onto roughly -100..-30 dBm."""
    return -100 + (quality * 70) // 100


class ProbeAdapter(ABC):
    """Structured best-effort readings of the local network for 'now'."""

    @abstractmethod
    def read_link(self) -> Optional[LinkInfo]:
        """Current association, or None while the wireless link is down."""

    @abstractmethod
    def test_connectivity(self, gateway: Optional[str]) -> ConnectivityResult:
        pass

    @abstractmethod
    def measure_latency(self, targets: Sequence[str], gateway: Optional[str]) -> LatencyResult:
        pass

    @abstractmethod
    def resolve(self, domains: Sequence[str], servers: Sequence[str]) -> DnsResult:
        pass

    @abstractmethod
    def read_system_counters(self) -> SystemCounters:
        pass


# ----------------------------------------------------------------
# Output parsers
# ----------------------------------------------------------------
def parse_netsh_interfaces(output: str) -> Optional[LinkInfo]:
    """
    Parse `netsh wlan show interfaces`.

    Returns:
        LinkInfo without IP details, or None when the adapter is not connected
    """
    fields: Dict[str, str] = {}
    for line in output.splitlines():
        key, sep, value = line.strip().partition(':')
        if sep:
            fields.setdefault(key.strip().lower(), value.strip())

    if fields.get('state', '').lower() != 'connected':
        return None

    channel = _to_int(fields.get('channel'))
    frequency = channel_to_frequency(channel)
    quality = _to_int(fields.get('signal', '').rstrip('%'))
    rx_rate = _to_int_or_none(fields.get('receive rate (mbps)'))
    tx_rate = _to_int_or_none(fields.get('transmit rate (mbps)'))

    return LinkInfo(
        ssid=fields.get('ssid', ''),
        bssid=fields.get('bssid') or fields.get('ap bssid', ''),
        signal_dbm=quality_to_dbm(quality),
        signal_quality_percent=quality,
        channel=channel,
        frequency_mhz=frequency,
        band=WifiBand.from_frequency(frequency),
        phy_type=fields.get('radio type') or fields.get('network type', ''),
        link_speed_mbps=rx_rate or 0,
        rx_rate_mbps=rx_rate,
        tx_rate_mbps=tx_rate,
        security_type=fields.get('authentication', ''),
        adapter_name=fields.get('name', ''),
        adapter_mac=fields.get('physical address', ''),
    )


def parse_nmcli_wifi(output: str) -> Optional[LinkInfo]:
    """
    Parse `nmcli -t -f ACTIVE,SSID,BSSID,CHAN,FREQ,SIGNAL,RATE,SECURITY,DEVICE dev wifi`.
    Terse mode escapes literal colons as '\\:'.
    """
    for line in output.splitlines():
        parts = [p.replace('\\:', ':') for p in re.split(r'(?<!\\):', line.strip())]
        if len(parts) < 9 or parts[0].lower() != 'yes':
            continue

        _, ssid, bssid, chan, freq, signal, rate, security, device = parts[:9]
        channel = _to_int(chan)
        frequency = _to_int(freq.split()[0] if freq else '') or channel_to_frequency(channel)
        quality = _to_int(signal)
        speed = _to_int(rate.split()[0] if rate else '')

        return LinkInfo(
            ssid=ssid,
            bssid=bssid,
            signal_dbm=quality_to_dbm(quality),
            signal_quality_percent=quality,
            channel=channel,
            frequency_mhz=frequency,
            band=WifiBand.from_frequency(frequency),
            link_speed_mbps=speed,
            rx_rate_mbps=speed or None,
            security_type=security,
            adapter_name=device,
        )
    return None


def parse_ipconfig(output: str) -> Dict[str, object]:
    """Pull IPv4/IPv6, gateway and DNS servers from the wireless section of `ipconfig /all`."""
    info = _empty_ip_info()
    in_wifi_section = False
    last_key = None

    for line in output.splitlines():
        lower = line.lower()
        if not line.startswith(' ') and line.strip():
            in_wifi_section = any(tag in lower for tag in ('wireless', 'wi-fi', 'wlan'))
            continue
        if not in_wifi_section:
            continue

        if last_key in ('dns', 'gateway') and '. :' not in line and line.strip():
            # Continuation line of a multi-valued entry
            value = _strip_ipconfig_suffix(line.strip())
            if last_key == 'dns':
                info['dns_servers'].append(value)
            elif info['gateway'] is None or ':' in info['gateway']:
                info['gateway'] = value
            continue

        key, sep, value = line.partition(':')
        if not sep:
            continue

        key = key.strip(' .').lower()
        value = _strip_ipconfig_suffix(value.strip())
        if 'ipv4' in key:
            info['ipv4_address'] = value
            last_key = 'ipv4'
        elif 'ipv6' in key and info['ipv6_address'] is None:
            info['ipv6_address'] = value
            last_key = 'ipv6'
        elif 'default gateway' in key:
            if value:
                info['gateway'] = value
            last_key = 'gateway'
        elif 'dns servers' in key:
            if value:
                info['dns_servers'].append(value)
            last_key = 'dns'
        else:
            last_key = key
    return info


def parse_ping_output(target: str, output: str, count: int) -> PingResult:
    """Parse Windows or Unix `ping` output into a PingResult."""
    times = [float(m) for m in re.findall(r'time[=<]\s*([\d.]+)\s*ms', output, re.IGNORECASE)]

    resolved_ip = None
    match = (re.search(r'Reply from ([^\s:]+)', output)
             or re.search(r'^PING \S+ \(([^)]+)\)', output, re.MULTILINE)
             or re.search(r'^Pinging \S+ \[([^\]]+)\]', output, re.MULTILINE))
    if match:
        resolved_ip = match.group(1)

    received = len(times)
    match = (re.search(r'Received = (\d+)', output)
             or re.search(r'(\d+) (?:packets )?received', output))
    if match:
        received = int(match.group(1))

    min_ms = avg_ms = max_ms = None
    win_stats = re.search(r'Minimum = ([\d.]+)ms, Maximum = ([\d.]+)ms, Average = ([\d.]+)ms', output)
    unix_stats = re.search(r'= ([\d.]+)/([\d.]+)/([\d.]+)/[\d.]+ ms', output)
    if win_stats:
        min_ms, max_ms, avg_ms = (float(v) for v in win_stats.groups())
    elif unix_stats:
        min_ms, avg_ms, max_ms = (float(v) for v in unix_stats.groups())
    elif times:
        min_ms, max_ms, avg_ms = min(times), max(times), sum(times) / len(times)

    received = min(received, count)
    return PingResult(
        target=target,
        resolved_ip=resolved_ip,
        packets_sent=count,
        packets_received=received,
        packet_loss_percent=((count - received) / count) * 100 if count else 100.0,
        min_ms=min_ms,
        avg_ms=avg_ms,
        max_ms=max_ms,
        stddev_ms=population_stddev(times),
        individual_times_ms=tuple(times),
    )


def _empty_ip_info() -> Dict[str, object]:
    return {'ipv4_address': None, 'ipv6_address': None, 'gateway': None, 'dns_servers': []}


def _strip_ipconfig_suffix(value: str) -> str:
    # "192.168.1.20(Preferred)" / "fe80::1%12(Preferred)"
    return value.split('(')[0].strip()


def _to_int(value: Optional[str]) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _to_int_or_none(value: Optional[str]) -> Optional[int]:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


# ----------------------------------------------------------------
# Default probe
# ----------------------------------------------------------------
class SystemProbe(ProbeAdapter):
    """Probe backed by OS commands, requests, dnspython and psutil."""

    def __init__(self, timeout: float = 5.0,
                 http_probe_url: str = 'http://www.gstatic.com/generate_204'):
        self.timeout = timeout
        self.http_probe_url = http_probe_url
        self.is_windows = platform.system().lower() == 'windows'

    def _run(self, cmd: List[str], timeout: Optional[float] = None) -> str:
        try:
            completed = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                errors='replace',
                timeout=timeout or self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ProbeFailure(cmd[0], f"{' '.join(cmd)} failed: {e}") from e
        return completed.stdout

    # ----------------------------------------------------------------
    # Link
    # ----------------------------------------------------------------
    def read_link(self) -> Optional[LinkInfo]:
        if self.is_windows:
            link = parse_netsh_interfaces(self._run(['netsh', 'wlan', 'show', 'interfaces']))
            if link is None:
                return None
            try:
                ip_info = parse_ipconfig(self._run(['ipconfig', '/all']))
            except ProbeFailure as e:
                logger.debug("IP configuration lookup failed: %s", e)
                ip_info = _empty_ip_info()
        else:
            output = self._run(['nmcli', '-t', '-f',
                                'ACTIVE,SSID,BSSID,CHAN,FREQ,SIGNAL,RATE,SECURITY,DEVICE',
                                'dev', 'wifi'])
            link = parse_nmcli_wifi(output)
            if link is None:
                return None
            ip_info = self._unix_ip_info(link.adapter_name)

        return replace(
            link,
            ipv4_address=ip_info['ipv4_address'],
            ipv6_address=ip_info['ipv6_address'],
            gateway=ip_info['gateway'],
            dns_servers=tuple(ip_info['dns_servers']),
        )

    def _unix_ip_info(self, adapter: str) -> Dict[str, object]:
        info = _empty_ip_info()
        for addr in psutil.net_if_addrs().get(adapter, []):
            if addr.family == socket.AF_INET and info['ipv4_address'] is None:
                info['ipv4_address'] = addr.address
            elif addr.family == socket.AF_INET6 and info['ipv6_address'] is None:
                info['ipv6_address'] = addr.address.split('%')[0]

        try:
            route = self._run(['ip', 'route', 'show', 'default'])
        except ProbeFailure as e:
            logger.debug("Default route lookup failed: %s", e)
            return info
        match = re.search(r'default via (\S+)', route)
        if match:
            info['gateway'] = match.group(1)
        return info

    # ----------------------------------------------------------------
    # Connectivity
    # ----------------------------------------------------------------
    def test_connectivity(self, gateway: Optional[str]) -> ConnectivityResult:
        try:
            is_connected = self.read_link() is not None
        except ProbeFailure as e:
            logger.warning("Link state unavailable for connectivity test: %s", e)
            is_connected = False

        loopback = self.ping(LOOPBACK_ADDRESS, CONNECTIVITY_PING_COUNT)
        logger.debug("Loopback ping: %d packets received", loopback.packets_received)

        if gateway:
            router = self.ping(gateway, CONNECTIVITY_PING_COUNT)
            router_reachable = router.packets_received > 0
            logger.debug("Router ping: %d packets received from %s", router.packets_received, gateway)
        else:
            # Without a known gateway the association stands in for the router
            router_reachable = is_connected

        http_success = False
        http_time = None
        try:
            start = time.perf_counter()
            response = requests.get(self.http_probe_url, timeout=self.timeout)
            http_time = round((time.perf_counter() - start) * 1000, 2)
            http_success = response.ok
        except requests.exceptions.RequestException as e:
            logger.debug("HTTP connectivity test failed: %s", e)

        established = self._established_tcp_connections()

        return ConnectivityResult(
            is_connected=is_connected,
            loopback_reachable=loopback.packets_received > 0,
            router_reachable=router_reachable,
            internet_reachable=http_success,
            http_test_success=http_success,
            http_response_time_ms=http_time,
            tcp_connections_established=established,
        )

    def _established_tcp_connections(self) -> int:
        try:
            return sum(1 for conn in psutil.net_connections(kind='tcp')
                       if conn.status == psutil.CONN_ESTABLISHED)
        except psutil.Error as e:
            logger.debug("Cannot list TCP connections: %s", e)
            return 0

    # ----------------------------------------------------------------
    # Latency
    # ----------------------------------------------------------------
    def ping(self, target: str, count: int) -> PingResult:
        """Ping a host; command failures are recorded on the result."""
        if self.is_windows:
            cmd = ['ping', '-n', str(count), '-w', str(int(self.timeout * 1000)), target]
        else:
            cmd = ['ping', '-c', str(count), '-W', str(int(self.timeout)), target]

        try:
            output = self._run(cmd, timeout=count * self.timeout + 2)
        except ProbeFailure as e:
            return PingResult(target=target, packets_sent=count, error=str(e))
        return parse_ping_output(target, output, count)

    def measure_latency(self, targets: Sequence[str], gateway: Optional[str]) -> LatencyResult:
        loopback = self.ping(LOOPBACK_ADDRESS, LATENCY_PING_COUNT)
        router_ms = self.ping(gateway, LATENCY_PING_COUNT).avg_ms if gateway else None
        results = [self.ping(target, LATENCY_PING_COUNT) for target in targets]
        return LatencyResult.from_pings(results, loopback.avg_ms, router_ms)

    # ----------------------------------------------------------------
    # DNS
    # ----------------------------------------------------------------
    def resolve(self, domains: Sequence[str], servers: Sequence[str]) -> DnsResult:
        queries = [self.query(domain, server) for server in servers for domain in domains]
        return DnsResult.from_queries(queries)

    def query(self, domain: str, server: str) -> DnsQueryResult:
        resolver = dns.resolver.Resolver(configure=False)
        resolver.timeout = self.timeout
        resolver.lifetime = self.timeout

        try:
            # Rejects anything that is not an IP address
            resolver.nameservers = [server]
            start = time.perf_counter()
            answers = resolver.resolve(domain, 'A')
            elapsed = round((time.perf_counter() - start) * 1000, 2)
        except (dns.exception.DNSException, ValueError) as e:
            return DnsQueryResult(domain=domain, dns_server=server, success=False,
                                  error=str(e) or e.__class__.__name__)

        return DnsQueryResult(
            domain=domain,
            dns_server=server,
            success=True,
            resolution_time_ms=elapsed,
            resolved_ips=tuple(str(rdata) for rdata in answers),
        )

    # ----------------------------------------------------------------
    # System counters
    # ----------------------------------------------------------------
    def read_system_counters(self) -> SystemCounters:
        try:
            io = psutil.net_io_counters()
            cpu = psutil.cpu_percent(interval=None)
            memory = psutil.virtual_memory().percent
        except psutil.Error as e:
            raise ProbeFailure('system', f"psutil failed: {e}") from e

        try:
            active = len(psutil.net_connections(kind='inet'))
        except psutil.Error as e:
            logger.debug("Cannot list connections: %s", e)
            active = 0

        return SystemCounters(
            bytes_sent=io.bytes_sent,
            bytes_received=io.bytes_recv,
            packets_sent=io.packets_sent,
            packets_received=io.packets_recv,
            errors_in=io.errin,
            errors_out=io.errout,
            drops_in=io.dropin,
            drops_out=io.dropout,
            active_connections=active,
            cpu_usage_percent=float(cpu),
            memory_usage_percent=float(memory),
        )
