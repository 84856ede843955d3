import sys
import os
import unittest
from unittest.mock import MagicMock

# Add project root to sys.path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from errors import PersistenceFailure, ProbeFailure
from events.event_model import EventType
from metrics.schema import ConnectivityResult, DnsResult, LatencyResult, SystemCounters
from services.assembler import SnapshotAssembler
from services.scheduler import MonitoringScheduler
from services.wifi_monitor import WifiMonitor

from factories import make_dns, make_latency, make_link, make_snapshot


def healthy_probe():
    probe = MagicMock()
    probe.read_link.return_value = make_link()
    probe.test_connectivity.return_value = ConnectivityResult(
        is_connected=True, loopback_reachable=True, router_reachable=True,
        internet_reachable=True, http_test_success=True, http_response_time_ms=40.0)
    probe.measure_latency.return_value = make_latency()
    probe.resolve.return_value = make_dns()
    probe.read_system_counters.return_value = SystemCounters(cpu_usage_percent=5.0)
    return probe


class TestSnapshotAssembler(unittest.TestCase):
    def test_collect_passes_gateway_and_targets(self):
        probe = healthy_probe()
        assembler = SnapshotAssembler(probe, ping_targets=['8.8.8.8'], dns_servers=['1.1.1.1'],
                                      dns_domains=['example.com'])
        snapshot = assembler.collect()

        probe.test_connectivity.assert_called_once_with("192.168.1.1")
        probe.measure_latency.assert_called_once_with(('8.8.8.8',), "192.168.1.1")
        probe.resolve.assert_called_once_with(('example.com',), ('1.1.1.1',))
        self.assertTrue(snapshot.is_link_up)
        self.assertEqual(snapshot.events, ())
        self.assertEqual(snapshot.system.cpu_usage_percent, 5.0)

    def test_failed_subprobe_degrades_to_default(self):
        probe = healthy_probe()
        probe.measure_latency.side_effect = ProbeFailure("latency", "ping not installed")
        probe.resolve.side_effect = ProbeFailure("dns", "resolver timeout")

        snapshot = SnapshotAssembler(probe).collect()

        self.assertEqual(snapshot.latency, LatencyResult())
        self.assertEqual(snapshot.dns, DnsResult())
        self.assertEqual(snapshot.connectivity.http_response_time_ms, 40.0)
        self.assertIsNotNone(snapshot.link)

    def test_link_down_means_no_gateway(self):
        probe = healthy_probe()
        probe.read_link.return_value = None

        snapshot = SnapshotAssembler(probe).collect()

        self.assertIsNone(snapshot.link)
        probe.test_connectivity.assert_called_once_with(None)

    def test_from_config(self):
        assembler = SnapshotAssembler.from_config(MagicMock(), {
            'PING_TARGETS': ['9.9.9.9'],
            'DNS_SERVERS': ['9.9.9.9'],
            'DNS_TEST_DOMAINS': ['quad9.net'],
        })
        self.assertEqual(assembler.ping_targets, ('9.9.9.9',))
        self.assertEqual(assembler.dns_domains, ('quad9.net',))


class TestWifiMonitor(unittest.TestCase):
    def setUp(self):
        self.store = MagicMock()
        self.assembler = MagicMock()
        self.monitor = WifiMonitor(self.store, self.assembler)

    def test_cycle_stores_snapshot_with_events(self):
        self.assembler.collect.return_value = make_snapshot(link_up=False, internet=False)

        stored = self.monitor.run_cycle()

        self.store.append.assert_called_once_with(stored)
        self.assertIn(EventType.CONNECTION_DROPPED, [e.event_type for e in stored.events])
        self.assertFalse(self.monitor.state.was_connected)
        self.assertEqual(self.monitor.cycles_completed, 1)

    def test_state_carries_between_cycles(self):
        self.assembler.collect.side_effect = [
            make_snapshot(offset_s=0, link_up=False, internet=False),
            make_snapshot(offset_s=5),
        ]
        self.monitor.run_cycle()
        second = self.monitor.run_cycle()

        self.assertEqual(second.events[0].event_type, EventType.CONNECTION_RESTORED)
        self.assertTrue(self.monitor.state.was_connected)

    def test_failed_append_keeps_previous_state(self):
        self.assembler.collect.side_effect = [
            make_snapshot(offset_s=0),
            make_snapshot(offset_s=5, link=make_link(bssid="aa:bb:cc:dd:ee:02")),
        ]
        self.monitor.run_cycle()
        before = self.monitor.state

        self.store.append.side_effect = PersistenceFailure("disk I/O error")
        self.assertIsNone(self.monitor.run_cycle())

        self.assertIs(self.monitor.state, before)
        self.assertEqual(self.monitor.state.last_bssid, "aa:bb:cc:dd:ee:01")
        self.assertEqual(self.monitor.cycles_failed, 1)
        self.assertEqual(self.monitor.cycles_completed, 1)


class TestMonitoringScheduler(unittest.TestCase):
    def setUp(self):
        self.monitor = MagicMock()
        self.scheduler = MonitoringScheduler(MagicMock(), self.monitor, interval=5)

    def test_runs_cycle(self):
        self.assertTrue(self.scheduler.run_monitoring_task())
        self.monitor.run_cycle.assert_called_once_with()

    def test_overlapping_tick_is_skipped(self):
        self.scheduler._cycle_lock.acquire()
        try:
            self.assertFalse(self.scheduler.run_monitoring_task())
        finally:
            self.scheduler._cycle_lock.release()

        self.monitor.run_cycle.assert_not_called()
        self.assertEqual(self.scheduler.skipped_ticks, 1)

    def test_error_does_not_wedge_the_lock(self):
        self.monitor.run_cycle.side_effect = RuntimeError("boom")
        self.assertTrue(self.scheduler.run_monitoring_task())
        self.monitor.run_cycle.side_effect = None
        self.assertTrue(self.scheduler.run_monitoring_task())
        self.assertEqual(self.monitor.run_cycle.call_count, 2)

    def test_start_registers_job_and_stop_clears_it(self):
        self.scheduler.start_scheduled_monitoring()
        try:
            self.assertEqual(len(self.scheduler.scheduler.jobs), 1)
            self.assertTrue(self.scheduler.is_running)
        finally:
            self.scheduler.stop_scheduled_monitoring()

        self.assertEqual(self.scheduler.scheduler.jobs, [])
        self.assertFalse(self.scheduler.scheduler_thread.is_alive())


if __name__ == '__main__':
    unittest.main()
