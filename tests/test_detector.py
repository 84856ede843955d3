import unittest

from events.detector import RollingState, detect
from events.event_model import EventSeverity, EventType
from metrics.schema import WifiBand
from thresholds.rules import AlertThresholds

from factories import make_link, make_snapshot

LINK_EVENT_TYPES = {
    EventType.SIGNAL_STRENGTH_LOW,
    EventType.BAND_SWITCH,
    EventType.CHANNEL_CHANGE,
    EventType.BSSID_CHANGE,
    EventType.IP_ADDRESS_CHANGE,
}


def types_of(events):
    return [e.event_type for e in events]


class TestSignalRules(unittest.TestCase):
    def setUp(self):
        self.thresholds = AlertThresholds()

    def test_weak_signal_example(self):
        snapshot = make_snapshot(link=make_link(signal_dbm=-85, signal_quality_percent=21))
        events, _ = detect(snapshot, None, self.thresholds)

        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].event_type, EventType.SIGNAL_STRENGTH_LOW)
        self.assertEqual(events[0].severity, EventSeverity.CRITICAL)
        self.assertEqual(events[0].details["signal_dbm"], -85)

    def test_warning_band(self):
        snapshot = make_snapshot(link=make_link(signal_dbm=-75))
        events, _ = detect(snapshot, None, self.thresholds)
        self.assertEqual(types_of(events), [EventType.SIGNAL_STRENGTH_LOW])
        self.assertEqual(events[0].severity, EventSeverity.WARNING)

    def test_exactly_one_signal_outcome(self):
        for dbm in range(-100, -29):
            snapshot = make_snapshot(link=make_link(signal_dbm=dbm))
            events, _ = detect(snapshot, None, self.thresholds)
            signal = [e for e in events if e.event_type == EventType.SIGNAL_STRENGTH_LOW]

            if dbm <= -80:
                expected = [EventSeverity.CRITICAL]
            elif dbm <= -70:
                expected = [EventSeverity.WARNING]
            else:
                expected = []
            self.assertEqual([e.severity for e in signal], expected, f"signal {dbm} dBm")


class TestLinkPresence(unittest.TestCase):
    def setUp(self):
        self.thresholds = AlertThresholds()
        self.prior = RollingState.from_snapshot(
            make_snapshot(link=make_link(bssid="aa:bb:cc:dd:ee:99", channel=6,
                                         frequency_mhz=2437, band=WifiBand.BAND_2_4GHZ)))

    def test_missing_link_is_connection_dropped(self):
        for prior in (None, self.prior):
            snapshot = make_snapshot(link_up=False, internet=False)
            events, state = detect(snapshot, prior, self.thresholds)

            dropped = [e for e in events if e.event_type == EventType.CONNECTION_DROPPED]
            self.assertEqual(len(dropped), 1)
            self.assertEqual(dropped[0].severity, EventSeverity.CRITICAL)
            self.assertFalse(LINK_EVENT_TYPES & set(types_of(events)))
            self.assertFalse(state.was_connected)
            self.assertIsNone(state.last_bssid)

    def test_connection_restored(self):
        prior = RollingState(was_connected=False, internet_was_reachable=True)
        events, _ = detect(make_snapshot(), prior, self.thresholds)

        self.assertEqual(events[0].event_type, EventType.CONNECTION_RESTORED)
        self.assertEqual(events[0].severity, EventSeverity.INFO)

    def test_first_snapshot_has_no_restore_or_diffs(self):
        events, _ = detect(make_snapshot(), None, self.thresholds)
        self.assertEqual(events, [])


class TestStateDiffs(unittest.TestCase):
    def setUp(self):
        self.thresholds = AlertThresholds()
        self.prior = RollingState.from_snapshot(make_snapshot())

    def test_roam_to_other_access_point(self):
        link = make_link(bssid="aa:bb:cc:dd:ee:02", channel=6, frequency_mhz=2437,
                         band=WifiBand.BAND_2_4GHZ, ipv4_address="192.168.1.21")
        events, state = detect(make_snapshot(link=link), self.prior, self.thresholds)

        self.assertEqual(types_of(events), [
            EventType.BSSID_CHANGE,
            EventType.CHANNEL_CHANGE,
            EventType.BAND_SWITCH,
            EventType.IP_ADDRESS_CHANGE,
        ])
        self.assertEqual([e.severity for e in events], [
            EventSeverity.WARNING, EventSeverity.INFO, EventSeverity.WARNING, EventSeverity.INFO,
        ])
        self.assertEqual(events[0].details, {"old_bssid": "aa:bb:cc:dd:ee:01",
                                             "new_bssid": "aa:bb:cc:dd:ee:02"})
        self.assertEqual(events[1].details, {"old_channel": 36, "new_channel": 6})
        self.assertEqual(events[2].details, {"old_band": "5GHz", "new_band": "2.4GHz"})
        self.assertEqual(state.last_bssid, "aa:bb:cc:dd:ee:02")
        self.assertEqual(state.last_band, WifiBand.BAND_2_4GHZ)

    def test_unchanged_link_is_quiet(self):
        events, _ = detect(make_snapshot(), self.prior, self.thresholds)
        self.assertEqual(events, [])

    def test_no_diff_without_prior_value(self):
        prior = RollingState(was_connected=True, internet_was_reachable=True)
        events, _ = detect(make_snapshot(), prior, self.thresholds)
        self.assertEqual(events, [])


class TestPathRules(unittest.TestCase):
    def setUp(self):
        self.thresholds = AlertThresholds()
        self.prior = RollingState.from_snapshot(make_snapshot())

    def test_latency_bands(self):
        events, _ = detect(make_snapshot(avg=150.0), self.prior, self.thresholds)
        self.assertEqual([(e.event_type, e.severity) for e in events],
                         [(EventType.HIGH_LATENCY, EventSeverity.WARNING)])

        events, _ = detect(make_snapshot(avg=300.0), self.prior, self.thresholds)
        self.assertEqual([(e.event_type, e.severity) for e in events],
                         [(EventType.HIGH_LATENCY, EventSeverity.CRITICAL)])

    def test_jitter_at_threshold(self):
        events, _ = detect(make_snapshot(jitter=30.0), self.prior, self.thresholds)
        self.assertEqual([(e.event_type, e.severity) for e in events],
                         [(EventType.HIGH_JITTER, EventSeverity.WARNING)])

    def test_packet_loss_bands(self):
        events, _ = detect(make_snapshot(loss=2.5), self.prior, self.thresholds)
        self.assertEqual([(e.event_type, e.severity) for e in events],
                         [(EventType.PACKET_LOSS, EventSeverity.WARNING)])

        events, _ = detect(make_snapshot(loss=25.0), self.prior, self.thresholds)
        self.assertEqual([(e.event_type, e.severity) for e in events],
                         [(EventType.PACKET_LOSS, EventSeverity.CRITICAL)])

    def test_router_unreachable(self):
        events, _ = detect(make_snapshot(router=False, internet=False), self.prior, self.thresholds)
        self.assertEqual(types_of(events), [EventType.INTERNET_UNREACHABLE])
        self.assertEqual(events[0].details["issue_type"], "router_unreachable")
        self.assertEqual(events[0].severity, EventSeverity.CRITICAL)

    def test_internet_unreachable(self):
        events, state = detect(make_snapshot(internet=False), self.prior, self.thresholds)
        self.assertEqual(types_of(events), [EventType.INTERNET_UNREACHABLE])
        self.assertEqual(events[0].details["issue_type"], "internet_unreachable")
        self.assertFalse(state.internet_was_reachable)

    def test_internet_restored(self):
        prior = RollingState.from_snapshot(make_snapshot(internet=False))
        events, _ = detect(make_snapshot(), prior, self.thresholds)

        self.assertEqual(types_of(events), [EventType.CONNECTION_RESTORED])
        self.assertEqual(events[0].details, {"scope": "internet"})

    def test_dns_failures(self):
        events, _ = detect(make_snapshot(dns_failures=2), self.prior, self.thresholds)
        self.assertEqual(types_of(events), [EventType.DNS_FAILURE])
        self.assertEqual(events[0].details["failures"], 2)

    def test_custom_thresholds(self):
        strict = AlertThresholds(latency_warning_ms=10.0, latency_critical_ms=15.0)
        events, _ = detect(make_snapshot(avg=20.0), self.prior, strict)
        self.assertEqual([(e.event_type, e.severity) for e in events],
                         [(EventType.HIGH_LATENCY, EventSeverity.CRITICAL)])


class TestDetectorPurity(unittest.TestCase):
    def test_same_inputs_same_output(self):
        thresholds = AlertThresholds()
        prior = RollingState.from_snapshot(make_snapshot())
        snapshot = make_snapshot(offset_s=5, link=make_link(signal_dbm=-82, bssid="aa:bb:cc:dd:ee:07"),
                                 avg=180.0, loss=3.0, dns_failures=1)

        first = detect(snapshot, prior, thresholds)
        second = detect(snapshot, prior, thresholds)

        self.assertEqual(first, second)
        self.assertEqual(len({e.event_id for e in first[0]}), len(first[0]))
        for event in first[0]:
            self.assertEqual(event.timestamp, snapshot.timestamp)

    def test_prior_state_not_modified(self):
        prior = RollingState.from_snapshot(make_snapshot())
        before = prior
        detect(make_snapshot(link_up=False), prior, AlertThresholds())
        self.assertEqual(prior, before)
        self.assertTrue(prior.was_connected)


if __name__ == '__main__':
    unittest.main()
