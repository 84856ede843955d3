import unittest
from datetime import datetime, timezone

from events.event_model import Event, EventSeverity, EventType


class TestEventSeverity(unittest.TestCase):
    def test_total_order(self):
        self.assertLess(EventSeverity.INFO, EventSeverity.WARNING)
        self.assertLess(EventSeverity.WARNING, EventSeverity.ERROR)
        self.assertLess(EventSeverity.ERROR, EventSeverity.CRITICAL)
        self.assertEqual(max(EventSeverity), EventSeverity.CRITICAL)
        self.assertEqual(sorted([EventSeverity.CRITICAL, EventSeverity.INFO, EventSeverity.ERROR]),
                         [EventSeverity.INFO, EventSeverity.ERROR, EventSeverity.CRITICAL])

    def test_wire_values(self):
        self.assertEqual([s.value for s in EventSeverity], ["Info", "Warning", "Error", "Critical"])
        self.assertEqual(EventType.BSSID_CHANGE.value, "BssidChange")
        self.assertEqual(len(EventType), 19)


class TestEventModel(unittest.TestCase):
    def setUp(self):
        self.event = Event(
            event_type=EventType.CHANNEL_CHANGE,
            severity=EventSeverity.INFO,
            description="Channel changed from 36 to 44",
            details={"old_channel": 36, "new_channel": 44},
            timestamp=datetime(2024, 3, 5, 8, 30, tzinfo=timezone.utc),
            event_id="0b7a6c43-2f4e-4f6b-9a55-1d5e4b1c9e10",
        )

    def test_to_dict(self):
        data = self.event.to_dict()
        self.assertEqual(data["id"], "0b7a6c43-2f4e-4f6b-9a55-1d5e4b1c9e10")
        self.assertEqual(data["timestamp"], "2024-03-05T08:30:00.000000+00:00")
        self.assertEqual(data["event_type"], "ChannelChange")
        self.assertEqual(data["severity"], "Info")
        self.assertEqual(data["details"]["new_channel"], 44)

    def test_from_dict_restores_event(self):
        self.assertEqual(Event.from_dict(self.event.to_dict()), self.event)

    def test_from_dict_rejects_unknown_type(self):
        data = self.event.to_dict()
        data["event_type"] = "SolarFlare"
        with self.assertRaises(ValueError):
            Event.from_dict(data)

    def test_from_dict_rejects_non_object_details(self):
        data = self.event.to_dict()
        data["details"] = [1, 2, 3]
        with self.assertRaises(ValueError):
            Event.from_dict(data)

    def test_from_dict_rejects_non_object_payload(self):
        for payload in ("x", [self.event.to_dict()]):
            with self.assertRaises(ValueError):
                Event.from_dict(payload)

    def test_missing_details_default_to_empty(self):
        data = self.event.to_dict()
        del data["details"]
        self.assertEqual(Event.from_dict(data).details, {})


if __name__ == '__main__':
    unittest.main()
