import sys
import os
import unittest
from datetime import timedelta
from unittest.mock import MagicMock, patch

# Add project root to sys.path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from errors import PersistenceFailure
from events.event_model import Event, EventSeverity, EventType
from extensions import db

from factories import BASE_TIME, make_snapshot


class TestMonitoringApi(unittest.TestCase):
    def setUp(self):
        self.app = create_app({
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        }, probe=MagicMock())
        self.client = self.app.test_client()
        self.store = self.app.extensions['metrics_store']

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()

    def seed(self):
        with self.app.app_context():
            self.store.append(make_snapshot(offset_s=0, avg=20.0))
            self.store.append(make_snapshot(offset_s=5, link_up=False, internet=False, events=[
                Event(EventType.CONNECTION_DROPPED, EventSeverity.CRITICAL, "WiFi connection dropped",
                      timestamp=BASE_TIME + timedelta(seconds=5)),
            ]))
            self.store.append(make_snapshot(offset_s=10, avg=40.0))

    def test_current_without_data(self):
        response = self.client.get('/api/current')
        body = response.get_json()

        self.assertEqual(response.status_code, 200)
        self.assertTrue(body['success'])
        self.assertIsNone(body['data'])

    def test_current_returns_latest(self):
        self.seed()
        body = self.client.get('/api/current').get_json()
        self.assertEqual(body['data']['timestamp'], "2024-01-01T12:00:10.000000+00:00")

    def test_snapshots_with_limit_and_range(self):
        self.seed()
        body = self.client.get('/api/snapshots?limit=2').get_json()
        self.assertEqual(body['count'], 2)
        self.assertEqual(body['data'][0]['timestamp'], "2024-01-01T12:00:10.000000+00:00")

        body = self.client.get('/api/snapshots?end=2024-01-01T12:00:05Z').get_json()
        self.assertEqual(body['count'], 2)

    def test_timeseries(self):
        self.seed()
        body = self.client.get('/api/timeseries?metric=latency_avg').get_json()
        # The disconnected sample still measured 20 ms
        self.assertEqual([p['value'] for p in body['data']], [20.0, 20.0, 40.0])
        self.assertEqual(body['metric'], 'latency_avg')

    def test_timeseries_requires_metric(self):
        response = self.client.get('/api/timeseries')
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.get_json()['success'])

    def test_events_and_counts(self):
        self.seed()
        body = self.client.get('/api/events?severity=Critical').get_json()
        self.assertEqual(body['count'], 1)
        self.assertEqual(body['data'][0]['event_type'], 'ConnectionDropped')

        body = self.client.get('/api/event-counts').get_json()
        self.assertEqual(body['data'], [{'event_type': 'ConnectionDropped', 'count': 1}])

    def test_statistics(self):
        self.seed()
        data = self.client.get('/api/statistics').get_json()['data']
        self.assertEqual(data['sample_count'], 3)
        self.assertEqual(data['total_disconnections'], 1)
        self.assertEqual(data['critical_events'], 1)

    def test_invalid_bound_is_an_empty_result(self):
        self.seed()
        response = self.client.get('/api/snapshots?start=last-tuesday')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['count'], 0)

    def test_store_failure_is_500_with_message(self):
        with patch.object(self.store, 'latest', side_effect=PersistenceFailure("database is locked")):
            response = self.client.get('/api/current')

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json(), {'success': False, 'error': 'database is locked'})


class TestReportsApi(unittest.TestCase):
    def setUp(self):
        self.app = create_app({
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        }, probe=MagicMock())
        self.client = self.app.test_client()
        self.store = self.app.extensions['metrics_store']
        with self.app.app_context():
            for i in range(4):
                self.store.append(make_snapshot(offset_s=i * 5))

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()

    def test_export(self):
        data = self.client.get('/api/export').get_json()['data']
        self.assertEqual(len(data['snapshots']), 4)
        self.assertEqual(data['statistics']['sample_count'], 4)

    def test_health(self):
        data = self.client.get('/api/health').get_json()['data']
        self.assertEqual(data['score'], 100)
        self.assertEqual(data['rating'], 'Excellent')
        self.assertEqual(data['sample_count'], 4)

    def test_report_json_and_text(self):
        body = self.client.get('/api/report').get_json()
        self.assertIn("Total Samples: 4", body['data'])

        response = self.client.get('/api/report?format=text')
        self.assertEqual(response.mimetype, 'text/plain')
        self.assertIn("END OF REPORT", response.get_data(as_text=True))

    def test_report_failure(self):
        with patch.object(self.store, 'aggregate', side_effect=PersistenceFailure("disk I/O error")):
            response = self.client.get('/api/report')

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json()['error'], 'disk I/O error')


if __name__ == '__main__':
    unittest.main()
