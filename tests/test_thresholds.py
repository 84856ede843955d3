import sys
import os
import unittest

# Add project root to sys.path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from thresholds.rules import AlertThresholds, ThresholdOperator, ThresholdRule, ThresholdState


class TestThresholdRule(unittest.TestCase):
    def setUp(self):
        self.latency = ThresholdRule(
            metric_name="latency_ms",
            operator=ThresholdOperator.GE,
            warning_threshold=100,
            critical_threshold=300,
        )
        self.signal = ThresholdRule(
            metric_name="signal_dbm",
            operator=ThresholdOperator.LE,
            warning_threshold=-70,
            critical_threshold=-80,
        )

    def test_ok_state(self):
        self.assertEqual(self.latency.evaluate_state(10), ThresholdState.OK)
        self.assertEqual(self.signal.evaluate_state(-50), ThresholdState.OK)

    def test_warning_boundary_is_inclusive(self):
        self.assertEqual(self.latency.evaluate_state(100), ThresholdState.WARNING)
        self.assertEqual(self.latency.evaluate_state(99.9), ThresholdState.OK)
        self.assertEqual(self.signal.evaluate_state(-70), ThresholdState.WARNING)

    def test_critical_wins_over_warning(self):
        # Both thresholds are breached; only CRITICAL is reported
        self.assertEqual(self.latency.evaluate_state(450), ThresholdState.CRITICAL)
        self.assertEqual(self.signal.evaluate_state(-80), ThresholdState.CRITICAL)
        self.assertEqual(self.signal.evaluate_state(-95), ThresholdState.CRITICAL)

    def test_warning_only_rule(self):
        jitter = ThresholdRule("jitter_ms", ThresholdOperator.GE, warning_threshold=30)
        self.assertEqual(jitter.evaluate_state(500), ThresholdState.WARNING)
        self.assertEqual(jitter.evaluate_state(29), ThresholdState.OK)

    def test_strict_operators(self):
        self.assertTrue(ThresholdOperator.GT.evaluate(5, 4))
        self.assertFalse(ThresholdOperator.GT.evaluate(4, 4))
        self.assertTrue(ThresholdOperator.LT.evaluate(3, 4))
        self.assertFalse(ThresholdOperator.LT.evaluate(4, 4))


class TestAlertThresholds(unittest.TestCase):
    def test_defaults(self):
        t = AlertThresholds()
        self.assertEqual((t.signal_warning_dbm, t.signal_critical_dbm), (-70, -80))
        self.assertEqual((t.latency_warning_ms, t.latency_critical_ms), (100.0, 300.0))
        self.assertEqual(t.jitter_warning_ms, 30.0)
        self.assertEqual((t.packet_loss_warning_percent, t.packet_loss_critical_percent), (1.0, 5.0))

    def test_from_config_overrides(self):
        t = AlertThresholds.from_config({
            'SIGNAL_WARNING_DBM': '-65',
            'LATENCY_CRITICAL_MS': 250,
            'PACKET_LOSS_WARNING_PCT': 0.5,
        })
        self.assertEqual(t.signal_warning_dbm, -65)
        self.assertEqual(t.signal_critical_dbm, -80)
        self.assertEqual(t.latency_critical_ms, 250.0)
        self.assertEqual(t.packet_loss_warning_percent, 0.5)
        self.assertEqual(t.packet_loss_rule.evaluate_state(0.6), ThresholdState.WARNING)


if __name__ == '__main__':
    unittest.main()
