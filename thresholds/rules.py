from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional
import operator

# Standardized threshold metric names
SIGNAL_DBM = "signal_dbm"
LATENCY_MS = "latency_ms"
JITTER_MS = "jitter_ms"
PACKET_LOSS_PCT = "packet_loss_percent"


class ThresholdState(Enum):
    OK = "OK"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class ThresholdOperator(Enum):
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="

    def evaluate(self, value: Any, threshold: Any) -> bool:
        ops = {
            ThresholdOperator.GT: operator.gt,
            ThresholdOperator.LT: operator.lt,
            ThresholdOperator.GE: operator.ge,
            ThresholdOperator.LE: operator.le,
        }
        return ops[self](value, threshold)


@dataclass(frozen=True)
class ThresholdRule:
    """
    Defines a threshold rule for a specific metric.
    """
    metric_name: str
    operator: ThresholdOperator
    warning_threshold: Optional[float] = None
    critical_threshold: Optional[float] = None

    def evaluate_state(self, value: float) -> ThresholdState:
        """
        Classify a single value. Critical is checked first, so a value that
        breaches both thresholds is only ever CRITICAL.
        """
        if self.critical_threshold is not None:
            if self.operator.evaluate(value, self.critical_threshold):
                return ThresholdState.CRITICAL

        if self.warning_threshold is not None:
            if self.operator.evaluate(value, self.warning_threshold):
                return ThresholdState.WARNING

        return ThresholdState.OK


@dataclass(frozen=True)
class AlertThresholds:
    """
    Static alert configuration, fixed for a monitoring run.
    """
    signal_warning_dbm: int = -70
    signal_critical_dbm: int = -80
    latency_warning_ms: float = 100.0
    latency_critical_ms: float = 300.0
    jitter_warning_ms: float = 30.0
    packet_loss_warning_percent: float = 1.0
    packet_loss_critical_percent: float = 5.0

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "AlertThresholds":
        defaults = cls()
        return cls(
            signal_warning_dbm=int(config.get('SIGNAL_WARNING_DBM', defaults.signal_warning_dbm)),
            signal_critical_dbm=int(config.get('SIGNAL_CRITICAL_DBM', defaults.signal_critical_dbm)),
            latency_warning_ms=float(config.get('LATENCY_WARNING_MS', defaults.latency_warning_ms)),
            latency_critical_ms=float(config.get('LATENCY_CRITICAL_MS', defaults.latency_critical_ms)),
            jitter_warning_ms=float(config.get('JITTER_WARNING_MS', defaults.jitter_warning_ms)),
            packet_loss_warning_percent=float(
                config.get('PACKET_LOSS_WARNING_PCT', defaults.packet_loss_warning_percent)),
            packet_loss_critical_percent=float(
                config.get('PACKET_LOSS_CRITICAL_PCT', defaults.packet_loss_critical_percent)),
        )

    @property
    def signal_rule(self) -> ThresholdRule:
        # Weak signal means a low (more negative) dBm value
        return ThresholdRule(SIGNAL_DBM, ThresholdOperator.LE,
                             self.signal_warning_dbm, self.signal_critical_dbm)

    @property
    def latency_rule(self) -> ThresholdRule:
        return ThresholdRule(LATENCY_MS, ThresholdOperator.GE,
                             self.latency_warning_ms, self.latency_critical_ms)

    @property
    def jitter_rule(self) -> ThresholdRule:
        return ThresholdRule(JITTER_MS, ThresholdOperator.GE, self.jitter_warning_ms)

    @property
    def packet_loss_rule(self) -> ThresholdRule:
        return ThresholdRule(PACKET_LOSS_PCT, ThresholdOperator.GE,
                             self.packet_loss_warning_percent, self.packet_loss_critical_percent)
