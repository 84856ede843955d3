"""
Error taxonomy for the sampling pipeline and the metrics store.
"""


class MonitorError(Exception):
    """Base class for all monitor errors."""


class ProbeFailure(MonitorError):
    """
    A single sub-probe failed. The assembler degrades that field to its
    default and carries on with the cycle.
    """

    def __init__(self, probe: str, message: str):
        super().__init__(f"{probe} probe failed: {message}")
        self.probe = probe


class PersistenceFailure(MonitorError):
    """Storage engine failure on write or read. Never retried internally."""


class MalformedRecord(MonitorError):
    """A stored record could not be decoded. Readers skip it."""

    def __init__(self, record_id: str, message: str):
        super().__init__(f"Malformed record {record_id}: {message}")
        self.record_id = record_id


class QueryError(MonitorError):
    """Invalid range or filter supplied to a query."""
