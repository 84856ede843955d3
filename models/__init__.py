# Import all models here to make them available
from .snapshot import SnapshotRecord, EventRecord, TimeseriesPoint

__all__ = ['SnapshotRecord', 'EventRecord', 'TimeseriesPoint']
