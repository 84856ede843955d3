"""
Persisted layout for snapshots, their events and the flattened time series.
Timestamps are stored as fixed-width RFC 3339 UTC text so that string order
is time order.
"""
from extensions import db


class SnapshotRecord(db.Model):
    __tablename__ = 'snapshots'

    id = db.Column(db.String(36), primary_key=True)  # UUID
    timestamp = db.Column(db.String(32), nullable=False, index=True)
    data = db.Column(db.Text, nullable=False)  # Snapshot JSON

    events = db.relationship(
        'EventRecord',
        backref=db.backref('snapshot', lazy=True),
        cascade='all, delete-orphan',
        lazy=True
    )

    def __repr__(self):
        return f'<SnapshotRecord {self.id[:8]} @ {self.timestamp}>'


class EventRecord(db.Model):
    __tablename__ = 'events'

    id = db.Column(db.String(36), primary_key=True)  # UUID
    snapshot_id = db.Column(db.String(36), db.ForeignKey('snapshots.id'), nullable=False)
    timestamp = db.Column(db.String(32), nullable=False, index=True)
    event_type = db.Column(db.String(50), nullable=False, index=True)
    severity = db.Column(db.String(20), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False)
    details = db.Column(db.Text, nullable=True)  # JSON object

    def __repr__(self):
        return f'<EventRecord {self.id[:8]} - {self.event_type}/{self.severity}>'


class TimeseriesPoint(db.Model):
    __tablename__ = 'timeseries'

    timestamp = db.Column(db.String(32), primary_key=True)
    metric_name = db.Column(db.String(50), primary_key=True)
    value = db.Column(db.Float, nullable=False)

    __table_args__ = (
        db.Index('idx_timeseries_metric', 'metric_name', 'timestamp'),
    )

    def __repr__(self):
        return f'<TimeseriesPoint {self.metric_name}={self.value} @ {self.timestamp}>'
