import json
import logging
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from errors import MalformedRecord, PersistenceFailure, QueryError
from events.event_model import Event, EventSeverity, EventType
from extensions import db
from metrics.aggregator import PeriodStatistics, aggregate_snapshots
from metrics.normalizer import METRIC_NAMES, SERIES_VOCABULARY_VERSION, MetricNormalizer
from metrics.schema import Snapshot
from models.snapshot import EventRecord, SnapshotRecord, TimeseriesPoint
from utils.helpers import TimeBound, format_timestamp, normalize_bound, parse_timestamp, utcnow

logger = logging.getLogger(__name__)


class MetricsStore:
    """
    Durable history of snapshots, events and flattened series.

    Every public operation runs under the store lock and inside its own
    transaction, so a reader never observes half of an appended snapshot.
    Must be used inside a Flask application context.
    """
    EVENT_QUERY_LIMIT = 1000

    def __init__(self):
        self._lock = threading.RLock()

    # ----------------------------------------------------------------
    # Writes
    # ----------------------------------------------------------------
    def append(self, snapshot: Snapshot) -> None:
        """
        Persist a snapshot, its events and its series points atomically.

        Raises:
            PersistenceFailure: If the storage engine rejects the write.
                Nothing from the snapshot is recorded in that case.
        """
        ts = format_timestamp(snapshot.timestamp)

        # Serialize everything up front so no row is added on a bad payload
        snapshot_row = SnapshotRecord(id=snapshot.snapshot_id, timestamp=ts,
                                      data=json.dumps(snapshot.to_dict()))
        event_rows = [
            EventRecord(
                id=event.event_id,
                snapshot_id=snapshot.snapshot_id,
                timestamp=format_timestamp(event.timestamp),
                event_type=event.event_type.value,
                severity=event.severity.value,
                description=event.description,
                details=json.dumps(event.details),
            )
            for event in snapshot.events
        ]
        points = MetricNormalizer.normalize_snapshot(snapshot)

        with self._lock:
            try:
                db.session.add(snapshot_row)
                db.session.add_all(event_rows)
                for metric in points:
                    # Same (timestamp, metric) overwrites the earlier value
                    db.session.merge(TimeseriesPoint(timestamp=ts, metric_name=metric.name,
                                                     value=metric.value))
                db.session.commit()
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.error("Failed to save snapshot %s: %s", snapshot.snapshot_id, e)
                raise PersistenceFailure(f"Failed to save snapshot {snapshot.snapshot_id}: {e}") from e

        logger.debug("Saved snapshot %s with %d events and %d series points",
                     snapshot.snapshot_id, len(event_rows), len(points))

    # ----------------------------------------------------------------
    # Reads
    # ----------------------------------------------------------------
    def query_range(self, start: TimeBound = None, end: TimeBound = None,
                    limit: Optional[int] = None) -> List[Snapshot]:
        """
        Snapshots in [start, end], newest first. Unset bounds are unbounded.
        Invalid bounds or limits yield an empty list.
        """
        try:
            return self._fetch_snapshots(start, end, limit)
        except QueryError as e:
            logger.warning("Snapshot query rejected: %s", e)
            return []

    def latest(self) -> Optional[Snapshot]:
        snapshots = self.query_range(limit=1)
        return snapshots[0] if snapshots else None

    def query_series(self, metric_name: str, start: TimeBound = None,
                     end: TimeBound = None) -> List[Tuple[datetime, float]]:
        """(timestamp, value) points for one metric, oldest first."""
        try:
            if metric_name not in METRIC_NAMES:
                raise QueryError(f"Unknown metric {metric_name!r}")
            start_ts, end_ts = self._bounds(start, end)
        except QueryError as e:
            logger.warning("Series query rejected: %s", e)
            return []

        with self._lock:
            query = TimeseriesPoint.query.filter(TimeseriesPoint.metric_name == metric_name)
            if start_ts:
                query = query.filter(TimeseriesPoint.timestamp >= start_ts)
            if end_ts:
                query = query.filter(TimeseriesPoint.timestamp <= end_ts)
            rows = self._run(lambda: query.order_by(TimeseriesPoint.timestamp.asc()).all())

        points = []
        for row in rows:
            try:
                points.append((parse_timestamp(row.timestamp), float(row.value)))
            except (TypeError, ValueError) as e:
                logger.warning("Skipping malformed series point %s@%s: %s",
                               row.metric_name, row.timestamp, e)
        return points

    def query_events(self, start: TimeBound = None, end: TimeBound = None,
                     severity: Union[None, str, EventSeverity] = None,
                     event_type: Union[None, str, EventType] = None) -> List[Event]:
        """Events matching the filters, newest first, capped at 1000."""
        try:
            start_ts, end_ts = self._bounds(start, end)
            severity = _coerce_enum(EventSeverity, severity)
            event_type = _coerce_enum(EventType, event_type)
        except QueryError as e:
            logger.warning("Event query rejected: %s", e)
            return []

        with self._lock:
            query = EventRecord.query
            if start_ts:
                query = query.filter(EventRecord.timestamp >= start_ts)
            if end_ts:
                query = query.filter(EventRecord.timestamp <= end_ts)
            if severity is not None:
                query = query.filter(EventRecord.severity == severity.value)
            if event_type is not None:
                query = query.filter(EventRecord.event_type == event_type.value)
            query = query.order_by(EventRecord.timestamp.desc(), EventRecord.id.desc())
            rows = self._run(lambda: query.limit(self.EVENT_QUERY_LIMIT).all())

        events = []
        for row in rows:
            try:
                events.append(_decode_event(row))
            except MalformedRecord as e:
                logger.warning("Skipping event: %s", e)
        return events

    def aggregate(self, start: TimeBound = None, end: TimeBound = None) -> PeriodStatistics:
        """
        Recompute period statistics from every snapshot in range.
        An empty or invalid range yields a zero result.
        """
        try:
            start_ts, end_ts = self._bounds(start, end)
            snapshots = self._fetch_snapshots(start, end, None)
        except QueryError as e:
            logger.warning("Statistics query rejected: %s", e)
            return PeriodStatistics()

        return aggregate_snapshots(
            snapshots,
            start_time=parse_timestamp(start_ts) if start_ts else None,
            end_time=parse_timestamp(end_ts) if end_ts else None,
        )

    def event_counts_by_type(self, start: TimeBound = None, end: TimeBound = None) -> Dict[str, int]:
        """Event type -> count, in descending count order."""
        try:
            start_ts, end_ts = self._bounds(start, end)
        except QueryError as e:
            logger.warning("Event count query rejected: %s", e)
            return {}

        count = func.count(EventRecord.id).label('count')
        with self._lock:
            query = db.session.query(EventRecord.event_type, count)
            if start_ts:
                query = query.filter(EventRecord.timestamp >= start_ts)
            if end_ts:
                query = query.filter(EventRecord.timestamp <= end_ts)
            query = query.group_by(EventRecord.event_type).order_by(count.desc(), EventRecord.event_type.asc())
            rows = self._run(query.all)

        known = {t.value for t in EventType}
        counts = {}
        for event_type, n in rows:
            if event_type not in known:
                logger.warning("Skipping %d events with unknown type %r", n, event_type)
                continue
            counts[event_type] = int(n)
        return counts

    def export(self, start: TimeBound = None, end: TimeBound = None) -> Dict[str, Any]:
        """Bundle statistics, events and snapshots for a range into one document."""
        return {
            "exported_at": format_timestamp(utcnow()),
            "series_vocabulary_version": SERIES_VOCABULARY_VERSION,
            "statistics": self.aggregate(start, end).to_dict(),
            "events": [e.to_dict() for e in self.query_events(start, end)],
            "snapshots": [s.to_dict() for s in self.query_range(start, end)],
        }

    # ----------------------------------------------------------------
    # Internals
    # ----------------------------------------------------------------
    def _bounds(self, start: TimeBound, end: TimeBound) -> Tuple[Optional[str], Optional[str]]:
        start_ts, end_ts = normalize_bound(start), normalize_bound(end)
        if start_ts and end_ts and start_ts > end_ts:
            raise QueryError(f"Range start {start_ts} is after end {end_ts}")
        return start_ts, end_ts

    def _fetch_snapshots(self, start: TimeBound, end: TimeBound,
                         limit: Optional[int]) -> List[Snapshot]:
        start_ts, end_ts = self._bounds(start, end)
        if limit is not None and limit < 0:
            raise QueryError(f"Invalid limit {limit}")

        with self._lock:
            query = SnapshotRecord.query
            if start_ts:
                query = query.filter(SnapshotRecord.timestamp >= start_ts)
            if end_ts:
                query = query.filter(SnapshotRecord.timestamp <= end_ts)
            query = query.order_by(SnapshotRecord.timestamp.desc(), SnapshotRecord.id.desc())
            if limit is not None:
                query = query.limit(limit)
            rows = self._run(query.all)

        snapshots = []
        for row in rows:
            try:
                snapshots.append(_decode_snapshot(row))
            except MalformedRecord as e:
                logger.warning("Skipping snapshot: %s", e)
        return snapshots

    def _run(self, fetch):
        try:
            result = fetch()
            # End the read transaction so the next query sees fresh commits
            db.session.commit()
            return result
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Metrics store read failed: %s", e)
            raise PersistenceFailure(f"Metrics store read failed: {e}") from e


def _coerce_enum(enum_cls, value):
    if value is None or value == '':
        return None
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        pass
    try:
        return enum_cls[str(value).upper()]
    except KeyError:
        raise QueryError(f"Unknown {enum_cls.__name__} {value!r}")


def _decode_snapshot(row: SnapshotRecord) -> Snapshot:
    try:
        return Snapshot.from_dict(json.loads(row.data))
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise MalformedRecord(row.id, str(e))


def _decode_event(row: EventRecord) -> Event:
    try:
        details = json.loads(row.details) if row.details else {}
        return Event.from_dict({
            "id": row.id,
            "timestamp": row.timestamp,
            "event_type": row.event_type,
            "severity": row.severity,
            "description": row.description,
            "details": details,
        })
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise MalformedRecord(row.id, str(e))


def get_metrics_store() -> MetricsStore:
    """The store registered on the current app by create_app."""
    return current_app.extensions['metrics_store']
