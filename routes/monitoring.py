import logging

from flask import Blueprint, jsonify, request

from metrics.aggregator import get_cutoff_time
from services.metrics_store import get_metrics_store
from utils.helpers import format_timestamp

logger = logging.getLogger(__name__)

monitoring_bp = Blueprint('monitoring_bp', __name__, url_prefix='')


def range_args():
    """
    Read the requested time range from the query string.
    An explicit `start` wins over a `time_range` preset such as last_24h.
    """
    start = request.args.get('start')
    end = request.args.get('end')
    time_range = request.args.get('time_range')
    if not start and time_range:
        start = get_cutoff_time(time_range)
    return start, end


def error_response(e: Exception, status: int = 500):
    logger.error("API request %s failed: %s", request.path, e)
    return jsonify({'success': False, 'error': str(e)}), status


@monitoring_bp.route('/api/current')
def get_current():
    try:
        snapshot = get_metrics_store().latest()
        if snapshot is None:
            return jsonify({'success': True, 'data': None, 'message': 'No data collected yet'})
        return jsonify({'success': True, 'data': snapshot.to_dict()})
    except Exception as e:
        return error_response(e)


@monitoring_bp.route('/api/snapshots')
def get_snapshots():
    start, end = range_args()
    limit = request.args.get('limit', type=int)
    try:
        snapshots = get_metrics_store().query_range(start, end, limit)
        return jsonify({
            'success': True,
            'count': len(snapshots),
            'data': [s.to_dict() for s in snapshots],
        })
    except Exception as e:
        return error_response(e)


@monitoring_bp.route('/api/timeseries')
def get_timeseries():
    metric = request.args.get('metric')
    if not metric:
        return jsonify({'success': False, 'error': 'metric parameter is required'}), 400

    start, end = range_args()
    try:
        points = get_metrics_store().query_series(metric, start, end)
        return jsonify({
            'success': True,
            'metric': metric,
            'count': len(points),
            'data': [{'timestamp': format_timestamp(ts), 'value': value} for ts, value in points],
        })
    except Exception as e:
        return error_response(e)


@monitoring_bp.route('/api/events')
def get_events():
    start, end = range_args()
    try:
        events = get_metrics_store().query_events(
            start, end,
            severity=request.args.get('severity'),
            event_type=request.args.get('event_type'),
        )
        return jsonify({
            'success': True,
            'count': len(events),
            'data': [e.to_dict() for e in events],
        })
    except Exception as e:
        return error_response(e)


@monitoring_bp.route('/api/statistics')
def get_statistics():
    start, end = range_args()
    try:
        stats = get_metrics_store().aggregate(start, end)
        return jsonify({'success': True, 'data': stats.to_dict()})
    except Exception as e:
        return error_response(e)


@monitoring_bp.route('/api/event-counts')
def get_event_counts():
    start, end = range_args()
    try:
        counts = get_metrics_store().event_counts_by_type(start, end)
        return jsonify({
            'success': True,
            'data': [{'event_type': t, 'count': n} for t, n in counts.items()],
        })
    except Exception as e:
        return error_response(e)
