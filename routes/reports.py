from flask import Blueprint, Response, jsonify, request

from routes.monitoring import error_response, range_args
from services import health_analyzer
from services.metrics_store import get_metrics_store
from services.report import generate_store_report

reports_bp = Blueprint('reports_bp', __name__, url_prefix='')


@reports_bp.route('/api/export')
def export_data():
    start, end = range_args()
    try:
        return jsonify({'success': True, 'data': get_metrics_store().export(start, end)})
    except Exception as e:
        return error_response(e)


@reports_bp.route('/api/health')
def get_health():
    start, end = range_args()
    try:
        store = get_metrics_store()
        stats = store.aggregate(start, end)
        assessment = health_analyzer.analyze(stats, store.event_counts_by_type(start, end))
        data = assessment.to_dict()
        data['sample_count'] = stats.sample_count
        return jsonify({'success': True, 'data': data})
    except Exception as e:
        return error_response(e)


@reports_bp.route('/api/report')
def get_report():
    start, end = range_args()
    try:
        report = generate_store_report(get_metrics_store(), start, end)
    except Exception as e:
        return error_response(e)

    if request.args.get('format') == 'text':
        return Response(report, mimetype='text/plain')
    return jsonify({'success': True, 'data': report})
