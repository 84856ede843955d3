import argparse
import json
import logging
import os
import sys
from logging.handlers import TimedRotatingFileHandler

from flask import Flask
from sqlalchemy import event

from config import Config
from extensions import db
from services.assembler import SnapshotAssembler
from services.metrics_store import MetricsStore
from services.probe import SystemProbe
from services.wifi_monitor import WifiMonitor
from thresholds.rules import AlertThresholds

logger = logging.getLogger(__name__)


def create_app(test_config=None, probe=None):
    app = Flask(__name__)
    app.config.from_object(Config)

    if test_config:
        app.config.update(test_config)

    # ---------------------------
    # Initialize extensions
    # ---------------------------
    db.init_app(app)

    # ---------------------------
    # SQLite Performance Tuning (WAL Mode + Busy Timeout)
    # ---------------------------
    with app.app_context():
        @event.listens_for(db.engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            if app.config['SQLALCHEMY_DATABASE_URI'].startswith("sqlite"):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA synchronous=NORMAL")
                cursor.execute("PRAGMA busy_timeout=30000")  # 30s timeout
                cursor.close()

    # ---------------------------
    # Database setup
    # ---------------------------
    with app.app_context():
        from models import SnapshotRecord, EventRecord, TimeseriesPoint  # noqa: F401
        db.create_all()

    # ---------------------------
    # Pipeline
    # ---------------------------
    store = MetricsStore()
    if probe is None:
        probe = SystemProbe(timeout=app.config['PROBE_TIMEOUT'],
                            http_probe_url=app.config['HTTP_PROBE_URL'])
    app.extensions['metrics_store'] = store
    app.extensions['wifi_monitor'] = WifiMonitor(
        store,
        SnapshotAssembler.from_config(probe, app.config),
        AlertThresholds.from_config(app.config),
    )

    # ---------------------------
    # Register blueprints
    # ---------------------------
    from routes.monitoring import monitoring_bp
    from routes.reports import reports_bp

    app.register_blueprint(monitoring_bp)
    app.register_blueprint(reports_bp)

    return app


# ---------------------------
# Logging
# ---------------------------
def setup_logging(level='INFO', log_dir=None):
    handlers = [logging.StreamHandler()]
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(TimedRotatingFileHandler(
            os.path.join(log_dir, 'wifi-monitor.log'),
            when='H',
            interval=1,
            backupCount=72,
            encoding='utf-8',
        ))

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=handlers,
        force=True,
    )


# ---------------------------
# Command line
# ---------------------------
def build_parser():
    parser = argparse.ArgumentParser(
        prog='wifi-stability-tracker',
        description='A comprehensive WiFi stability debugging tool',
    )
    parser.add_argument('-d', '--database', help='Path to the SQLite database file')
    parser.add_argument('--log-level', default=Config.LOG_LEVEL)
    subparsers = parser.add_subparsers(dest='command', required=True)

    monitor = subparsers.add_parser('monitor', help='Start monitoring WiFi stability')
    monitor.add_argument('-i', '--interval', type=int, default=Config.MONITORING_INTERVAL,
                         help='Interval between measurements in seconds')
    monitor.add_argument('-p', '--port', type=int, default=Config.DASHBOARD_PORT)
    monitor.add_argument('--host', default=Config.DASHBOARD_HOST)
    monitor.add_argument('-l', '--log-dir', default=Config.LOG_DIR)
    monitor.add_argument('--ping-targets', help='Targets to ping (comma-separated)')
    monitor.add_argument('--dns-servers', help='DNS servers to test (comma-separated)')
    monitor.add_argument('--fresh', action='store_true',
                         help='Recreate the database tables before monitoring')

    dashboard = subparsers.add_parser('dashboard', help='Serve the dashboard API without monitoring')
    dashboard.add_argument('-p', '--port', type=int, default=Config.DASHBOARD_PORT)
    dashboard.add_argument('--host', default=Config.DASHBOARD_HOST)

    export = subparsers.add_parser('export', help='Export collected data to JSON')
    export.add_argument('-o', '--output', default='wifi_export.json')
    export.add_argument('--start', help='Start time filter (ISO 8601)')
    export.add_argument('--end', help='End time filter (ISO 8601)')

    analyze = subparsers.add_parser('analyze', help='Analyze collected data and generate a report')
    analyze.add_argument('-o', '--output', default='wifi_report.txt')
    analyze.add_argument('--start', help='Start time filter (ISO 8601)')
    analyze.add_argument('--end', help='End time filter (ISO 8601)')

    return parser


def run_monitor(args, overrides):
    if args.ping_targets:
        overrides['PING_TARGETS'] = [t.strip() for t in args.ping_targets.split(',') if t.strip()]
    if args.dns_servers:
        overrides['DNS_SERVERS'] = [s.strip() for s in args.dns_servers.split(',') if s.strip()]
    overrides['MONITORING_INTERVAL'] = args.interval

    from services.scheduler import MonitoringScheduler

    app = create_app(overrides)
    if args.fresh:
        with app.app_context():
            db.drop_all()
            db.create_all()
        logger.info("Started with a fresh database")

    scheduler = MonitoringScheduler(app, app.extensions['wifi_monitor'], args.interval)

    logger.info("Starting WiFi Stability Tracker (interval %ss)", args.interval)
    logger.info("Dashboard API: http://%s:%s/api/current", args.host, args.port)
    try:
        scheduler.start_scheduled_monitoring()
        app.run(host=args.host, port=args.port, debug=False, use_reloader=False)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        scheduler.stop_scheduled_monitoring()
    return 0


def run_dashboard(args, overrides):
    app = create_app(overrides)
    logger.info("Dashboard API: http://%s:%s/api/current", args.host, args.port)
    app.run(host=args.host, port=args.port, debug=False, use_reloader=False)
    return 0


def run_export(args, overrides):
    app = create_app(overrides)
    with app.app_context():
        document = app.extensions['metrics_store'].export(args.start, args.end)

    with open(args.output, 'w', encoding='utf-8') as f:
        json.dump(document, f, indent=2)
    print(f"Exported {len(document['snapshots'])} snapshots and "
          f"{len(document['events'])} events to {args.output}")
    return 0


def run_analyze(args, overrides):
    from services.report import generate_store_report

    app = create_app(overrides)
    with app.app_context():
        report = generate_store_report(app.extensions['metrics_store'], args.start, args.end)

    with open(args.output, 'w', encoding='utf-8') as f:
        f.write(report)
    print(report)
    print(f"Report saved to {args.output}")
    return 0


COMMANDS = {
    'monitor': run_monitor,
    'dashboard': run_dashboard,
    'export': run_export,
    'analyze': run_analyze,
}


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, getattr(args, 'log_dir', None))

    overrides = {}
    if args.database:
        overrides['SQLALCHEMY_DATABASE_URI'] = 'sqlite:///' + os.path.abspath(args.database)

    try:
        return COMMANDS[args.command](args, overrides)
    except Exception as e:
        logger.error("%s failed: %s", args.command, e)
        print(f"Error: {e}", file=sys.stderr)
        return 1


# ---------------------------
# Main entry point
# ---------------------------
if __name__ == "__main__":
    sys.exit(main())
