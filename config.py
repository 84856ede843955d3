import os


def _csv(value):
    return [item.strip() for item in value.split(',') if item.strip()]


class Config:
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///wifi_metrics.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Monitoring Settings
    MONITORING_INTERVAL = int(os.environ.get('MONITORING_INTERVAL', 5))  # seconds
    PING_TARGETS = _csv(os.environ.get('PING_TARGETS', '8.8.8.8,1.1.1.1,google.com'))
    DNS_SERVERS = _csv(os.environ.get('DNS_SERVERS', '8.8.8.8,1.1.1.1'))
    DNS_TEST_DOMAINS = _csv(os.environ.get('DNS_TEST_DOMAINS', 'google.com,cloudflare.com,microsoft.com'))
    HTTP_PROBE_URL = os.environ.get('HTTP_PROBE_URL', 'http://www.gstatic.com/generate_204')
    PROBE_TIMEOUT = float(os.environ.get('PROBE_TIMEOUT', 5.0))  # seconds, per probe call

    # Alert Thresholds
    SIGNAL_WARNING_DBM = int(os.environ.get('SIGNAL_WARNING_DBM', -70))
    SIGNAL_CRITICAL_DBM = int(os.environ.get('SIGNAL_CRITICAL_DBM', -80))
    LATENCY_WARNING_MS = float(os.environ.get('LATENCY_WARNING_MS', 100.0))
    LATENCY_CRITICAL_MS = float(os.environ.get('LATENCY_CRITICAL_MS', 300.0))
    JITTER_WARNING_MS = float(os.environ.get('JITTER_WARNING_MS', 30.0))
    PACKET_LOSS_WARNING_PCT = float(os.environ.get('PACKET_LOSS_WARNING_PCT', 1.0))
    PACKET_LOSS_CRITICAL_PCT = float(os.environ.get('PACKET_LOSS_CRITICAL_PCT', 5.0))

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_DIR = os.environ.get('LOG_DIR', 'logs')

    # Dashboard
    DASHBOARD_HOST = os.environ.get('DASHBOARD_HOST', '127.0.0.1')
    DASHBOARD_PORT = int(os.environ.get('DASHBOARD_PORT', 8080))
