# config/monitoring.py

import os

from prometheus_client import Counter, Histogram


class MonitoringConfig:
    """Monitoring and logging configuration"""

    MONITORING_ENABLED = os.environ.get("MONITORING_ENABLED", "false").lower() == "true"

    # Logging Configuration
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")  # 'json' or 'text'
    LOG_DIR = os.environ.get("LOG_DIR", "logs")
    LOG_FILE_MAX_BYTES = int(os.environ.get("LOG_FILE_MAX_BYTES", 10485760))  # 10MB
    LOG_FILE_BACKUP_COUNT = int(os.environ.get("LOG_FILE_BACKUP_COUNT", 10))

    ENABLE_FILE_LOGGING = os.environ.get("ENABLE_FILE_LOGGING", "true").lower() == "true"
    ENABLE_CONSOLE_LOGGING = os.environ.get("ENABLE_CONSOLE_LOGGING", "true").lower() == "true"

    APP_NAME = os.environ.get("APP_NAME", "canvass-reconciler")
    APP_VERSION = os.environ.get("APP_VERSION", "0.1.0")


class DevelopmentMonitoringConfig(MonitoringConfig):
    """Development-specific monitoring configuration"""

    LOG_LEVEL = "DEBUG"
    LOG_FORMAT = "text"  # More readable in development
    ENABLE_FILE_LOGGING = True
    ENABLE_CONSOLE_LOGGING = True


class ProductionMonitoringConfig(MonitoringConfig):
    """Production-specific monitoring configuration"""

    LOG_LEVEL = "INFO"
    LOG_FORMAT = "json"  # Structured logging for production
    ENABLE_FILE_LOGGING = True
    ENABLE_CONSOLE_LOGGING = False  # Usually handled by container orchestration


class TestingMonitoringConfig(MonitoringConfig):
    """Testing-specific monitoring configuration"""

    MONITORING_ENABLED = False
    LOG_LEVEL = "WARNING"
    LOG_FORMAT = "text"
    ENABLE_FILE_LOGGING = False
    ENABLE_CONSOLE_LOGGING = False


class ReconciliationMonitoring:
    """Prometheus metric helpers for the reconciliation engine."""

    CAPTURE_COUNTER = Counter(
        "reconciliation_captures_total",
        "Capture submissions by final status.",
        labelnames=("status", "source"),
    )
    CAPTURE_LATENCY = Histogram(
        "reconciliation_capture_seconds",
        "Latency histogram for a single capture reconciliation.",
        labelnames=("status",),
        buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2),
    )
    INCIDENT_COUNTER = Counter(
        "reconciliation_incidents_total",
        "Incidents emitted by kind.",
        labelnames=("kind",),
    )
    SOFT_DELETE_COUNTER = Counter(
        "reconciliation_soft_deletes_total",
        "Entities moved to the archive by kind.",
        labelnames=("kind",),
    )
    RENAME_COUNTER = Counter(
        "reconciliation_renames_total",
        "Identifier renames by entity kind and outcome.",
        labelnames=("kind", "status"),
    )

    @classmethod
    def record_capture(cls, *, status: str, source: str, duration_seconds: float):
        cls.CAPTURE_COUNTER.labels(status=status, source=source).inc()
        cls.CAPTURE_LATENCY.labels(status=status).observe(max(duration_seconds, 0.0))

    @classmethod
    def record_incident(cls, *, kind: str):
        cls.INCIDENT_COUNTER.labels(kind=kind).inc()

    @classmethod
    def record_soft_delete(cls, *, kind: str, count: int = 1):
        cls.SOFT_DELETE_COUNTER.labels(kind=kind).inc(max(count, 0))

    @classmethod
    def record_rename(cls, *, kind: str, status: str):
        cls.RENAME_COUNTER.labels(kind=kind, status=status).inc()
