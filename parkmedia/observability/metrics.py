"""
Prometheus metrics collection for the ParkLookup media service.

This module provides:
- Application metrics (requests, response times)
- Media pipeline metrics (processed assets, durations, sizes)
- Subprocess and storage operation metrics
- Upload lifecycle outcome counters
"""

import time
from contextlib import contextmanager

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    Info,
    generate_latest,
)

from ..core.config import settings


class MetricsCollector:
    """Central metrics collector for the application."""

    def __init__(self, registry: CollectorRegistry | None = None):
        """Initialize metrics collector."""
        self.registry = registry or CollectorRegistry()
        self._setup_metrics()

    def _setup_metrics(self):
        """Initialize all application metrics."""

        self.app_info = Info(
            'parkmedia_info',
            'Application information',
            registry=self.registry
        )
        self.app_info.info({
            'version': settings.app.version,
            'environment': settings.app.environment,
            'name': settings.app.app_name
        })

        # HTTP request metrics
        self.http_requests_total = Counter(
            'parkmedia_http_requests_total',
            'Total HTTP requests',
            ['method', 'endpoint', 'status_code'],
            registry=self.registry
        )

        self.http_request_duration = Histogram(
            'parkmedia_http_request_duration_seconds',
            'HTTP request duration in seconds',
            ['method', 'endpoint'],
            buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
            registry=self.registry
        )

        # Media processing metrics
        self.media_processed_total = Counter(
            'parkmedia_media_processed_total',
            'Total media files processed',
            ['media_type', 'success'],
            registry=self.registry
        )

        self.media_processing_duration = Histogram(
            'parkmedia_media_processing_duration_seconds',
            'Media processing duration in seconds',
            ['media_type', 'operation'],
            buckets=[0.1, 0.5, 1, 5, 10, 30, 60, 180, 300, 600],
            registry=self.registry
        )

        self.media_file_size = Histogram(
            'parkmedia_media_file_size_bytes',
            'Media file sizes in bytes',
            ['media_type', 'stage'],
            buckets=[1024, 10240, 102400, 1048576, 10485760, 52428800, 104857600],
            registry=self.registry
        )

        self.passthrough_total = Counter(
            'parkmedia_video_passthrough_total',
            'Videos accepted without transcoding because ffmpeg is unavailable',
            registry=self.registry
        )

        # Subprocess metrics
        self.subprocess_calls_total = Counter(
            'parkmedia_subprocess_calls_total',
            'External encoder/prober invocations',
            ['binary', 'status'],
            registry=self.registry
        )

        # Storage metrics
        self.storage_operations_total = Counter(
            'parkmedia_storage_operations_total',
            'Total storage operations',
            ['operation', 'bucket', 'status'],
            registry=self.registry
        )

        self.storage_operation_duration = Histogram(
            'parkmedia_storage_operation_duration_seconds',
            'Storage operation duration in seconds',
            ['operation', 'bucket'],
            buckets=[0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0],
            registry=self.registry
        )

        # Upload lifecycle
        self.uploads_total = Counter(
            'parkmedia_uploads_total',
            'Upload lifecycle outcomes',
            ['media_type', 'status'],
            registry=self.registry
        )

    def track_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Track HTTP request metrics."""
        self.http_requests_total.labels(
            method=method, endpoint=endpoint, status_code=str(status_code)
        ).inc()

        self.http_request_duration.labels(
            method=method, endpoint=endpoint
        ).observe(duration)

    def track_media_processed(self, media_type: str, success: bool, duration: float,
                              file_size: int = 0, operation: str = "process"):
        """Track media processing."""
        success_str = "success" if success else "failure"

        self.media_processed_total.labels(
            media_type=media_type, success=success_str
        ).inc()

        self.media_processing_duration.labels(
            media_type=media_type, operation=operation
        ).observe(duration)

        if file_size > 0:
            self.media_file_size.labels(
                media_type=media_type, stage="output"
            ).observe(file_size)

    def track_passthrough(self):
        self.passthrough_total.inc()

    def track_subprocess(self, binary: str, status: str):
        self.subprocess_calls_total.labels(binary=binary, status=status).inc()

    def track_storage_operation(self, operation: str, bucket: str, status: str, duration: float):
        """Track storage operation."""
        self.storage_operations_total.labels(
            operation=operation, bucket=bucket, status=status
        ).inc()

        self.storage_operation_duration.labels(
            operation=operation, bucket=bucket
        ).observe(duration)

    def track_upload(self, media_type: str | None, status: str):
        """Track an upload reaching a terminal state."""
        self.uploads_total.labels(media_type=media_type or "unknown", status=status).inc()

    def get_metrics(self) -> bytes:
        """Get metrics in Prometheus format."""
        return generate_latest(self.registry)


# Global metrics collector
metrics = MetricsCollector()


@contextmanager
def track_processing_time(media_type: str, operation: str):
    """Context manager to observe the duration of a pipeline step."""
    start_time = time.time()
    try:
        yield
    finally:
        metrics.media_processing_duration.labels(
            media_type=media_type, operation=operation
        ).observe(time.time() - start_time)


def get_metrics_response():
    """Get metrics in format suitable for HTTP response."""
    return metrics.get_metrics(), {"Content-Type": CONTENT_TYPE_LATEST}


def get_test_metrics() -> MetricsCollector:
    """Get metrics collector configured for testing."""
    return MetricsCollector(CollectorRegistry())
