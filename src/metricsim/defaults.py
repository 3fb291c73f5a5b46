"""
Built-in defaults for the simulated environment.

The resource list and archetype table mirror the services a typical
microservice demo deployment runs. Everything here can be overridden from
config/config.yaml, the environment or the command line.
"""

DEFAULT_ENDPOINT = "0.0.0.0:4317"
DEFAULT_PROTOCOL = "grpc"
DEFAULT_SERVICE_NAME = "otel-metrics-generator"
DEFAULT_SERVICE_VERSION = "v1.0.0"

DEFAULT_RESOURCES = (
    "web-service-a",
    "web-service-b",
    "order-service",
    "inventory-service",
    "user-service",
    "payment-service",
    "notification-service",
    "database-service",
)

# Upper bounds of histogram buckets; values above the last one overflow.
DEFAULT_BOUNDARIES = (0.5, 1.0, 2.5, 5.0, 10.0, 100.0, 1000.0, 10000.0)

# Resource-name pattern (fnmatch) -> metric suffix. First match wins.
DEFAULT_ARCHETYPES: tuple[tuple[str, str], ...] = (
    ("web-service-*", "http_request_duration_seconds"),
    ("order-service", "order_count"),
    ("inventory-service", "db_query_duration_seconds"),
    ("user-service", "http_requests_total"),
    ("payment-service", "payment_processing_time_seconds"),
    ("notification-service", "queue_length"),
    ("database-service", "db_query_duration_seconds"),
)

DEFAULT_METRIC_COUNT = (3, 7)
DEFAULT_DATA_POINT_COUNT = (5, 25)
DEFAULT_BUCKET_WEIGHT = (1, 5)
DEFAULT_MAX_VALUE = 15000.0
DEFAULT_VALUE_PRECISION = 2

DEFAULT_SAMPLE_DELAY_SECONDS = 0.05
DEFAULT_COOLDOWN_SECONDS = 1.0
DEFAULT_SHUTDOWN_GRACE_SECONDS = 2.0
DEFAULT_EXPORT_INTERVAL_MS = 5000
