"""
Observability setup:
  - OpenTelemetry distributed tracing → Jaeger (via OTLP gRPC)
  - Prometheus metrics: toggles, rollbacks, gateway latency, refetch failures
  - Log format shared by every embedding application

Tracing is initialised once by the lifecycle helpers in lookbook.main.
"""
import logging

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from prometheus_client import Counter, Histogram

from lookbook.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s — %(message)s"

# ─────────────────────────── Prometheus Metrics ───────────────────────────
INTERACTION_TOGGLES_TOTAL = Counter(
    "interaction_toggles_total",
    "Optimistic toggles started, by relation and direction",
    ["relation", "direction"],  # direction: 'add' | 'remove'
)

INTERACTION_ROLLBACKS_TOTAL = Counter(
    "interaction_rollbacks_total",
    "Optimistic patches rolled back after a failed remote call",
    ["relation", "direction"],
)

INTERACTION_REJECTED_TOTAL = Counter(
    "interaction_rejected_total",
    "Toggles rejected before any cache write",
    ["relation", "reason"],
)

GATEWAY_LATENCY = Histogram(
    "interaction_gateway_latency_seconds",
    "Latency of the remote mutation call behind a toggle",
    ["relation"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

CACHE_REFETCH_TOTAL = Counter(
    "cache_refetch_total",
    "Authoritative reloads of cache slots (background refetch or stale read)",
    ["kind", "outcome"],  # outcome: 'ok' | 'error' | 'cancelled' | 'loaded'
)


def configure_logging(level: str | None = None) -> None:
    """Apply the shared log format to the root logger."""
    logging.basicConfig(
        level=(level or default_settings.log_level).upper(),
        format=LOG_FORMAT,
    )


# ─────────────────────────── OpenTelemetry Setup ──────────────────────────
def setup_tracing(config: Settings | None = None) -> None:
    """Configure the global OTel TracerProvider with OTLP/Jaeger export."""
    config = config or default_settings
    resource = Resource.create(
        {
            "service.name": config.service_name,
            "deployment.environment": config.environment,
        }
    )

    provider = TracerProvider(resource=resource)

    try:
        otlp_exporter = OTLPSpanExporter(
            endpoint=config.otel_exporter_otlp_endpoint,
            insecure=True,
        )
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        logger.info(
            "OTel tracing configured → %s", config.otel_exporter_otlp_endpoint
        )
    except Exception as exc:
        logger.warning("Could not connect to OTLP exporter: %s — traces disabled", exc)

    trace.set_tracer_provider(provider)

    # Remote mutation and refetch calls show up as child spans of a toggle
    HTTPXClientInstrumentor().instrument()
