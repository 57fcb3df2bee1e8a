from __future__ import annotations

from typing import NamedTuple

from opentelemetry import trace, metrics
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader

from hostscan.config import OTelConfig
from hostscan.logging_setup import get_logger

log = get_logger(__name__)


class OTelProviders(NamedTuple):
    tracer_provider: TracerProvider
    meter_provider: MeterProvider


def init_otel(cfg: OTelConfig, version: str = "0.1.0") -> OTelProviders:
    """Export the ``scan``/``host`` spans and scanner counters over OTLP gRPC."""
    resource = Resource(attributes={SERVICE_NAME: cfg.service_name, SERVICE_VERSION: version})

    tracer_provider = TracerProvider(resource=resource)
    tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=cfg.endpoint, insecure=True)))
    trace.set_tracer_provider(tracer_provider)

    reader = PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=cfg.endpoint, insecure=True))
    meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(meter_provider)

    log.info("otel_enabled", endpoint=cfg.endpoint, service=cfg.service_name)
    return OTelProviders(tracer_provider, meter_provider)


def shutdown_otel(providers: OTelProviders) -> None:
    # flushes pending spans and the last metric interval
    providers.tracer_provider.shutdown()
    providers.meter_provider.shutdown()
