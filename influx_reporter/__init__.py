"""Reporter de métricas em processo para o InfluxDB 2.x.

Uso típico::

    from influx_reporter import Registry, start_background

    registry = Registry()
    registry.counter("requests").inc()
    start_background(registry, 10.0, "http://localhost:8086", "org", "bucket", "app", "token")
"""

from .core.core import Reporter, ReporterConfig, influxdb, influxdb_with_tags, start_background
from .monitoring.registry import Registry

__all__ = ["Registry", "Reporter", "ReporterConfig", "influxdb", "influxdb_with_tags", "start_background"]
