"""Pacote core: loop do reporter e parsing de argumentos.

Re-exports dos pontos de entrada públicos.
"""

from .core import Reporter, ReporterConfig, build_reporter, influxdb, influxdb_with_tags, start_background

__all__ = ["Reporter", "ReporterConfig", "build_reporter", "influxdb", "influxdb_with_tags", "start_background"]
