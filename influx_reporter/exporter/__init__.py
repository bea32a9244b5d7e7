"""Pacote exporter: integração com o InfluxDB.

Fornece o cliente HTTP (``InfluxClient``) e a conversão de snapshots de
métricas em pontos de line protocol.
"""

from .influx import InfluxClient, InfluxError
from .points import Point, points_for_metric

__all__ = ["InfluxClient", "InfluxError", "Point", "points_for_metric"]
