"""Pacote monitoring: registry de métricas, snapshots e métricas do host.

Re-exports para uso direto pela aplicação instrumentada.
"""

from .registry import (
    Counter,
    FunctionalGauge,
    FunctionalGaugeFloat64,
    Gauge,
    GaugeFloat64,
    Histogram,
    Meter,
    Registry,
    Timer,
)
from .snapshots import BASIC_PERCENTILES, EXTENDED_PERCENTILES

__all__ = [
    "Counter",
    "FunctionalGauge",
    "FunctionalGaugeFloat64",
    "Gauge",
    "GaugeFloat64",
    "Histogram",
    "Meter",
    "Registry",
    "Timer",
    "BASIC_PERCENTILES",
    "EXTENDED_PERCENTILES",
]
