"""Snapshots imutáveis das métricas do registry.

Cada métrica do registry devolve, em ``snapshot()``, um dos tipos abaixo.
O conjunto é fechado (``MetricSnapshot``): o conversor para pontos do
InfluxDB trata exatamente estes cinco formatos.

Os cálculos de percentil seguem a interpolação usada pelas bibliotecas de
métricas estilo Dropwizard: posição ``p * (n + 1)`` sobre a amostra ordenada.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence, Union

BASIC_PERCENTILES: tuple[float, ...] = (0.5, 0.75, 0.95, 0.99)
EXTENDED_PERCENTILES: tuple[float, ...] = BASIC_PERCENTILES + (0.999, 0.9999)


def sample_percentiles(values: Sequence[float], ps: Sequence[float]) -> list[float]:
    """Calcula percentis de uma amostra.

    Amostra vazia devolve zeros. Para ``pos = p * (n + 1)``: abaixo de 1 usa o
    menor valor, a partir de ``n`` usa o maior, senão interpola linearmente
    entre os vizinhos.
    """
    if not values:
        return [0.0 for _ in ps]
    ordered = sorted(values)
    size = len(ordered)
    scores: list[float] = []
    for p in ps:
        pos = p * (size + 1)
        if pos < 1.0:
            scores.append(float(ordered[0]))
        elif pos >= size:
            scores.append(float(ordered[-1]))
        else:
            lower = float(ordered[int(pos) - 1])
            upper = float(ordered[int(pos)])
            scores.append(lower + (pos - math.floor(pos)) * (upper - lower))
    return scores


@dataclass(frozen=True)
class CounterSnapshot:
    count: int


@dataclass(frozen=True)
class GaugeSnapshot:
    """Valor de um gauge; int para Gauge, float para GaugeFloat64."""

    value: Union[int, float]


@dataclass(frozen=True)
class HistogramSnapshot:
    """Cópia da amostra de um histograma.

    ``count`` é o total de atualizações recebidas; as demais estatísticas são
    calculadas sobre ``values`` (a amostra retida pelo reservatório).
    """

    count: int
    values: tuple[int, ...] = field(default_factory=tuple)

    def min(self) -> int:
        return min(self.values) if self.values else 0

    def max(self) -> int:
        return max(self.values) if self.values else 0

    def sum(self) -> int:
        return sum(self.values)

    def mean(self) -> float:
        if not self.values:
            return 0.0
        return float(self.sum()) / len(self.values)

    def variance(self) -> float:
        if not self.values:
            return 0.0
        m = self.mean()
        return sum((v - m) ** 2 for v in self.values) / len(self.values)

    def stddev(self) -> float:
        return math.sqrt(self.variance())

    def percentile(self, p: float) -> float:
        return sample_percentiles(self.values, [p])[0]

    def percentiles(self, ps: Sequence[float]) -> list[float]:
        return sample_percentiles(self.values, ps)


@dataclass(frozen=True)
class MeterSnapshot:
    """Taxas por segundo: médias móveis exponenciais de 1/5/15 minutos e média geral."""

    count: int
    rate1: float
    rate5: float
    rate15: float
    rate_mean: float


@dataclass(frozen=True)
class TimerSnapshot:
    """Histograma de durações (em nanossegundos) mais as taxas de eventos."""

    histogram: HistogramSnapshot
    meter: MeterSnapshot

    @property
    def count(self) -> int:
        return self.histogram.count


MetricSnapshot = Union[CounterSnapshot, GaugeSnapshot, HistogramSnapshot, MeterSnapshot, TimerSnapshot]
