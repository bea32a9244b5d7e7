"""Pontos do InfluxDB e conversão de snapshots de métricas.

- ``Point``: registro (measurement, tags, fields, time) com renderização em
  line protocol (precisão de nanossegundos).
- ``points_for_metric``: converte um snapshot de métrica em um ou mais
  pontos. Counter e gauge geram um ponto; histogram, meter e timer geram um
  ponto por estatística, discriminado por uma tag extra.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Sequence, Union

from ..monitoring.snapshots import (
    EXTENDED_PERCENTILES,
    CounterSnapshot,
    GaugeSnapshot,
    HistogramSnapshot,
    MeterSnapshot,
    TimerSnapshot,
)

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
# origem do alinhamento: 0001-01-01 UTC
ZERO_TIME = datetime.min.replace(tzinfo=timezone.utc)
DEFAULT_STAT_TAG_KEY = "bucket"

FieldValue = Union[int, float, bool, str]


# ========================
# 1. Ponto e line protocol
# ========================


# caracteres de controle viram sequências literais; um '\n' cru quebraria o lote
_CONTROL_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}


def _escape(s: str, chars: str) -> str:
    out = s.replace("\\", "\\\\")
    for ch in chars:
        out = out.replace(ch, "\\" + ch)
    for ch, rep in _CONTROL_ESCAPES.items():
        out = out.replace(ch, rep)
    return out


def _format_field_value(v: FieldValue) -> str | None:
    """Formata um valor de field; devolve None para valores não representáveis."""
    # bool antes de int: bool é subclasse de int
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, int):
        return f"{v}i"
    if isinstance(v, float):
        if not math.isfinite(v):
            return None
        return repr(v)
    if isinstance(v, str):
        return '"' + v.replace("\\", "\\\\").replace('"', '\\"') + '"'
    return None


def to_unix_nanos(t: datetime) -> int:
    """Converte um datetime (naive = UTC) para epoch em nanossegundos, sem perda."""
    if t.tzinfo is None:
        t = t.replace(tzinfo=timezone.utc)
    return ((t - EPOCH) // timedelta(microseconds=1)) * 1000


def align_time(now: datetime, interval: float) -> datetime:
    """Trunca ``now`` para o múltiplo de ``interval`` (segundos) anterior.

    Os múltiplos são contados a partir de 0001-01-01 UTC, não do epoch Unix.
    As duas origens coincidem para intervalos que dividem um dia (1s, 10s,
    30s, 1min, ...), mas não para intervalos como 7s.
    """
    step = timedelta(seconds=interval)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return ZERO_TIME + ((now - ZERO_TIME) // step) * step


@dataclass(frozen=True)
class Point:
    measurement: str
    tags: Mapping[str, str]
    fields: Mapping[str, FieldValue]
    time: datetime

    def to_line(self) -> str | None:
        """Renderiza o ponto em line protocol.

        Tags e fields são ordenados por chave; tags com chave ou valor vazio e
        fields não finitos são omitidos. Devolve None quando nenhum field
        sobra, pois o InfluxDB rejeita linhas sem fields.
        """
        parts = [_escape(self.measurement, ", ")]
        for k in sorted(self.tags):
            v = self.tags[k]
            if not k or v is None or v == "":
                continue
            parts.append(f"{_escape(str(k), ',= ')}={_escape(str(v), ',= ')}")
        key = ",".join(parts)

        fields = []
        for k in sorted(self.fields):
            fv = _format_field_value(self.fields[k])
            if fv is None:
                logger.debug("Field %s ignorado em %s: valor %r", k, self.measurement, self.fields[k])
                continue
            fields.append(f"{_escape(k, ',= ')}={fv}")
        if not fields:
            return None
        return f"{key} {','.join(fields)} {to_unix_nanos(self.time)}"


# ========================
# 2. Conversão de snapshots
# ========================


def stat_tags(stat: str, tags: Mapping[str, str], key: str = DEFAULT_STAT_TAG_KEY) -> dict[str, str]:
    """Copia ``tags`` e acrescenta a tag que identifica a estatística."""
    out = dict(tags)
    out[key] = stat
    return out


def percentile_label(p: float) -> str:
    """0.5 -> 'p50', 0.999 -> 'p999', 0.9999 -> 'p9999'."""
    return "p" + f"{p * 100:g}".replace(".", "")


def histogram_stats(snap: HistogramSnapshot, percentiles: Sequence[float]) -> dict[str, float]:
    stats = {
        "count": float(snap.count),
        "max": float(snap.max()),
        "mean": snap.mean(),
        "min": float(snap.min()),
        "stddev": snap.stddev(),
        "variance": snap.variance(),
    }
    for p, v in zip(percentiles, snap.percentiles(percentiles)):
        stats[percentile_label(p)] = v
    return stats


def meter_stats(snap: MeterSnapshot) -> dict[str, float]:
    return {
        "count": float(snap.count),
        "m1": snap.rate1,
        "m5": snap.rate5,
        "m15": snap.rate15,
        "mean": snap.rate_mean,
    }


def timer_stats(snap: TimerSnapshot, percentiles: Sequence[float]) -> dict[str, float]:
    stats = histogram_stats(snap.histogram, percentiles)
    stats.update(
        {
            "m1": snap.meter.rate1,
            "m5": snap.meter.rate5,
            "m15": snap.meter.rate15,
            "meanrate": snap.meter.rate_mean,
        }
    )
    return stats


def _per_stat_points(
    measurement: str,
    tags: Mapping[str, str],
    field_key: str,
    stats: Mapping[str, float],
    now: datetime,
    stat_tag_key: str,
) -> list[Point]:
    return [Point(measurement, stat_tags(stat, tags, stat_tag_key), {field_key: v}, now) for stat, v in stats.items()]


def points_for_metric(
    name: str,
    snapshot: Any,
    measurement: str,
    tags: Mapping[str, str],
    now: datetime,
    stat_tag_key: str = DEFAULT_STAT_TAG_KEY,
    percentiles: Sequence[float] = EXTENDED_PERCENTILES,
) -> list[Point]:
    """Converte o snapshot de uma métrica nomeada em pontos.

    Snapshots fora do conjunto conhecido são ignorados (lista vazia).
    """
    if isinstance(snapshot, CounterSnapshot):
        return [Point(measurement, dict(tags), {f"{name}.count": snapshot.count}, now)]
    if isinstance(snapshot, GaugeSnapshot):
        return [Point(measurement, dict(tags), {f"{name}.gauge": snapshot.value}, now)]
    if isinstance(snapshot, HistogramSnapshot):
        stats = histogram_stats(snapshot, percentiles)
        return _per_stat_points(measurement, tags, f"{name}.histogram", stats, now, stat_tag_key)
    if isinstance(snapshot, MeterSnapshot):
        return _per_stat_points(measurement, tags, f"{name}.meter", meter_stats(snapshot), now, stat_tag_key)
    if isinstance(snapshot, TimerSnapshot):
        stats = timer_stats(snapshot, percentiles)
        return _per_stat_points(measurement, tags, f"{name}.timer", stats, now, stat_tag_key)
    logger.debug("Tipo de snapshot não suportado para %s: %s", name, type(snapshot).__name__)
    return []
