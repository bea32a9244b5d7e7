"""Métricas do host expostas como gauges funcionais.

Registra no registry gauges lidos via ``psutil`` a cada snapshot: CPU, RAM,
disco e bytes de rede. Falhas de leitura são registradas em debug e o gauge
devolve 0 para não interromper o ciclo de exportação.
"""

import logging
from pathlib import Path

import psutil

from .registry import FunctionalGauge, FunctionalGaugeFloat64, Registry

logger = logging.getLogger(__name__)


def _safe(fn, default=0):
    """Envolve ``fn`` para devolver ``default`` quando a leitura falhar."""

    def _wrapped():
        try:
            return fn()
        except (OSError, RuntimeError, AttributeError, psutil.Error) as exc:
            logger.debug("Falha ao ler métrica do host: %s", exc, exc_info=True)
            return default

    return _wrapped


def _cpu_percent() -> float:
    # interval=None: percentual desde a última chamada, sem bloquear
    return float(psutil.cpu_percent(interval=None))


def _memory_percent() -> float:
    return float(psutil.virtual_memory().percent)


def _disk_percent() -> float:
    anchor = Path().anchor or "/"
    return float(psutil.disk_usage(anchor).percent)


def _bytes_sent() -> int:
    return int(psutil.net_io_counters().bytes_sent)


def _bytes_recv() -> int:
    return int(psutil.net_io_counters().bytes_recv)


def register_host_metrics(registry: Registry, prefix: str = "host") -> list[str]:
    """Registra os gauges do host em ``registry`` e devolve os nomes usados."""
    gauges = {
        "cpu_percent": FunctionalGaugeFloat64(_safe(_cpu_percent, 0.0)),
        "memory_percent": FunctionalGaugeFloat64(_safe(_memory_percent, 0.0)),
        "disk_percent": FunctionalGaugeFloat64(_safe(_disk_percent, 0.0)),
        "bytes_sent": FunctionalGauge(_safe(_bytes_sent)),
        "bytes_recv": FunctionalGauge(_safe(_bytes_recv)),
    }
    names = []
    for key, gauge in gauges.items():
        name = f"{prefix}.{key}" if prefix else key
        registry.get_or_register(name, lambda g=gauge: g)
        names.append(name)
    logger.debug("Métricas do host registradas: %s", names)
    return names
