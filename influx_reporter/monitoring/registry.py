"""Registry de métricas em processo.

Mantém um mapeamento nome -> métrica, seguro para uso concorrente pela
aplicação instrumentada. O reporter só lê o registry via ``each``.

Tipos suportados: Counter, Gauge, GaugeFloat64 (e as variantes funcionais),
Histogram, Meter e Timer. Todos expõem ``snapshot()`` devolvendo um dos
tipos de ``influx_reporter.monitoring.snapshots``.
"""

from __future__ import annotations

import math
import random
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from .snapshots import CounterSnapshot, GaugeSnapshot, HistogramSnapshot, MeterSnapshot, TimerSnapshot


DEFAULT_RESERVOIR_SIZE = 1028
# Intervalo de atualização das médias móveis (segundos)
TICK_INTERVAL = 5.0


# ========================
# 1. Contadores e gauges
# ========================


class Counter:
    """Contador inteiro (pode decrementar)."""

    def __init__(self) -> None:
        self._count = 0
        self._lock = threading.Lock()

    def inc(self, n: int = 1) -> None:
        with self._lock:
            self._count += n

    def dec(self, n: int = 1) -> None:
        with self._lock:
            self._count -= n

    def clear(self) -> None:
        with self._lock:
            self._count = 0

    def count(self) -> int:
        return self._count

    def snapshot(self) -> CounterSnapshot:
        return CounterSnapshot(self._count)


class Gauge:
    """Gauge inteiro."""

    def __init__(self, value: int = 0) -> None:
        self._value = int(value)

    def update(self, value: int) -> None:
        self._value = int(value)

    def value(self) -> int:
        return self._value

    def snapshot(self) -> GaugeSnapshot:
        return GaugeSnapshot(self._value)


class GaugeFloat64:
    """Gauge de ponto flutuante."""

    def __init__(self, value: float = 0.0) -> None:
        self._value = float(value)

    def update(self, value: float) -> None:
        self._value = float(value)

    def value(self) -> float:
        return self._value

    def snapshot(self) -> GaugeSnapshot:
        return GaugeSnapshot(self._value)


class FunctionalGauge(Gauge):
    """Gauge inteiro cujo valor é lido de um callable a cada snapshot."""

    def __init__(self, fn: Callable[[], int]) -> None:
        super().__init__()
        self._fn = fn

    def update(self, value: int) -> None:
        raise TypeError("FunctionalGauge não aceita update()")

    def value(self) -> int:
        return int(self._fn())

    def snapshot(self) -> GaugeSnapshot:
        return GaugeSnapshot(self.value())


class FunctionalGaugeFloat64(GaugeFloat64):
    """Gauge float cujo valor é lido de um callable a cada snapshot."""

    def __init__(self, fn: Callable[[], float]) -> None:
        super().__init__()
        self._fn = fn

    def update(self, value: float) -> None:
        raise TypeError("FunctionalGaugeFloat64 não aceita update()")

    def value(self) -> float:
        return float(self._fn())

    def snapshot(self) -> GaugeSnapshot:
        return GaugeSnapshot(self.value())


# ========================
# 2. Histograma (reservatório uniforme)
# ========================


class Histogram:
    """Histograma sobre uma amostra uniforme de tamanho fixo.

    Usa o algoritmo R de Vitter: depois de cheio, cada novo valor substitui
    uma posição aleatória com probabilidade ``size / count``.
    """

    def __init__(self, reservoir_size: int = DEFAULT_RESERVOIR_SIZE, rng: random.Random | None = None) -> None:
        if reservoir_size <= 0:
            raise ValueError("reservoir_size deve ser > 0")
        self._size = reservoir_size
        self._rng = rng or random.Random()
        self._values: list[int] = []
        self._count = 0
        self._lock = threading.Lock()

    def update(self, value: int) -> None:
        with self._lock:
            self._count += 1
            if len(self._values) < self._size:
                self._values.append(int(value))
                return
            idx = self._rng.randrange(self._count)
            if idx < self._size:
                self._values[idx] = int(value)

    def clear(self) -> None:
        with self._lock:
            self._values = []
            self._count = 0

    def count(self) -> int:
        return self._count

    def snapshot(self) -> HistogramSnapshot:
        with self._lock:
            return HistogramSnapshot(self._count, tuple(self._values))


# ========================
# 3. Meter (médias móveis exponenciais)
# ========================


class EWMA:
    """Média móvel exponencial de uma taxa, atualizada a cada TICK_INTERVAL."""

    def __init__(self, minutes: float) -> None:
        self.alpha = 1.0 - math.exp(-TICK_INTERVAL / 60.0 / minutes)
        self._uncounted = 0
        self._rate = 0.0
        self._initialized = False

    def update(self, n: int) -> None:
        self._uncounted += n

    def tick(self) -> None:
        instant = self._uncounted / TICK_INTERVAL
        self._uncounted = 0
        if self._initialized:
            self._rate += self.alpha * (instant - self._rate)
        else:
            self._rate = instant
            self._initialized = True

    def rate(self) -> float:
        return self._rate


class Meter:
    """Conta eventos e mede a taxa (eventos/segundo).

    Os ticks das médias móveis são aplicados de forma preguiçosa em ``mark``
    e ``snapshot``, sem thread própria.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._start = clock()
        self._last_tick = self._start
        self._count = 0
        self._m1 = EWMA(1)
        self._m5 = EWMA(5)
        self._m15 = EWMA(15)
        self._lock = threading.Lock()

    def _tick_if_necessary(self) -> None:
        now = self._clock()
        elapsed = now - self._last_tick
        if elapsed < TICK_INTERVAL:
            return
        ticks = int(elapsed // TICK_INTERVAL)
        self._last_tick += ticks * TICK_INTERVAL
        for _ in range(ticks):
            self._m1.tick()
            self._m5.tick()
            self._m15.tick()

    def mark(self, n: int = 1) -> None:
        with self._lock:
            self._tick_if_necessary()
            self._count += n
            self._m1.update(n)
            self._m5.update(n)
            self._m15.update(n)

    def count(self) -> int:
        return self._count

    def snapshot(self) -> MeterSnapshot:
        with self._lock:
            self._tick_if_necessary()
            elapsed = self._clock() - self._start
            mean = self._count / elapsed if elapsed > 0 else 0.0
            return MeterSnapshot(
                count=self._count,
                rate1=self._m1.rate(),
                rate5=self._m5.rate(),
                rate15=self._m15.rate(),
                rate_mean=mean,
            )


# ========================
# 4. Timer
# ========================


class Timer:
    """Histograma de durações (ns) combinado com um Meter de eventos."""

    def __init__(
        self,
        reservoir_size: int = DEFAULT_RESERVOIR_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._histogram = Histogram(reservoir_size)
        self._meter = Meter(clock)
        self._clock = clock

    def update(self, seconds: float) -> None:
        """Registra uma duração em segundos (armazenada em nanossegundos)."""
        self._histogram.update(int(seconds * 1e9))
        self._meter.mark(1)

    def update_since(self, start: float) -> None:
        self.update(self._clock() - start)

    @contextmanager
    def time(self) -> Iterator[None]:
        start = self._clock()
        try:
            yield
        finally:
            self.update_since(start)

    def count(self) -> int:
        return self._histogram.count()

    def snapshot(self) -> TimerSnapshot:
        return TimerSnapshot(self._histogram.snapshot(), self._meter.snapshot())


# ========================
# 5. Registry
# ========================


class Registry:
    """Mapeamento thread-safe nome -> métrica.

    ``each`` copia a tabela sob lock e chama o callback fora dele, de modo
    que registros concorrentes nunca ficam bloqueados pelo reporter.
    """

    def __init__(self) -> None:
        self._metrics: dict[str, Any] = {}
        self._lock = threading.Lock()

    def register(self, name: str, metric: Any) -> None:
        """Registra ``metric`` sob ``name``; levanta ValueError se o nome já existir."""
        with self._lock:
            if name in self._metrics:
                raise ValueError(f"métrica já registrada: {name}")
            self._metrics[name] = metric

    def get(self, name: str) -> Any:
        with self._lock:
            return self._metrics.get(name)

    def get_or_register(self, name: str, factory: Callable[[], Any]) -> Any:
        """Devolve a métrica existente ou registra a criada por ``factory``."""
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = factory()
                self._metrics[name] = metric
            return metric

    def unregister(self, name: str) -> None:
        with self._lock:
            self._metrics.pop(name, None)

    def each(self, fn: Callable[[str, Any], None]) -> None:
        with self._lock:
            items = list(self._metrics.items())
        for name, metric in items:
            fn(name, metric)

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)

    # Atalhos no estilo get-or-register
    def counter(self, name: str) -> Counter:
        return self.get_or_register(name, Counter)

    def gauge(self, name: str) -> Gauge:
        return self.get_or_register(name, Gauge)

    def gauge_float64(self, name: str) -> GaugeFloat64:
        return self.get_or_register(name, GaugeFloat64)

    def histogram(self, name: str, reservoir_size: int = DEFAULT_RESERVOIR_SIZE) -> Histogram:
        return self.get_or_register(name, lambda: Histogram(reservoir_size))

    def meter(self, name: str) -> Meter:
        return self.get_or_register(name, Meter)

    def timer(self, name: str) -> Timer:
        return self.get_or_register(name, Timer)
