import random
import threading

import pytest

from influx_reporter.monitoring import registry as reg_mod
from influx_reporter.monitoring.registry import (
    Counter,
    FunctionalGauge,
    FunctionalGaugeFloat64,
    Histogram,
    Meter,
    Registry,
    Timer,
)
from influx_reporter.monitoring.snapshots import (
    CounterSnapshot,
    GaugeSnapshot,
    HistogramSnapshot,
    MeterSnapshot,
    TimerSnapshot,
)


class FakeClock:
    def __init__(self):
        self.t = 0.0

    def __call__(self):
        return self.t


def test_counter_inc_dec_clear():
    c = Counter()
    c.inc(5)
    c.dec(2)
    assert c.snapshot() == CounterSnapshot(3)
    c.clear()
    assert c.count() == 0


def test_snapshot_is_immutable_copy():
    """O snapshot não muda quando a métrica é atualizada depois."""
    reg = Registry()
    h = reg.histogram("h")
    h.update(1)
    snap = h.snapshot()
    h.update(2)
    assert snap.values == (1,)
    assert snap.count == 1
    with pytest.raises(AttributeError):
        snap.count = 5


def test_gauges_and_functional_gauges():
    reg = Registry()
    reg.gauge("g").update(3)
    reg.gauge_float64("f").update(2)
    assert reg.get("g").snapshot() == GaugeSnapshot(3)
    assert isinstance(reg.get("f").snapshot().value, float)

    values = iter([10, 20])
    fg = FunctionalGauge(lambda: next(values))
    assert fg.snapshot().value == 10
    assert fg.snapshot().value == 20
    with pytest.raises(TypeError):
        fg.update(1)
    assert FunctionalGaugeFloat64(lambda: 1).snapshot().value == 1.0


def test_histogram_reservoir_is_bounded():
    h = Histogram(reservoir_size=10, rng=random.Random(42))
    for v in range(1000):
        h.update(v)
    snap = h.snapshot()
    assert snap.count == 1000
    assert len(snap.values) == 10
    assert all(0 <= v < 1000 for v in snap.values)


def test_histogram_invalid_size():
    with pytest.raises(ValueError):
        Histogram(reservoir_size=0)


def test_meter_rates_with_fake_clock():
    """Taxas EWMA são atualizadas a cada 5s; a taxa média usa o tempo decorrido."""
    clock = FakeClock()
    m = Meter(clock=clock)
    m.mark(10)
    clock.t = 5.0
    snap = m.snapshot()
    assert isinstance(snap, MeterSnapshot)
    assert snap.count == 10
    # primeiro tick: taxa instantânea 10 eventos / 5s
    assert snap.rate1 == pytest.approx(2.0)
    assert snap.rate5 == pytest.approx(2.0)
    assert snap.rate15 == pytest.approx(2.0)
    assert snap.rate_mean == pytest.approx(2.0)

    clock.t = 10.0
    snap2 = m.snapshot()
    # sem novos eventos a taxa decai
    assert snap2.rate1 < snap.rate1
    assert snap2.rate15 > snap2.rate1


def test_meter_without_elapsed_time():
    m = Meter(clock=FakeClock())
    m.mark()
    assert m.snapshot().rate_mean == 0.0


def test_timer_records_nanoseconds():
    clock = FakeClock()
    t = Timer(clock=clock)
    t.update(0.5)
    with t.time():
        clock.t += 0.25
    snap = t.snapshot()
    assert isinstance(snap, TimerSnapshot)
    assert snap.count == 2
    assert sorted(snap.histogram.values) == [250_000_000, 500_000_000]
    assert snap.meter.count == 2


def test_registry_register_duplicate_and_unregister():
    reg = Registry()
    reg.register("a", Counter())
    with pytest.raises(ValueError):
        reg.register("a", Counter())
    reg.unregister("a")
    assert reg.get("a") is None
    assert len(reg) == 0


def test_get_or_register_returns_same_instance():
    reg = Registry()
    assert reg.counter("c") is reg.counter("c")
    assert reg.timer("t") is reg.timer("t")
    assert isinstance(reg.meter("m"), Meter)


def test_each_allows_registration_during_iteration():
    """Callback pode registrar métricas sem deadlock; a iteração usa uma cópia."""
    reg = Registry()
    reg.counter("a")
    seen = []

    def _cb(name, metric):
        seen.append(name)
        reg.counter(name + "_new")

    reg.each(_cb)
    assert seen == ["a"]
    assert reg.get("a_new") is not None


def test_concurrent_updates_and_each():
    reg = Registry()
    c = reg.counter("hits")
    stop = threading.Event()

    def _producer():
        while True:
            c.inc()
            reg.histogram("h").update(1)
            if stop.is_set():
                break

    threads = [threading.Thread(target=_producer) for _ in range(4)]
    for t in threads:
        t.start()
    try:
        for _ in range(50):
            snaps = []
            reg.each(lambda n, m: snaps.append(m.snapshot()))
            assert all(isinstance(s, (CounterSnapshot, HistogramSnapshot)) for s in snaps)
    finally:
        stop.set()
        for t in threads:
            t.join()
    assert c.count() > 0


def test_default_reservoir_size():
    assert reg_mod.DEFAULT_RESERVOIR_SIZE == 1028
