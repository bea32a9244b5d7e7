import math

import pytest

from influx_reporter.monitoring.snapshots import (
    BASIC_PERCENTILES,
    EXTENDED_PERCENTILES,
    HistogramSnapshot,
    TimerSnapshot,
    MeterSnapshot,
    sample_percentiles,
)


def _reference_percentile(values, p):
    """Cálculo independente: posição p*(n+1), interpolação linear, limitado aos extremos."""
    xs = sorted(values)
    n = len(xs)
    pos = p * (n + 1)
    if pos < 1:
        return xs[0]
    if pos >= n:
        return xs[-1]
    i = math.floor(pos)
    return xs[i - 1] + (pos - i) * (xs[i] - xs[i - 1])


def test_percentile_sets():
    assert BASIC_PERCENTILES == (0.5, 0.75, 0.95, 0.99)
    assert EXTENDED_PERCENTILES[:4] == BASIC_PERCENTILES
    assert EXTENDED_PERCENTILES[4:] == (0.999, 0.9999)


def test_empty_sample_is_zero():
    snap = HistogramSnapshot(0)
    assert snap.percentiles(EXTENDED_PERCENTILES) == [0.0] * 6
    assert (snap.min(), snap.max(), snap.mean(), snap.stddev(), snap.variance()) == (0, 0, 0.0, 0.0, 0.0)


@pytest.mark.parametrize("values", [[5], [3, 1, 2], list(range(1, 11)), [7, 7, 7, 100, -4, 12, 9]])
def test_percentiles_match_reference(values):
    expected = [_reference_percentile(values, p) for p in EXTENDED_PERCENTILES]
    assert sample_percentiles(values, EXTENDED_PERCENTILES) == pytest.approx(expected)


def test_histogram_statistics():
    snap = HistogramSnapshot(5, (2, 4, 4, 4, 5, 5, 7, 9))
    assert snap.mean() == pytest.approx(5.0)
    assert snap.variance() == pytest.approx(4.0)
    assert snap.stddev() == pytest.approx(2.0)
    assert snap.sum() == 40
    assert snap.percentile(0.5) == pytest.approx(4.5)


def test_timer_snapshot_count_comes_from_histogram():
    snap = TimerSnapshot(HistogramSnapshot(3, (1, 2, 3)), MeterSnapshot(3, 0.0, 0.0, 0.0, 0.0))
    assert snap.count == 3
