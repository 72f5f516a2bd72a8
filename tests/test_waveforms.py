"""Tests for the signal generators."""
import math
import random

import pytest

from varsim.waveforms import ValueType, sample, sample_boolean

PERIODIC = [ValueType.SINUSOID, ValueType.SAWTOOTH, ValueType.TRIANGLE]
INSTANTS = [i * 0.137 for i in range(200)] + [1.7e9 + i * 0.25 for i in range(200)]


@pytest.mark.parametrize("shape", PERIODIC)
@pytest.mark.parametrize("lo,hi", [(0, 100), (-50, 100), (0.8, 1.0), (-10, -2)])
def test_periodic_shapes_stay_in_range(shape, lo, hi):
    for t in INSTANTS:
        v = sample(shape, lo, hi, t)
        assert lo <= v <= hi


@pytest.mark.parametrize("lo,hi", [(0, 100), (-50, 150)])
def test_square_is_exactly_min_or_max(lo, hi):
    values = {sample(ValueType.SQUARE, lo, hi, t) for t in INSTANTS}
    assert values == {lo, hi}


def test_random_in_half_open_range_and_roughly_uniform():
    rng = random.Random(1234)
    draws = [sample(ValueType.RANDOM, 10, 20, rng=rng) for _ in range(20000)]
    assert all(10 <= v < 20 for v in draws)
    buckets = [0] * 10
    for v in draws:
        buckets[int(v - 10)] += 1
    for count in buckets:
        assert 1700 < count < 2300


class _TopOfRange:
    def random(self):
        return 1 - 2**-53


def test_random_never_rounds_up_to_maximum():
    # 1 + (1 - 2**-53) rounds to 2.0 in binary64
    v = sample(ValueType.RANDOM, 1, 2, rng=_TopOfRange())
    assert 1 <= v < 2
    assert v == math.nextafter(2, 1)
    assert sample(ValueType.RANDOM, -5, 0, rng=_TopOfRange()) < 0


@pytest.mark.parametrize("shape", list(ValueType))
@pytest.mark.parametrize("t", [0.0, 1.0, math.pi / 2, 12345.678])
def test_zero_width_range_is_constant(shape, t):
    assert sample(shape, 42.5, 42.5, t) == 42.5


def test_worked_examples():
    assert sample(ValueType.SINUSOID, 0, 100, math.pi / 2) == pytest.approx(100)
    assert sample(ValueType.SQUARE, 0, 100, math.pi / 2) == 100
    assert sample(ValueType.TRIANGLE, 0, 100, 0) == pytest.approx(50)
    assert sample(ValueType.SAWTOOTH, 0, 100, 0) == pytest.approx(50)


def test_square_below_zero_phase_gives_min():
    assert sample(ValueType.SQUARE, 0, 100, 3 * math.pi / 2) == 0


def test_same_instant_same_value():
    for shape in PERIODIC + [ValueType.SQUARE]:
        assert sample(shape, -5, 5, 1000.25) == sample(shape, -5, 5, 1000.25)


def test_periodic_in_two_pi():
    for shape in PERIODIC:
        assert sample(shape, 0, 10, 0.4) == pytest.approx(sample(shape, 0, 10, 0.4 + 2 * math.pi))


def test_shape_accepts_string_names():
    assert sample("Sinusoid", 0, 100, math.pi / 2) == pytest.approx(100)


def test_unknown_shape_rejected():
    with pytest.raises(ValueError):
        sample("Pulse", 0, 1, 0)


def test_inverted_range_rejected():
    with pytest.raises(ValueError):
        sample(ValueType.SINUSOID, 10, 0, 0)


def test_sample_boolean_is_fair():
    rng = random.Random(99)
    n = 20000
    trues = sum(sample_boolean(rng) for _ in range(n))
    assert abs(trues / n - 0.5) < 0.02
    assert isinstance(sample_boolean(), bool)


def test_default_now_uses_wall_clock(monkeypatch):
    monkeypatch.setattr("varsim.waveforms.time.time", lambda: math.pi / 2)
    assert sample(ValueType.SINUSOID, 0, 100) == pytest.approx(100)
