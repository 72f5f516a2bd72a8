# varsim/waveforms.py
"""Signal generators for simulated variables.

Every shape is a pure function of ``(minimum, maximum, now)``, where ``now``
is wall-clock seconds and doubles as the phase, so all periodic shapes repeat
every 2*pi seconds. Nothing here keeps state; readers may call concurrently.
"""
import math
import random
import time
from enum import Enum
from typing import Callable, Dict, Optional


class ValueType(str, Enum):
    RANDOM = "Random"
    SAWTOOTH = "Sawtooth"
    SINUSOID = "Sinusoid"
    SQUARE = "Square"
    TRIANGLE = "Triangle"


def _random(minimum: float, maximum: float, now: float, rng: random.Random) -> float:
    value = minimum + rng.random() * (maximum - minimum)
    # rounding can land on maximum, which the half-open range excludes
    return value if value < maximum else math.nextafter(maximum, minimum)


def _sawtooth(minimum: float, maximum: float, now: float, rng: random.Random) -> float:
    amplitude = (maximum - minimum) / 2
    return (2 * amplitude / math.pi) * math.atan(math.tan(now)) + minimum + amplitude


def _sinusoid(minimum: float, maximum: float, now: float, rng: random.Random) -> float:
    amplitude = (maximum - minimum) / 2
    return amplitude * math.sin(now) + minimum + amplitude


def _square(minimum: float, maximum: float, now: float, rng: random.Random) -> float:
    return maximum if math.sin(now) >= 0 else minimum


def _triangle(minimum: float, maximum: float, now: float, rng: random.Random) -> float:
    amplitude = (maximum - minimum) / 2
    return (2 * amplitude / math.pi) * math.asin(math.sin(now)) + minimum + amplitude


_SHAPES: Dict[ValueType, Callable[[float, float, float, random.Random], float]] = {
    ValueType.RANDOM: _random,
    ValueType.SAWTOOTH: _sawtooth,
    ValueType.SINUSOID: _sinusoid,
    ValueType.SQUARE: _square,
    ValueType.TRIANGLE: _triangle,
}

_rng = random.Random()


def sample(shape, minimum: float, maximum: float, now: Optional[float] = None,
           rng: Optional[random.Random] = None) -> float:
    """Compute one value of ``shape`` in ``[minimum, maximum]`` at instant ``now``.

    ``shape`` may be a ValueType or its string value. ``now`` defaults to
    ``time.time()``. A zero-width range returns ``minimum`` for every shape.
    """
    if minimum > maximum:
        raise ValueError(f"minimum {minimum} exceeds maximum {maximum}")
    fn = _SHAPES[ValueType(shape)]
    if minimum == maximum:
        return float(minimum)
    if now is None:
        now = time.time()
    value = fn(minimum, maximum, now, rng or _rng)
    # atan/asin can overshoot the range by an ulp
    return min(max(value, minimum), maximum)


def sample_boolean(rng: Optional[random.Random] = None) -> bool:
    return (rng or _rng).random() < 0.5
