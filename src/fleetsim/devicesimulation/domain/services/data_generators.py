import math
import random
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, Optional

from fleetsim.devicesimulation.domain.model.aggregates import Reading

# Length of one simulated "day" in seconds
CYCLE_SECONDS = 360


def truncate_one_decimal(value: float) -> float:
    """
    Truncate to one decimal with floor semantics

    truncate_one_decimal(23.459) == 23.4
    truncate_one_decimal(-1.23) == -1.3
    """
    return math.floor(value * 10) / 10


class DataGenerator(ABC):
    """
    Produces one Reading for a point in time
    """

    def __init__(self, schema: Optional[str] = None):
        self.schema = schema

    @abstractmethod
    def generate(self, now: Optional[datetime] = None) -> Reading:
        """Generate a reading for now (defaults to the local wall clock)"""


class WaveformGenerator(DataGenerator):
    """
    Sinusoidal readings following the wall clock

    seconds = (h*3600 + m*60 + s + phase_offset) mod 360
    value   = midpoint + sin(seconds * pi / 180) * peak

    The peak is drawn again from [0, value_range) every time the sine term
    crosses zero (seconds == 0 or 180), so each half cycle has its own
    amplitude. Values stay within [midpoint - value_range, midpoint + value_range].
    """

    def __init__(
            self,
            midpoint: float,
            value_range: float,
            phase_offset: int = 0,
            rng: Optional[random.Random] = None,
            schema: Optional[str] = None
    ):
        super().__init__(schema=schema)
        self.midpoint = midpoint
        self.value_range = value_range
        self.phase_offset = phase_offset
        self.rng = rng or random.Random()
        self.peak = self._draw_peak()

    def seconds_into_cycle(self, now: datetime) -> int:
        total = now.hour * 3600 + now.minute * 60 + now.second + self.phase_offset
        return total % CYCLE_SECONDS

    def generate(self, now: Optional[datetime] = None) -> Reading:
        now = now or datetime.now()
        seconds = self.seconds_into_cycle(now)

        # Trend changes when sin() = 0
        if seconds in (0, CYCLE_SECONDS // 2):
            self.peak = self._draw_peak()

        radians = seconds * math.pi / 180
        measure = self.midpoint + math.sin(radians) * self.peak

        return Reading(
            value=truncate_one_decimal(measure),
            time=now,
            schema=self.schema
        )

    def _draw_peak(self) -> float:
        return self.value_range * self.rng.random()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(midpoint={self.midpoint}, "
            f"range={self.value_range}, peak={self.peak:.2f})"
        )


class TemperatureGenerator(WaveformGenerator):
    """(15-25) .. (15+25) => -10 .. 40"""

    def __init__(self, rng: Optional[random.Random] = None, schema: Optional[str] = None):
        super().__init__(midpoint=15, value_range=25, phase_offset=0, rng=rng, schema=schema)


class HumidityGenerator(WaveformGenerator):
    """(70-30) .. (70+30) => 40 .. 100"""

    def __init__(self, rng: Optional[random.Random] = None, schema: Optional[str] = None):
        super().__init__(midpoint=70, value_range=30, phase_offset=180, rng=rng, schema=schema)


class RandomTemperatureGenerator(DataGenerator):
    """Uniform temperature in [32, 212] with no trend"""

    LOW = 32.0
    HIGH = 212.0

    def __init__(self, rng: Optional[random.Random] = None, schema: Optional[str] = None):
        super().__init__(schema=schema)
        self.rng = rng or random.Random()

    def generate(self, now: Optional[datetime] = None) -> Reading:
        return Reading(
            value=self.LOW + self.rng.random() * (self.HIGH - self.LOW),
            time=now or datetime.now(),
            schema=self.schema
        )


GENERATORS: Dict[str, Callable[..., DataGenerator]] = {
    'temperature': TemperatureGenerator,
    'humidity': HumidityGenerator,
    'random': RandomTemperatureGenerator
}


def create_generator(
        kind: str,
        rng: Optional[random.Random] = None,
        schema: Optional[str] = None
) -> DataGenerator:
    """
    Create a generator by model name

    Args:
        kind: 'temperature', 'humidity' or 'random'
        rng: Random source (a new one per generator by default)
        schema: Message schema tag carried by the readings

    Raises:
        ValueError: If the kind is unknown
    """
    try:
        generator_class = GENERATORS[kind.strip().lower()]
    except KeyError:
        raise ValueError(
            f"Unknown generator {kind!r}, expected one of: {', '.join(GENERATORS)}"
        ) from None

    return generator_class(rng=rng, schema=schema)
