from .data_generators import (
    DataGenerator,
    HumidityGenerator,
    RandomTemperatureGenerator,
    TemperatureGenerator,
    WaveformGenerator,
    create_generator,
    truncate_one_decimal
)

__all__ = [
    'DataGenerator',
    'HumidityGenerator',
    'RandomTemperatureGenerator',
    'TemperatureGenerator',
    'WaveformGenerator',
    'create_generator',
    'truncate_one_decimal'
]
