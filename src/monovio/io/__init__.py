"""I/O utilities for EuRoC datasets."""

from .dataset_reader import DatasetReader
from .imu_reader import IMUReader
from .payload_source import EurocPayloadSource

__all__ = [
    "DatasetReader",
    "IMUReader",
    "EurocPayloadSource",
]
