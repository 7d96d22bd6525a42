"""IMU preintegration for the tracking front end."""

from .preintegration import (
    ImuBias,
    ImuFrontend,
    ImuParams,
    PreintegratedImuMeasurement,
    exp_so3,
    skew,
)

__all__ = [
    "ImuBias",
    "ImuFrontend",
    "ImuParams",
    "PreintegratedImuMeasurement",
    "exp_so3",
    "skew",
]
