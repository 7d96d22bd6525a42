"""monovio - Monocular visual-inertial tracking front end in Python."""

__version__ = "0.1.0"

# Re-export main classes for convenient imports
from .errors import FrontendError
from .frontend import (
    SE3,
    FeatureDetector,
    Frame,
    FrontendState,
    MonoCamera,
    MonoFrontendInputPayload,
    MonoFrontendOutput,
    MonoFrontendParams,
    MonoMeasurement,
    MonoVisionFrontend,
    Tracker,
    TrackingStatus,
)
from .imu import ImuBias, ImuFrontend, ImuParams, PreintegratedImuMeasurement
from .io import DatasetReader, EurocPayloadSource, IMUReader
from .logger import FrontendLogger
from .visualization import RerunVisualizer

__all__ = [
    "__version__",
    "FrontendError",
    # Dataset / I/O
    "DatasetReader",
    "IMUReader",
    "EurocPayloadSource",
    # Front end
    "MonoVisionFrontend",
    "FrontendState",
    "MonoFrontendParams",
    "MonoFrontendInputPayload",
    "MonoFrontendOutput",
    "MonoMeasurement",
    "TrackingStatus",
    "FeatureDetector",
    "Tracker",
    "Frame",
    "MonoCamera",
    # Pose
    "SE3",
    # IMU
    "ImuFrontend",
    "ImuParams",
    "ImuBias",
    "PreintegratedImuMeasurement",
    # Output
    "FrontendLogger",
    "RerunVisualizer",
]
