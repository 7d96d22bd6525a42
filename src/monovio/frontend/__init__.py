"""Monocular tracking front end.

Core components:
- MonoVisionFrontend: Per-frame state machine and keyframe policy
- Tracker: KLT tracking and 5-point / 2-point outlier rejection
- FeatureDetector: Corner detection with landmark id bookkeeping
- MonoCamera: Pinhole calibration and body extrinsics
"""

from .camera import CameraIntrinsics, DistortionCoeffs, MonoCamera
from .feature_detector import FeatureDetector
from .frame import INVALID_LANDMARK_ID, Frame
from .messages import (
    DebugTrackerInfo,
    MonoFrontendInputPayload,
    MonoFrontendOutput,
    MonoMeasurement,
    StatusMonoMeasurements,
    StereoPoint2,
    TrackerStatusSummary,
    TrackingStatus,
)
from .mono_frontend import FrontendState, MonoVisionFrontend
from .params import (
    FeatureDetectorParams,
    FeatureDetectorType,
    MonoFrontendParams,
    TrackerParams,
)
from .pose import SE3, is_identity_rotation
from .tracker import Tracker

__all__ = [
    # Pose
    "SE3",
    "is_identity_rotation",
    # Camera
    "MonoCamera",
    "CameraIntrinsics",
    "DistortionCoeffs",
    # Frames and payloads
    "Frame",
    "INVALID_LANDMARK_ID",
    "MonoFrontendInputPayload",
    "MonoFrontendOutput",
    "MonoMeasurement",
    "StereoPoint2",
    "StatusMonoMeasurements",
    "TrackerStatusSummary",
    "TrackingStatus",
    "DebugTrackerInfo",
    # Parameters
    "MonoFrontendParams",
    "TrackerParams",
    "FeatureDetectorParams",
    "FeatureDetectorType",
    # Components
    "FeatureDetector",
    "Tracker",
    "MonoVisionFrontend",
    "FrontendState",
]
