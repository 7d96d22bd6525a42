"""Payloads exchanged between the front end and its neighbours.

The front end consumes one ``MonoFrontendInputPayload`` per camera frame and
produces one ``MonoFrontendOutput``. Smart measurements share the layout of
a stereo observation so the backend reads a single wire format.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np

from .frame import Frame
from .pose import SE3

if TYPE_CHECKING:
    from ..imu.preintegration import PreintegratedImuMeasurement


class TrackingStatus(Enum):
    """Outcome of geometric outlier rejection for a keyframe."""

    VALID = "VALID"
    LOW_DISPARITY = "LOW_DISPARITY"
    FEW_MATCHES = "FEW_MATCHES"
    INVALID = "INVALID"
    DISABLED = "DISABLED"


@dataclass
class TrackerStatusSummary:
    """Last outlier-rejection result of the front end.

    The stereo slots are kept so the summary has the same shape as the
    binocular pipeline; in the monocular front end they only ever hold
    INVALID or DISABLED.

    Attributes:
        kf_tracking_status_mono: Status of the last mono RANSAC
        kf_tracking_status_stereo: Status of the (absent) stereo RANSAC
        lkf_T_k_mono: Last valid relative pose, last keyframe to current
        lkf_T_k_stereo: Stereo counterpart, identity in mono
    """

    kf_tracking_status_mono: TrackingStatus = TrackingStatus.INVALID
    kf_tracking_status_stereo: TrackingStatus = TrackingStatus.INVALID
    lkf_T_k_mono: SE3 = field(default_factory=SE3.identity)
    lkf_T_k_stereo: SE3 = field(default_factory=SE3.identity)

    def copy(self) -> TrackerStatusSummary:
        return TrackerStatusSummary(
            kf_tracking_status_mono=self.kf_tracking_status_mono,
            kf_tracking_status_stereo=self.kf_tracking_status_stereo,
            lkf_T_k_mono=SE3(self.lkf_T_k_mono.rotation, self.lkf_T_k_mono.translation),
            lkf_T_k_stereo=SE3(
                self.lkf_T_k_stereo.rotation, self.lkf_T_k_stereo.translation
            ),
        )


@dataclass
class DebugTrackerInfo:
    """Tracker diagnostics for the last processed frame (timings in ms)."""

    nr_detected_features: int = 0
    nr_tracked_features: int = 0
    nr_mono_putatives: int = 0
    nr_mono_inliers: int = 0
    mono_ransac_iterations: int = 0
    feature_detection_time: float = 0.0
    feature_tracking_time: float = 0.0
    mono_ransac_time: float = 0.0

    def reset_frame_info(self) -> None:
        """Clear per-frame counters before a new frame is processed."""
        self.nr_detected_features = 0
        self.nr_tracked_features = 0
        self.feature_detection_time = 0.0
        self.feature_tracking_time = 0.0

    def reset_ransac_info(self) -> None:
        self.nr_mono_putatives = 0
        self.nr_mono_inliers = 0
        self.mono_ransac_iterations = 0
        self.mono_ransac_time = 0.0

    def copy(self) -> DebugTrackerInfo:
        return replace(self)


@dataclass(frozen=True)
class StereoPoint2:
    """Pixel observation in stereo layout; mono leaves u_right missing."""

    u_left: float
    u_right: float
    v: float

    @property
    def has_right(self) -> bool:
        return not math.isnan(self.u_right)


@dataclass(frozen=True)
class MonoMeasurement:
    """Observation of a persistent landmark in a keyframe."""

    landmark_id: int
    point: StereoPoint2


@dataclass(frozen=True)
class StatusMonoMeasurements:
    """Tracker status paired with the smart measurements of a frame."""

    status_summary: TrackerStatusSummary
    measurements: tuple[MonoMeasurement, ...] = ()


@dataclass
class MonoFrontendInputPayload:
    """One camera frame plus the IMU samples since the previous frame.

    Attributes:
        frame: Camera frame, with no keypoints on the first call
        imu_stamps: (N,) IMU timestamps in nanoseconds
        imu_accgyrs: (N, 6) rows of [ax, ay, az, wx, wy, wz]
    """

    frame: Frame
    imu_stamps: np.ndarray
    imu_accgyrs: np.ndarray

    def __post_init__(self) -> None:
        self.imu_stamps = np.asarray(self.imu_stamps, dtype=np.int64).flatten()
        self.imu_accgyrs = np.asarray(self.imu_accgyrs, dtype=np.float64).reshape(-1, 6)
        if len(self.imu_stamps) != len(self.imu_accgyrs):
            raise ValueError(
                f"IMU stamps ({len(self.imu_stamps)}) and samples "
                f"({len(self.imu_accgyrs)}) differ in length"
            )

    @property
    def timestamp_ns(self) -> int:
        return self.frame.timestamp_ns


@dataclass(frozen=True)
class MonoFrontendOutput:
    """Snapshot produced by the front end for one input frame.

    Attributes:
        is_keyframe: True if the frame was selected as keyframe
        status_mono_measurements: Tracker status and smart measurements,
            None for the bootstrap frame
        tracking_status: Mono RANSAC status for keyframes, INVALID for
            other frames, DISABLED at bootstrap
        relative_pose_body: Last valid keyframe-to-keyframe pose in body frame
        body_pose_cam: Camera extrinsics body_T_cam
        frame_lkf: Copy of the last keyframe when the output was assembled
        pim: IMU preintegration since the last keyframe, None at bootstrap
        imu_acc_gyrs: Raw IMU samples of this interval
        feature_tracks: Debug image of the tracks, if rendered
        tracker_info: Tracker diagnostics
    """

    is_keyframe: bool
    status_mono_measurements: StatusMonoMeasurements | None
    tracking_status: TrackingStatus
    relative_pose_body: SE3
    body_pose_cam: SE3
    frame_lkf: Frame
    pim: PreintegratedImuMeasurement | None
    imu_acc_gyrs: np.ndarray
    feature_tracks: np.ndarray | None = None
    tracker_info: DebugTrackerInfo = field(default_factory=DebugTrackerInfo)

    @property
    def timestamp_ns(self) -> int:
        """Timestamp of the last keyframe referenced by this output."""
        return self.frame_lkf.timestamp_ns

    @property
    def measurements(self) -> tuple[MonoMeasurement, ...]:
        if self.status_mono_measurements is None:
            return ()
        return self.status_mono_measurements.measurements
