"""Monocular visual-inertial tracking front end.

Turns a stream of camera frames plus IMU samples into keyframe decisions and
smart measurements for a downstream optimizer. Each call is processed
synchronously; inputs must arrive in non-decreasing timestamp order.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np

from ..errors import FrontendError
from ..imu.preintegration import ImuBias, ImuFrontend, ImuParams
from ..utils.timing import StatsCollector, Timer
from .camera import MonoCamera
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
from .params import MonoFrontendParams
from .pose import SE3, is_identity_rotation
from .tracker import Tracker

if TYPE_CHECKING:
    from ..logger import FrontendLogger
    from ..visualization.rerun_visualizer import RerunVisualizer

logger = logging.getLogger(__name__)


class FrontendState(Enum):
    """Processing state of the front end."""

    BOOTSTRAP = "BOOTSTRAP"
    NOMINAL = "NOMINAL"


class MonoVisionFrontend:
    """Keyframe-based monocular tracking front end.

    Orchestrates one frame at a time:
    1. Preintegrate the IMU samples since the last keyframe and conjugate
       the rotation into the camera frame
    2. Track the landmarks of the previous frame into the current one,
       seeded with the rotation relative to the last keyframe
    3. Decide whether the frame becomes a keyframe
    4. On keyframes: detect new features, reject outliers against the last
       keyframe and package the smart measurements

    Frames hold at most one of three roles. The *current* frame only exists
    while a call is running. The *previous* frame is the tracking reference
    for the next call, and the *last keyframe* anchors outlier rejection.
    When a frame becomes a keyframe the previous and last-keyframe roles
    refer to the same object.

    Example usage:
        frontend = MonoVisionFrontend(imu_params, ImuBias(), params, camera)
        for payload in source:
            output = frontend.spin(payload)
            if output.is_keyframe:
                backend.add(output)
    """

    def __init__(
        self,
        imu_params: ImuParams,
        imu_initial_bias: ImuBias,
        frontend_params: MonoFrontendParams,
        camera: MonoCamera,
        logger: FrontendLogger | None = None,
        visualizer: RerunVisualizer | None = None,
        feature_detector: FeatureDetector | None = None,
        tracker: Tracker | None = None,
        imu_frontend: ImuFrontend | None = None,
    ) -> None:
        """Initialize the front end.

        Args:
            imu_params: IMU noise and integration settings
            imu_initial_bias: Bias used until the backend provides a new one
            frontend_params: Tracking and detection parameters
            camera: Calibrated camera with body extrinsics
            logger: Optional CSV logger receiving keyframe statistics
            visualizer: Optional viewer receiving debug images
            feature_detector: Detector override (default: built from params)
            tracker: Tracker override (default: built from params)
            imu_frontend: Preintegrator override (default: built from params)
        """
        self._params = frontend_params
        self._camera = camera
        self._logger = logger
        self._visualizer = visualizer

        self._feature_detector = feature_detector or FeatureDetector(
            frontend_params.feature_detector_params
        )
        self._tracker = tracker or Tracker(frontend_params.tracker_params, camera)
        self._imu_frontend = imu_frontend or ImuFrontend(imu_params, imu_initial_bias)

        self._state = FrontendState.BOOTSTRAP

        # Frame roles
        self._frame_k: Frame | None = None
        self._frame_km1: Frame | None = None
        self._frame_lkf: Frame | None = None

        self._keyframe_R_ref_frame = np.eye(3)
        self._last_keyframe_timestamp: int | None = None
        self._tracker_status_summary = TrackerStatusSummary()

        self._frame_count = 0
        self._keyframe_count = 0
        self.frame_rate_stats = StatsCollector("Frontend Frame Rate [ms]")
        self.keyframe_rate_stats = StatsCollector("Frontend Keyframe Rate [ms]")

    # ------------------------------------------------------------------ #
    # Entry points
    # ------------------------------------------------------------------ #

    def spin(self, payload: MonoFrontendInputPayload) -> MonoFrontendOutput:
        """Process one input payload in the current state."""
        if self._state == FrontendState.BOOTSTRAP:
            return self.bootstrap_spin(payload)
        return self.nominal_spin(payload)

    def bootstrap_spin(self, payload: MonoFrontendInputPayload) -> MonoFrontendOutput:
        """Initialize the frame roles from the first frame.

        The first frame becomes the first keyframe. No relative motion is
        defined yet, so the output carries a DISABLED status and no
        measurements.

        Raises:
            FrontendError: If not in BOOTSTRAP state or if the frame
                already has keypoints
        """
        if self._state != FrontendState.BOOTSTRAP:
            raise FrontendError(f"bootstrap_spin called in state {self._state.value}")

        self.process_first_frame(payload.frame)
        self._state = FrontendState.NOMINAL

        if self._frame_lkf is None:
            raise FrontendError("No keyframe after processing the first frame")
        return MonoFrontendOutput(
            is_keyframe=self._frame_lkf.is_keyframe,
            status_mono_measurements=None,
            tracking_status=TrackingStatus.DISABLED,
            relative_pose_body=self.get_relative_pose_body(),
            body_pose_cam=self._camera.body_pose_cam,
            frame_lkf=self._frame_lkf.copy(),
            pim=None,
            imu_acc_gyrs=payload.imu_accgyrs.copy(),
            feature_tracks=None,
            tracker_info=self.get_tracker_info(),
        )

    def nominal_spin(self, payload: MonoFrontendInputPayload) -> MonoFrontendOutput:
        """Track one frame and decide whether it is a keyframe.

        Returns:
            Output whose ``is_keyframe`` flag, measurements and status
            describe this frame. Non-keyframes always report INVALID.

        Raises:
            FrontendError: If not in NOMINAL state or if the frame roles are
                inconsistent after processing
        """
        if self._state != FrontendState.NOMINAL:
            raise FrontendError(f"nominal_spin called in state {self._state.value}")

        start = Timer.tic()
        frame_k = payload.frame
        logger.debug("Processing frame k = %d", frame_k.id)

        pim = self._imu_frontend.preintegrate_imu_measurements(
            payload.imu_stamps, payload.imu_accgyrs
        )
        body_R_cam = self._camera.body_pose_cam_rect.rotation
        cam_R_body = body_R_cam.T
        keyframe_R_cur_imu = cam_R_body @ pim.delta_R @ body_R_cam

        status_mono_measurements, feature_tracks = self.process_frame(
            frame_k, keyframe_R_cur_imu, render_tracks=self._params.output_feature_tracks
        )

        if self._frame_k is not None:
            raise FrontendError("Current frame still set after processing")

        common = dict(
            relative_pose_body=self.get_relative_pose_body(),
            body_pose_cam=self._camera.body_pose_cam_rect,
            frame_lkf=self._frame_lkf.copy(),
            pim=pim,
            imu_acc_gyrs=payload.imu_accgyrs.copy(),
            feature_tracks=feature_tracks,
            tracker_info=self.get_tracker_info(),
        )

        if self._frame_km1.is_keyframe:
            if (
                self._frame_lkf.timestamp_ns != self._frame_km1.timestamp_ns
                or self._frame_lkf.id != self._frame_km1.id
            ):
                raise FrontendError(
                    f"Last keyframe {self._frame_lkf.id} is not the previous "
                    f"frame {self._frame_km1.id}"
                )
            logger.debug(
                "Keyframe %d with %d smart measurements",
                frame_k.id,
                len(status_mono_measurements.measurements),
            )

            if self._logger is not None:
                self._logger.log_frontend_stats(
                    self._frame_lkf.timestamp_ns,
                    self.get_tracker_info(),
                    self._tracker_status_summary,
                    self._frame_km1.num_valid_keypoints,
                )
                # Mono only: the stereo column repeats the mono pose
                relative_pose_body = self.get_relative_pose_body()
                self._logger.log_frontend_ransac(
                    self._frame_lkf.timestamp_ns, relative_pose_body, relative_pose_body
                )

            # Reset as late as possible so the pim spans the whole interval
            self._imu_frontend.reset_integration_with_cached_bias()

            self.keyframe_rate_stats.add_sample(Timer.toc(start))
            return MonoFrontendOutput(
                is_keyframe=True,
                status_mono_measurements=status_mono_measurements,
                tracking_status=self._tracker_status_summary.kf_tracking_status_mono,
                **common,
            )

        self.frame_rate_stats.add_sample(Timer.toc(start))
        return MonoFrontendOutput(
            is_keyframe=False,
            status_mono_measurements=status_mono_measurements,
            tracking_status=TrackingStatus.INVALID,
            **common,
        )

    # ------------------------------------------------------------------ #
    # Frame processing
    # ------------------------------------------------------------------ #

    def process_first_frame(self, first_frame: Frame) -> None:
        """Detect features in the first frame and make it the first keyframe."""
        logger.info("Processing first frame %d", first_frame.id)
        self._frame_k = first_frame.copy()
        self._frame_k.is_keyframe = True
        self._last_keyframe_timestamp = self._frame_k.timestamp_ns

        if self._frame_k.num_keypoints != 0:
            raise FrontendError(
                f"First frame {first_frame.id} already has "
                f"{self._frame_k.num_keypoints} keypoints; detection is done "
                "by the front end"
            )

        self._tracker.debug_info.reset_frame_info()
        self._detect(self._frame_k)

        self._frame_km1 = self._frame_k
        self._frame_lkf = self._frame_k
        self._frame_k = None
        self._frame_count += 1
        self._keyframe_count = 1

        self._imu_frontend.reset_integration_with_cached_bias()

    def process_frame(
        self,
        cur_frame: Frame,
        keyframe_R_cur_frame: np.ndarray,
        render_tracks: bool = False,
    ) -> tuple[StatusMonoMeasurements, np.ndarray | None]:
        """Track ``cur_frame`` and run the keyframe policy on it.

        Args:
            cur_frame: Incoming frame, copied before being modified
            keyframe_R_cur_frame: Camera rotation from the current frame to
                the last keyframe, from IMU preintegration
            render_tracks: If True, also draw the tracks from the last
                keyframe into a debug image

        Returns:
            Tuple of (status summary with the smart measurements of the frame,
            debug image or None). Measurements are empty unless the frame
            became a keyframe.
        """
        if self._frame_km1 is None or self._frame_lkf is None:
            raise FrontendError("process_frame called before the first frame")

        logger.debug(
            "Frame %d at t=%d, %.3f s after previous frame",
            self._frame_count,
            cur_frame.timestamp_ns,
            (cur_frame.timestamp_ns - self._frame_km1.timestamp_ns) * 1e-9,
        )
        self._frame_k = cur_frame.copy()
        frame_k = self._frame_k
        tracker_params = self._tracker.params

        self._tracker.debug_info.reset_frame_info()
        ref_frame_R_cur_frame = self._keyframe_R_ref_frame.T @ keyframe_R_cur_frame
        self._tracker.feature_tracking(self._frame_km1, frame_k, ref_frame_R_cur_frame)
        feature_tracks = None
        if render_tracks:
            feature_tracks = self._tracker.get_tracker_image(self._frame_lkf, frame_k)

        self._tracker_status_summary.kf_tracking_status_mono = TrackingStatus.INVALID
        self._tracker_status_summary.kf_tracking_status_stereo = TrackingStatus.INVALID

        measurements: list[MonoMeasurement] = []

        elapsed_ns = frame_k.timestamp_ns - self._last_keyframe_timestamp
        max_time_elapsed = elapsed_ns >= tracker_params.intra_keyframe_time_ns
        nr_valid_features = frame_k.num_valid_keypoints
        nr_features_low = nr_valid_features <= tracker_params.min_number_features

        if frame_k.is_keyframe:
            logger.warning("User enforced keyframe at frame %d", frame_k.id)

        if max_time_elapsed or nr_features_low or frame_k.is_keyframe:
            logger.debug("Keyframe after %.3f s", elapsed_ns * 1e-9)
            self._last_keyframe_timestamp = frame_k.timestamp_ns
            frame_k.is_keyframe = True
            self._keyframe_count += 1

            if max_time_elapsed:
                logger.debug("Keyframe reason: max time elapsed")
            if nr_features_low:
                logger.debug(
                    "Keyframe reason: low nr of features (%d <= %d)",
                    nr_valid_features,
                    tracker_params.min_number_features,
                )

            self._detect(frame_k)

            if tracker_params.use_ransac:
                self.outlier_rejection_mono(keyframe_R_cur_frame, self._frame_lkf, frame_k)
            else:
                self._tracker_status_summary.kf_tracking_status_mono = TrackingStatus.DISABLED
                self._tracker_status_summary.kf_tracking_status_stereo = (
                    TrackingStatus.DISABLED
                )

            if self._visualizer is not None and self._params.visualize_feature_tracks:
                self._visualizer.display_image(
                    frame_k.timestamp_ns,
                    "feature_tracks",
                    self._tracker.get_tracker_image(self._frame_lkf, frame_k),
                )

            self._frame_lkf = frame_k

            start = Timer.tic()
            measurements = self.get_smart_mono_measurements(frame_k)
            logger.debug("Smart measurements built in %.3f ms", Timer.toc(start))
        else:
            if measurements:
                raise FrontendError(f"Non-keyframe {frame_k.id} has smart measurements")
            frame_k.is_keyframe = False

        if frame_k.is_keyframe:
            self._keyframe_R_ref_frame = np.eye(3)
        else:
            self._keyframe_R_ref_frame = np.asarray(keyframe_R_cur_frame, dtype=np.float64)

        self._frame_km1 = frame_k
        self._frame_k = None
        self._frame_count += 1

        return (
            StatusMonoMeasurements(
                status_summary=self._tracker_status_summary.copy(),
                measurements=tuple(measurements),
            ),
            feature_tracks,
        )

    def outlier_rejection_mono(
        self, keyframe_R_cur_frame: np.ndarray, frame_lkf: Frame, frame_k: Frame
    ) -> tuple[TrackingStatus, SE3]:
        """Run geometric verification between the last keyframe and ``frame_k``.

        The 2-point solver is used when enabled and the IMU rotation is not
        the identity; otherwise the 5-point solver. The status is always
        stored, the pose only when the status is VALID.

        Returns:
            Tuple of (status, lkf_T_k) returned by the solver
        """
        tracker_params = self._tracker.params
        if tracker_params.ransac_use_2point_mono and not is_identity_rotation(
            keyframe_R_cur_frame
        ):
            status, pose = self._tracker.geometric_outlier_rejection_mono_given_rotation(
                frame_lkf, frame_k, keyframe_R_cur_frame
            )
        else:
            status, pose = self._tracker.geometric_outlier_rejection_mono(frame_lkf, frame_k)

        self._tracker_status_summary.kf_tracking_status_mono = status
        logger.debug("Mono tracking status: %s", status.value)

        if status == TrackingStatus.VALID:
            self._tracker_status_summary.lkf_T_k_mono = pose
        return status, pose

    @staticmethod
    def get_smart_mono_measurements(frame: Frame) -> list[MonoMeasurement]:
        """Package the associated keypoints of ``frame`` in stereo layout.

        Keypoints without a landmark are skipped; the right-image coordinate
        is NaN.
        """
        frame.check_frame()
        measurements = []
        for keypoint, landmark_id in zip(frame.keypoints, frame.landmarks):
            if landmark_id == INVALID_LANDMARK_ID:
                continue
            measurements.append(
                MonoMeasurement(
                    landmark_id=int(landmark_id),
                    point=StereoPoint2(
                        u_left=float(keypoint[0]), u_right=float("nan"), v=float(keypoint[1])
                    ),
                )
            )
        return measurements

    def _detect(self, frame: Frame) -> None:
        start = Timer.tic()
        nr_detected = self._feature_detector.detect(frame)
        debug_info = self._tracker.debug_info
        debug_info.nr_detected_features = nr_detected
        debug_info.feature_detection_time = Timer.toc(start)

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def get_relative_pose_body(self) -> SE3:
        """Return the last valid keyframe-to-keyframe pose in body frame."""
        body_T_cam = self._camera.body_pose_cam_rect
        return body_T_cam @ self._tracker_status_summary.lkf_T_k_mono @ body_T_cam.inverse()

    def get_tracker_info(self) -> DebugTrackerInfo:
        return self._tracker.debug_info.copy()

    def update_imu_bias(self, imu_bias: ImuBias) -> None:
        """Cache a new bias estimate, applied at the next keyframe."""
        self._imu_frontend.update_bias(imu_bias)

    def print_stats(self) -> None:
        """Log the frame and keyframe rate statistics."""
        logger.info("%s", self.frame_rate_stats)
        logger.info("%s", self.keyframe_rate_stats)
        logger.info(
            "Processed %d frames, %d keyframes", self._frame_count, self._keyframe_count
        )

    @property
    def state(self) -> FrontendState:
        return self._state

    @property
    def current_frame(self) -> Frame | None:
        """Frame being processed; always None between calls."""
        return self._frame_k

    @property
    def previous_frame(self) -> Frame | None:
        return self._frame_km1

    @property
    def last_keyframe(self) -> Frame | None:
        return self._frame_lkf

    @property
    def keyframe_R_ref_frame(self) -> np.ndarray:
        """Rotation accumulated since the last keyframe."""
        return self._keyframe_R_ref_frame.copy()

    @property
    def tracker_status_summary(self) -> TrackerStatusSummary:
        return self._tracker_status_summary.copy()

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def keyframe_count(self) -> int:
        return self._keyframe_count

    @property
    def params(self) -> MonoFrontendParams:
        return self._params
