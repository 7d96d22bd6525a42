"""KLT feature tracking and monocular geometric outlier rejection."""

from __future__ import annotations

import logging
import math

import cv2
import numpy as np

from ..utils.timing import Timer
from .camera import MonoCamera
from .frame import Frame
from .messages import DebugTrackerInfo, TrackingStatus
from .params import TrackerParams
from .pose import SE3, is_identity_rotation

logger = logging.getLogger(__name__)

# Minimal sample sizes of the two solvers.
FIVE_POINT_SAMPLE_SIZE = 5
TWO_POINT_SAMPLE_SIZE = 2

TRACKED_COLOR = (0, 255, 0)
NEW_FEATURE_COLOR = (0, 0, 255)


def _to_gray(image: np.ndarray) -> np.ndarray:
    if image.ndim == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    return image


class Tracker:
    """Propagates landmarks between frames and validates their geometry.

    Tracking uses pyramidal Lucas-Kanade optical flow. Outlier rejection
    solves for the relative pose ref_T_cur between two frames from their
    shared landmarks, either with the 5-point essential-matrix RANSAC or,
    when the rotation is known, with a 2-point RANSAC on the translation
    direction. Observations rejected as outliers are detached from their
    landmark in the current frame.
    """

    def __init__(self, params: TrackerParams, camera: MonoCamera) -> None:
        """Initialize tracker.

        Args:
            params: Tracking and RANSAC parameters
            camera: Camera used to turn pixels into bearing vectors
        """
        self._params = params
        self._camera = camera
        self._rng = np.random.default_rng(
            None if params.ransac_randomize else params.ransac_seed
        )
        self.debug_info = DebugTrackerInfo()

    def feature_tracking(
        self, ref_frame: Frame, cur_frame: Frame, ref_R_cur: np.ndarray
    ) -> int:
        """Track the valid landmarks of ``ref_frame`` into ``cur_frame``.

        When ``ref_R_cur`` is not the identity it seeds the optical flow:
        each keypoint is warped with the infinite homography K cur_R_ref K^-1.

        Args:
            ref_frame: Frame holding the landmarks to track
            cur_frame: Frame receiving the tracked keypoints (modified)
            ref_R_cur: Rotation prior from cur_frame to ref_frame

        Returns:
            Number of tracked landmarks
        """
        start = Timer.tic()
        if ref_frame.image is None or cur_frame.image is None:
            raise ValueError("Feature tracking needs images in both frames")

        p = self._params
        candidates = np.flatnonzero(
            ref_frame.valid_mask & (ref_frame.landmarks_age < p.max_feature_track_age)
        )
        if len(candidates) == 0:
            self.debug_info.nr_tracked_features = 0
            self.debug_info.feature_tracking_time = Timer.toc(start)
            return 0

        prev_pts = ref_frame.keypoints[candidates].reshape(-1, 1, 2).astype(np.float32)
        next_pts = None
        flags = 0
        if not is_identity_rotation(ref_R_cur):
            next_pts = self._predict_keypoints(prev_pts, ref_R_cur)
            flags = cv2.OPTFLOW_USE_INITIAL_FLOW

        tracked, status, _ = cv2.calcOpticalFlowPyrLK(
            _to_gray(ref_frame.image),
            _to_gray(cur_frame.image),
            prev_pts,
            next_pts,
            winSize=(p.klt_win_size, p.klt_win_size),
            maxLevel=p.klt_max_level,
            criteria=(
                cv2.TERM_CRITERIA_COUNT | cv2.TERM_CRITERIA_EPS,
                p.klt_max_iter,
                p.klt_eps,
            ),
            flags=flags,
        )

        tracked = tracked.reshape(-1, 2)
        height, width = cur_frame.image.shape[:2]
        keep = (
            (status.reshape(-1) == 1)
            & np.isfinite(tracked).all(axis=1)
            & (tracked[:, 0] >= 0)
            & (tracked[:, 0] < width)
            & (tracked[:, 1] >= 0)
            & (tracked[:, 1] < height)
        )
        kept = candidates[keep]
        cur_frame.add_keypoints(
            tracked[keep],
            ref_frame.landmarks[kept],
            ref_frame.landmarks_age[kept] + 1,
        )

        self.debug_info.nr_tracked_features = int(np.count_nonzero(keep))
        self.debug_info.feature_tracking_time = Timer.toc(start)
        logger.debug(
            "Tracked %d/%d landmarks from frame %d into frame %d",
            len(kept),
            len(candidates),
            ref_frame.id,
            cur_frame.id,
        )
        return len(kept)

    def _predict_keypoints(self, pts: np.ndarray, ref_R_cur: np.ndarray) -> np.ndarray:
        K = self._camera.K
        H = K @ np.asarray(ref_R_cur, dtype=np.float64).T @ np.linalg.inv(K)
        return cv2.perspectiveTransform(pts.astype(np.float32), H).astype(np.float32)

    def geometric_outlier_rejection_mono(
        self, ref_frame: Frame, cur_frame: Frame
    ) -> tuple[TrackingStatus, SE3]:
        """Estimate ref_T_cur with 5-point RANSAC and drop outliers.

        Returns:
            Tuple of (status, ref_T_cur) with a unit-norm translation
        """
        start = Timer.tic()
        self.debug_info.reset_ransac_info()
        ref_idx, cur_idx = self._find_matches(ref_frame, cur_frame)
        self.debug_info.nr_mono_putatives = len(ref_idx)

        if len(ref_idx) < FIVE_POINT_SAMPLE_SIZE:
            return self._finish(start, TrackingStatus.FEW_MATCHES, SE3.identity())

        pts_ref = self._camera.undistort_points(ref_frame.keypoints[ref_idx])
        pts_cur = self._camera.undistort_points(cur_frame.keypoints[cur_idx])
        identity_K = np.eye(3)

        try:
            E, mask = cv2.findEssentialMat(
                pts_ref,
                pts_cur,
                identity_K,
                method=cv2.RANSAC,
                prob=self._params.ransac_probability,
                threshold=self._angular_threshold(),
                maxIters=self._params.ransac_max_iterations,
            )
            if E is None or E.shape[0] < 3 or mask is None:
                return self._finish(start, TrackingStatus.INVALID, SE3.identity())
            E = E[:3]
            _, cur_R_ref, cur_t_ref, _ = cv2.recoverPose(
                E, pts_ref, pts_cur, identity_K, mask=mask.copy()
            )
        except cv2.error as e:
            logger.debug("5-point RANSAC failed: %s", e)
            return self._finish(start, TrackingStatus.INVALID, SE3.identity())

        inliers = mask.reshape(-1) > 0
        ref_T_cur = SE3(cur_R_ref, cur_t_ref).inverse()
        status = self._check_inliers(ref_frame, cur_frame, ref_idx, cur_idx, inliers)
        return self._finish(start, status, ref_T_cur)

    def geometric_outlier_rejection_mono_given_rotation(
        self, ref_frame: Frame, cur_frame: Frame, ref_R_cur: np.ndarray
    ) -> tuple[TrackingStatus, SE3]:
        """Estimate the translation of ref_T_cur with 2-point RANSAC.

        With the rotation known, every correspondence constrains the
        translation direction t through t . ((R f_cur) x f_ref) = 0, so two
        correspondences determine t up to sign. The sign is chosen so that
        most inliers triangulate in front of both cameras.

        Returns:
            Tuple of (status, ref_T_cur) with a unit-norm translation
        """
        start = Timer.tic()
        self.debug_info.reset_ransac_info()
        ref_idx, cur_idx = self._find_matches(ref_frame, cur_frame)
        self.debug_info.nr_mono_putatives = len(ref_idx)

        R = np.asarray(ref_R_cur, dtype=np.float64)
        if len(ref_idx) < TWO_POINT_SAMPLE_SIZE:
            return self._finish(start, TrackingStatus.FEW_MATCHES, SE3(R, np.zeros(3)))

        f_ref = self._camera.bearing_vectors(ref_frame.keypoints[ref_idx])
        f_cur_rotated = (R @ self._camera.bearing_vectors(cur_frame.keypoints[cur_idx]).T).T
        constraints = np.cross(f_cur_rotated, f_ref)

        t, inliers = self._two_point_ransac(f_cur_rotated, constraints)
        if t is None:
            return self._finish(start, TrackingStatus.INVALID, SE3(R, np.zeros(3)))

        # Least-squares refinement on the inlier set
        _, _, vt = np.linalg.svd(constraints[inliers])
        t_refined = vt[-1]
        if np.dot(t_refined, t) < 0:
            t_refined = -t_refined
        inliers = self._two_point_errors(t_refined, f_cur_rotated, constraints) < (
            self._angular_threshold()
        )
        t = self._disambiguate_sign(t_refined, f_ref[inliers], f_cur_rotated[inliers])

        status = self._check_inliers(ref_frame, cur_frame, ref_idx, cur_idx, inliers)
        return self._finish(start, status, SE3(R, t))

    def _two_point_ransac(
        self, f_cur_rotated: np.ndarray, constraints: np.ndarray
    ) -> tuple[np.ndarray | None, np.ndarray]:
        p = self._params
        n = len(constraints)
        threshold = self._angular_threshold()
        best_t = None
        best_inliers = np.zeros(n, dtype=bool)

        max_iterations = p.ransac_max_iterations
        iteration = 0
        while iteration < max_iterations:
            iteration += 1
            i, j = self._rng.choice(n, size=TWO_POINT_SAMPLE_SIZE, replace=False)
            t = np.cross(constraints[i], constraints[j])
            norm = np.linalg.norm(t)
            if norm < 1e-12:
                continue
            t = t / norm

            inliers = self._two_point_errors(t, f_cur_rotated, constraints) < threshold
            if inliers.sum() > best_inliers.sum():
                best_t = t
                best_inliers = inliers
                inlier_ratio = inliers.sum() / n
                if inlier_ratio >= 1.0:
                    break
                needed = math.log(1.0 - p.ransac_probability) / math.log(
                    1.0 - inlier_ratio**TWO_POINT_SAMPLE_SIZE
                )
                max_iterations = min(max_iterations, max(int(math.ceil(needed)), 1))

        self.debug_info.mono_ransac_iterations = iteration
        if best_t is None or best_inliers.sum() < TWO_POINT_SAMPLE_SIZE:
            return None, best_inliers
        return best_t, best_inliers

    @staticmethod
    def _two_point_errors(
        t: np.ndarray, f_cur_rotated: np.ndarray, constraints: np.ndarray
    ) -> np.ndarray:
        """Angle between each ref bearing and its epipolar plane, in radians."""
        normals = np.cross(t, f_cur_rotated)
        normal_norms = np.linalg.norm(normals, axis=1)
        errors = np.full(len(constraints), np.inf)
        ok = normal_norms > 1e-12
        sines = np.abs(constraints[ok] @ t) / normal_norms[ok]
        errors[ok] = np.arcsin(np.clip(sines, 0.0, 1.0))
        return errors

    @staticmethod
    def _disambiguate_sign(
        t: np.ndarray, f_ref: np.ndarray, f_cur_rotated: np.ndarray
    ) -> np.ndarray:
        """Pick the sign of t that puts most points in front of both cameras.

        Solves lambda_ref f_ref - lambda_cur (R f_cur) = t per point in the
        least-squares sense.
        """
        fr = np.einsum("ij,ij->i", f_ref, f_cur_rotated)
        ft = f_ref @ t
        rt = f_cur_rotated @ t
        det = 1.0 - fr**2
        ok = det > 1e-12
        lambda_ref = (ft[ok] - fr[ok] * rt[ok]) / det[ok]
        lambda_cur = (fr[ok] * ft[ok] - rt[ok]) / det[ok]

        in_front = np.count_nonzero((lambda_ref > 0) & (lambda_cur > 0))
        behind = np.count_nonzero((lambda_ref < 0) & (lambda_cur < 0))
        return -t if behind > in_front else t

    def _check_inliers(
        self,
        ref_frame: Frame,
        cur_frame: Frame,
        ref_idx: np.ndarray,
        cur_idx: np.ndarray,
        inliers: np.ndarray,
    ) -> TrackingStatus:
        """Detach outliers and classify the solve."""
        cur_frame.invalidate_landmarks(cur_idx[~inliers])
        nr_inliers = int(np.count_nonzero(inliers))
        self.debug_info.nr_mono_inliers = nr_inliers

        if nr_inliers < self._params.min_nr_mono_inliers:
            return TrackingStatus.INVALID

        disparity = np.linalg.norm(
            cur_frame.keypoints[cur_idx[inliers]] - ref_frame.keypoints[ref_idx[inliers]],
            axis=1,
        )
        if float(np.median(disparity)) < self._params.disparity_threshold:
            return TrackingStatus.LOW_DISPARITY
        return TrackingStatus.VALID

    def _finish(
        self, start: float, status: TrackingStatus, pose: SE3
    ) -> tuple[TrackingStatus, SE3]:
        self.debug_info.mono_ransac_time = Timer.toc(start)
        logger.debug(
            "Mono RANSAC: %s, %d/%d inliers",
            status.value,
            self.debug_info.nr_mono_inliers,
            self.debug_info.nr_mono_putatives,
        )
        return status, pose

    def _angular_threshold(self) -> float:
        """Return the RANSAC threshold as an angle in radians."""
        return float(np.arccos(1.0 - self._params.ransac_threshold_mono))

    @staticmethod
    def _find_matches(
        ref_frame: Frame, cur_frame: Frame
    ) -> tuple[np.ndarray, np.ndarray]:
        """Return keypoint indices of the landmarks seen in both frames."""
        ref_lookup = ref_frame.landmark_index()
        ref_idx = []
        cur_idx = []
        for j, landmark_id in enumerate(cur_frame.landmarks):
            i = ref_lookup.get(int(landmark_id))
            if i is not None:
                ref_idx.append(i)
                cur_idx.append(j)
        return np.array(ref_idx, dtype=np.intp), np.array(cur_idx, dtype=np.intp)

    def get_tracker_image(self, ref_frame: Frame, cur_frame: Frame) -> np.ndarray:
        """Draw the tracks from ``ref_frame`` onto ``cur_frame``.

        Tracked landmarks are drawn as green segments from their reference
        position, newly detected ones as red circles.

        Returns:
            BGR image
        """
        if cur_frame.image is None:
            width, height = self._camera.image_size
            canvas = np.zeros((height, width, 3), dtype=np.uint8)
        elif cur_frame.image.ndim == 2:
            canvas = cv2.cvtColor(cur_frame.image, cv2.COLOR_GRAY2BGR)
        else:
            canvas = cur_frame.image.copy()

        ref_lookup = ref_frame.landmark_index()
        for keypoint, landmark_id in zip(cur_frame.keypoints, cur_frame.landmarks):
            if landmark_id == -1:
                continue
            cur_pt = (int(round(keypoint[0])), int(round(keypoint[1])))
            ref_i = ref_lookup.get(int(landmark_id))
            if ref_i is None:
                cv2.circle(canvas, cur_pt, 4, NEW_FEATURE_COLOR, 1)
                continue
            ref_kp = ref_frame.keypoints[ref_i]
            ref_pt = (int(round(ref_kp[0])), int(round(ref_kp[1])))
            cv2.line(canvas, ref_pt, cur_pt, TRACKED_COLOR, 1)
            cv2.circle(canvas, cur_pt, 3, TRACKED_COLOR, -1)
        return canvas

    @property
    def params(self) -> TrackerParams:
        return self._params
