"""Corner detection that replenishes a frame's keypoints."""

from __future__ import annotations

import logging

import cv2
import numpy as np

from .frame import Frame
from .params import FeatureDetectorParams, FeatureDetectorType

logger = logging.getLogger(__name__)


class FeatureDetector:
    """Detects new corners away from the keypoints a frame already has.

    Each detected corner receives a fresh landmark id from a counter owned by
    the detector, so ids are unique for the lifetime of the detector.
    """

    def __init__(self, params: FeatureDetectorParams | None = None) -> None:
        """Initialize detector.

        Args:
            params: Detection parameters (default: FeatureDetectorParams())
        """
        self._params = params or FeatureDetectorParams()
        self._next_landmark_id = 0

        self._orb = None
        if self._params.detector_type == FeatureDetectorType.ORB:
            self._orb = cv2.ORB_create(
                nfeatures=max(self._params.max_features_per_frame, 1),
                fastThreshold=self._params.fast_threshold,
            )

    def detect(self, frame: Frame) -> int:
        """Add new keypoints to ``frame`` in place.

        Existing valid keypoints are masked out with a disc of radius
        ``min_distance`` so new corners don't duplicate tracked ones.

        Args:
            frame: Frame with an image

        Returns:
            Number of keypoints added

        Raises:
            ValueError: If the frame has no image
        """
        if frame.image is None:
            raise ValueError(f"Frame {frame.id} has no image to detect features in")

        budget = self._params.max_features_per_frame - frame.num_valid_keypoints
        if budget <= 0:
            return 0

        image = frame.image
        if image.ndim == 3:
            image = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)

        mask = self._build_mask(image.shape[:2], frame)
        corners = self._detect_corners(image, mask, budget)
        if len(corners) == 0:
            return 0

        if self._params.enable_subpixel_refinement:
            corners = self._refine_subpixel(image, corners)

        new_ids = np.arange(
            self._next_landmark_id, self._next_landmark_id + len(corners), dtype=np.int64
        )
        self._next_landmark_id += len(corners)
        frame.add_keypoints(corners, new_ids)

        logger.debug("Frame %d: detected %d new features", frame.id, len(corners))
        return len(corners)

    def _build_mask(self, shape: tuple[int, int], frame: Frame) -> np.ndarray:
        mask = np.full(shape, 255, dtype=np.uint8)
        radius = max(int(round(self._params.min_distance)), 1)
        for x, y in frame.keypoints[frame.valid_mask]:
            cv2.circle(mask, (int(round(x)), int(round(y))), radius, 0, -1)
        return mask

    def _detect_corners(
        self, image: np.ndarray, mask: np.ndarray, budget: int
    ) -> np.ndarray:
        """Return (M, 2) float32 corners, M <= budget."""
        p = self._params
        if p.detector_type == FeatureDetectorType.ORB:
            keypoints = self._orb.detect(image, mask)
            keypoints = sorted(keypoints, key=lambda kp: kp.response, reverse=True)
            keypoints = keypoints[:budget]
            if not keypoints:
                return np.empty((0, 2), dtype=np.float32)
            return np.array([kp.pt for kp in keypoints], dtype=np.float32)

        corners = cv2.goodFeaturesToTrack(
            image,
            maxCorners=budget,
            qualityLevel=p.quality_level,
            minDistance=p.min_distance,
            mask=mask,
            blockSize=p.block_size,
            useHarrisDetector=p.use_harris_detector,
            k=p.k,
        )
        if corners is None:
            return np.empty((0, 2), dtype=np.float32)
        return corners.reshape(-1, 2).astype(np.float32)

    def _refine_subpixel(self, image: np.ndarray, corners: np.ndarray) -> np.ndarray:
        p = self._params
        criteria = (
            cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_COUNT,
            p.subpixel_max_iterations,
            p.subpixel_epsilon,
        )
        win = (p.subpixel_window_size, p.subpixel_window_size)
        refined = cv2.cornerSubPix(
            image, corners.reshape(-1, 1, 2).copy(), win, (-1, -1), criteria
        )
        return refined.reshape(-1, 2)

    @property
    def params(self) -> FeatureDetectorParams:
        return self._params

    @property
    def num_landmarks_created(self) -> int:
        """Return how many landmark ids the detector has issued."""
        return self._next_landmark_id
