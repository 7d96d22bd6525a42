"""Monocular camera frame with tracked keypoints."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from ..errors import FrontendError

# Landmark id of a keypoint not (yet) associated to a persistent landmark.
INVALID_LANDMARK_ID = -1


def _empty_keypoints() -> np.ndarray:
    return np.empty((0, 2), dtype=np.float32)


def _empty_landmarks() -> np.ndarray:
    return np.empty(0, dtype=np.int64)


def _empty_ages() -> np.ndarray:
    return np.empty(0, dtype=np.int32)


@dataclass
class Frame:
    """One camera capture and the features observed in it.

    ``keypoints``, ``landmarks`` and ``landmarks_age`` are parallel arrays:
    entry i of each describes the same observation. A landmark id of -1
    marks a keypoint that is not associated to a persistent landmark.

    Attributes:
        id: Monotonically increasing frame identifier
        timestamp_ns: Capture timestamp in nanoseconds
        image: Grayscale uint8 image, or None if only keypoints are used
        keypoints: (N, 2) pixel coordinates
        landmarks: (N,) landmark ids
        landmarks_age: (N,) number of frames each landmark has been tracked
        is_keyframe: True once the front end selected this frame as keyframe
    """

    id: int
    timestamp_ns: int
    image: np.ndarray | None = None
    keypoints: np.ndarray = field(default_factory=_empty_keypoints)
    landmarks: np.ndarray = field(default_factory=_empty_landmarks)
    landmarks_age: np.ndarray = field(default_factory=_empty_ages)
    is_keyframe: bool = False

    def __post_init__(self) -> None:
        """Normalize array dtypes and shapes."""
        self.keypoints = np.asarray(self.keypoints, dtype=np.float32).reshape(-1, 2)
        self.landmarks = np.asarray(self.landmarks, dtype=np.int64).flatten()
        self.landmarks_age = np.asarray(self.landmarks_age, dtype=np.int32).flatten()

    @property
    def num_keypoints(self) -> int:
        return len(self.keypoints)

    @property
    def num_valid_keypoints(self) -> int:
        """Number of keypoints associated to a landmark."""
        return int(np.count_nonzero(self.landmarks != INVALID_LANDMARK_ID))

    @property
    def valid_mask(self) -> np.ndarray:
        return self.landmarks != INVALID_LANDMARK_ID

    def add_keypoints(
        self,
        keypoints: np.ndarray,
        landmarks: np.ndarray,
        ages: np.ndarray | None = None,
    ) -> None:
        """Append observations to the parallel arrays.

        Args:
            keypoints: (M, 2) pixel coordinates
            landmarks: (M,) landmark ids
            ages: (M,) track ages, defaults to 1
        """
        keypoints = np.asarray(keypoints, dtype=np.float32).reshape(-1, 2)
        landmarks = np.asarray(landmarks, dtype=np.int64).flatten()
        if ages is None:
            ages = np.ones(len(landmarks), dtype=np.int32)
        ages = np.asarray(ages, dtype=np.int32).flatten()

        if not (len(keypoints) == len(landmarks) == len(ages)):
            raise ValueError(
                f"Mismatched observation arrays: {len(keypoints)} keypoints, "
                f"{len(landmarks)} landmarks, {len(ages)} ages"
            )

        self.keypoints = np.vstack([self.keypoints, keypoints])
        self.landmarks = np.concatenate([self.landmarks, landmarks])
        self.landmarks_age = np.concatenate([self.landmarks_age, ages])

    def invalidate_landmarks(self, indices: np.ndarray) -> None:
        """Detach the observations at ``indices`` from their landmarks."""
        self.landmarks[np.asarray(indices, dtype=np.intp)] = INVALID_LANDMARK_ID

    def landmark_index(self) -> dict[int, int]:
        """Return a map from valid landmark id to keypoint index."""
        return {
            int(lmk): i
            for i, lmk in enumerate(self.landmarks)
            if lmk != INVALID_LANDMARK_ID
        }

    def check_frame(self) -> None:
        """Raise FrontendError if the parallel arrays are inconsistent."""
        n = len(self.keypoints)
        if len(self.landmarks) != n or len(self.landmarks_age) != n:
            raise FrontendError(
                f"Frame {self.id}: {n} keypoints but {len(self.landmarks)} "
                f"landmarks and {len(self.landmarks_age)} ages"
            )

    def copy(self) -> Frame:
        """Return an independent copy.

        Observation arrays are copied; the image buffer is shared since the
        front end never writes to it.
        """
        return Frame(
            id=self.id,
            timestamp_ns=self.timestamp_ns,
            image=self.image,
            keypoints=self.keypoints.copy(),
            landmarks=self.landmarks.copy(),
            landmarks_age=self.landmarks_age.copy(),
            is_keyframe=self.is_keyframe,
        )

    def __repr__(self) -> str:
        return (
            f"Frame(id={self.id}, t={self.timestamp_ns}, "
            f"kps={self.num_keypoints}, valid={self.num_valid_keypoints}, "
            f"kf={self.is_keyframe})"
        )
