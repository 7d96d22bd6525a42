"""Monocular pinhole camera calibration, undistortion and extrinsics."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np
import yaml

from .pose import SE3


@dataclass
class CameraIntrinsics:
    """Camera intrinsic parameters (pinhole model)."""

    fx: float  # Focal length x (pixels)
    fy: float  # Focal length y (pixels)
    cx: float  # Principal point x (pixels)
    cy: float  # Principal point y (pixels)

    def to_matrix(self) -> np.ndarray:
        """Return 3x3 camera intrinsic matrix K."""
        return np.array(
            [[self.fx, 0.0, self.cx], [0.0, self.fy, self.cy], [0.0, 0.0, 1.0]],
            dtype=np.float64,
        )


@dataclass
class DistortionCoeffs:
    """Radial-tangential distortion coefficients."""

    k1: float = 0.0
    k2: float = 0.0
    p1: float = 0.0
    p2: float = 0.0

    def to_array(self) -> np.ndarray:
        """Return distortion coefficients as (4,) array for OpenCV."""
        return np.array([self.k1, self.k2, self.p1, self.p2], dtype=np.float64)


class MonoCamera:
    """Single camera rigidly attached to the body (IMU) frame.

    Monocular rectification is a pure undistortion: the rectified camera
    shares the orientation of the raw camera, so ``body_pose_cam_rect``
    and ``body_pose_cam`` coincide. Both are exposed because consumers
    downstream are written against the rectified extrinsics.
    """

    def __init__(
        self,
        intrinsics: CameraIntrinsics,
        distortion: DistortionCoeffs | None = None,
        body_pose_cam: SE3 | None = None,
        image_size: tuple[int, int] = (752, 480),
    ) -> None:
        """Initialize camera.

        Args:
            intrinsics: Pinhole intrinsics of the raw camera
            distortion: Radial-tangential coefficients (default: none)
            body_pose_cam: Extrinsics body_T_cam (default: identity)
            image_size: (width, height) in pixels
        """
        self._intrinsics = intrinsics
        self._distortion = distortion or DistortionCoeffs()
        self._body_pose_cam = body_pose_cam or SE3.identity()
        self._image_size = (int(image_size[0]), int(image_size[1]))

        self._K = self._intrinsics.to_matrix()
        self._D = self._distortion.to_array()
        # Rectification rotation of a single camera.
        self._R_rect = np.eye(3)
        self._map_x: np.ndarray | None = None
        self._map_y: np.ndarray | None = None

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> MonoCamera:
        """Create a camera from a EuRoC ``sensor.yaml`` calibration file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If calibration data is invalid
        """
        path = Path(yaml_path)
        if not path.exists():
            raise FileNotFoundError(f"Calibration file not found: {yaml_path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f)

        # Intrinsics [fu, fv, cu, cv]
        intrinsics_list = data.get("intrinsics")
        if intrinsics_list is None or len(intrinsics_list) != 4:
            raise ValueError(f"Invalid intrinsics in {yaml_path}")

        distortion_list = data.get("distortion_coefficients")
        if distortion_list is None or len(distortion_list) != 4:
            raise ValueError(f"Invalid distortion coefficients in {yaml_path}")

        T_BS_data = data.get("T_BS", {}).get("data")
        if T_BS_data is None or len(T_BS_data) != 16:
            raise ValueError(f"Invalid T_BS transform in {yaml_path}")

        resolution = data.get("resolution")
        if resolution is None or len(resolution) != 2:
            raise ValueError(f"Invalid resolution in {yaml_path}")

        return cls(
            intrinsics=CameraIntrinsics(*[float(v) for v in intrinsics_list]),
            distortion=DistortionCoeffs(*[float(v) for v in distortion_list]),
            body_pose_cam=SE3.from_matrix(
                np.array(T_BS_data, dtype=np.float64).reshape(4, 4)
            ),
            image_size=(int(resolution[0]), int(resolution[1])),
        )

    def undistort_points(self, points: np.ndarray) -> np.ndarray:
        """Map pixel coordinates to normalized image coordinates.

        Args:
            points: (N, 2) distorted pixel coordinates

        Returns:
            (N, 2) undistorted coordinates on the z = 1 plane
        """
        points = np.asarray(points, dtype=np.float64).reshape(-1, 1, 2)
        if len(points) == 0:
            return np.empty((0, 2), dtype=np.float64)
        undistorted = cv2.undistortPoints(points, self._K, self._D, R=self._R_rect)
        return undistorted.reshape(-1, 2)

    def bearing_vectors(self, points: np.ndarray) -> np.ndarray:
        """Return (N, 3) unit-norm rays through the given pixels."""
        normalized = self.undistort_points(points)
        rays = np.hstack([normalized, np.ones((len(normalized), 1))])
        return rays / np.linalg.norm(rays, axis=1, keepdims=True)

    def undistort_rectify_image(self, image: np.ndarray) -> np.ndarray:
        """Undistort an image into the rectified pinhole model."""
        if self._map_x is None:
            self._map_x, self._map_y = cv2.initUndistortRectifyMap(
                cameraMatrix=self._K,
                distCoeffs=self._D,
                R=self._R_rect,
                newCameraMatrix=self._K,
                size=self._image_size,
                m1type=cv2.CV_32FC1,
            )
        return cv2.remap(
            image, self._map_x, self._map_y, interpolation=cv2.INTER_LINEAR
        )

    @property
    def K(self) -> np.ndarray:
        """Return the 3x3 intrinsic matrix."""
        return self._K.copy()

    @property
    def intrinsics(self) -> CameraIntrinsics:
        return self._intrinsics

    @property
    def distortion(self) -> DistortionCoeffs:
        return self._distortion

    @property
    def body_pose_cam(self) -> SE3:
        """Return the raw camera extrinsics body_T_cam."""
        return SE3(self._body_pose_cam.rotation, self._body_pose_cam.translation)

    @property
    def body_pose_cam_rect(self) -> SE3:
        """Return the rectified camera extrinsics body_T_camrect."""
        return SE3(
            self._body_pose_cam.rotation @ self._R_rect.T,
            self._body_pose_cam.translation,
        )

    @property
    def image_size(self) -> tuple[int, int]:
        """Return image size as (width, height)."""
        return self._image_size

    @property
    def focal_length(self) -> float:
        return float(self._intrinsics.fx)
