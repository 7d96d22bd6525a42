"""SE(3) poses and SO(3) helpers used by the tracking front end."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy.spatial.transform import Rotation

# Tolerance used to decide whether a rotation prior carries information.
IDENTITY_ROTATION_TOL = 1e-9


def is_identity_rotation(R: np.ndarray, tol: float = IDENTITY_ROTATION_TOL) -> bool:
    """Return True if R equals the identity rotation up to ``tol``.

    Args:
        R: 3x3 rotation matrix
        tol: Maximum absolute elementwise deviation from the identity

    Returns:
        True if every entry of R - I is within tol
    """
    return bool(np.allclose(np.asarray(R, dtype=np.float64), np.eye(3), rtol=0.0, atol=tol))


def rotation_angle_deg(R: np.ndarray) -> float:
    """Return the rotation angle of R in degrees."""
    return float(np.rad2deg(Rotation.from_matrix(R).magnitude()))


@dataclass
class SE3:
    """Rigid body transformation a_T_b.

    Maps points expressed in frame b into frame a:

        p_a = R @ p_b + t

    Attributes:
        rotation: 3x3 orthonormal rotation matrix (det = +1)
        translation: 3D translation vector
    """

    rotation: np.ndarray  # 3x3 rotation matrix
    translation: np.ndarray  # (3,) translation vector

    def __post_init__(self) -> None:
        """Validate inputs and take ownership of copies of them."""
        self.rotation = np.array(self.rotation, dtype=np.float64)
        self.translation = np.array(self.translation, dtype=np.float64).flatten()

        if self.rotation.shape != (3, 3):
            raise ValueError(f"Rotation must be 3x3, got {self.rotation.shape}")
        if self.translation.shape != (3,):
            raise ValueError(
                f"Translation must be (3,), got {self.translation.shape}"
            )

    @classmethod
    def identity(cls) -> SE3:
        """Create the identity transformation."""
        return cls(rotation=np.eye(3), translation=np.zeros(3))

    @classmethod
    def from_matrix(cls, T: np.ndarray) -> SE3:
        """Create SE3 from a 4x4 homogeneous transformation matrix.

        Args:
            T: 4x4 matrix [[R, t], [0, 1]]

        Returns:
            SE3 transformation
        """
        T = np.asarray(T, dtype=np.float64)
        if T.shape != (4, 4):
            raise ValueError(f"Transform must be 4x4, got {T.shape}")
        return cls(rotation=T[:3, :3], translation=T[:3, 3])

    @classmethod
    def from_quaternion(
        cls,
        qw: float,
        qx: float,
        qy: float,
        qz: float,
        translation: np.ndarray,
    ) -> SE3:
        """Create SE3 from a Hamilton quaternion (w, x, y, z) and translation."""
        R = Rotation.from_quat([qx, qy, qz, qw]).as_matrix()
        return cls(rotation=R, translation=np.asarray(translation).flatten())

    def to_matrix(self) -> np.ndarray:
        """Convert to a 4x4 homogeneous transformation matrix."""
        T = np.eye(4, dtype=np.float64)
        T[:3, :3] = self.rotation
        T[:3, 3] = self.translation
        return T

    def to_quaternion(self) -> np.ndarray:
        """Return the rotation as a Hamilton quaternion [w, x, y, z]."""
        qx, qy, qz, qw = Rotation.from_matrix(self.rotation).as_quat()
        return np.array([qw, qx, qy, qz], dtype=np.float64)

    def inverse(self) -> SE3:
        """Compute the inverse transformation.

        For T = [R, t], the inverse is [R^T, -R^T @ t].
        """
        R_inv = self.rotation.T
        t_inv = -R_inv @ self.translation
        return SE3(rotation=R_inv, translation=t_inv)

    def compose(self, other: SE3) -> SE3:
        """Compose with another transformation: self @ other.

        Example:
            body_T_cam.compose(cam_T_point) gives body_T_point
        """
        R = self.rotation @ other.rotation
        t = self.rotation @ other.translation + self.translation
        return SE3(rotation=R, translation=t)

    def transform_points(self, points: np.ndarray) -> np.ndarray:
        """Transform an Nx3 array of points from frame b into frame a."""
        points = np.asarray(points, dtype=np.float64)
        if points.ndim == 1:
            points = points.reshape(1, 3)

        if points.shape[1] != 3:
            raise ValueError(f"Points must be Nx3, got {points.shape}")

        return (self.rotation @ points.T).T + self.translation

    def transform_point(self, point: np.ndarray) -> np.ndarray:
        """Transform a single point from frame b into frame a."""
        point = np.asarray(point, dtype=np.float64).flatten()
        return self.rotation @ point + self.translation

    def equals(self, other: SE3, tol: float = 1e-9) -> bool:
        """Return True if both rotation and translation match within tol."""
        return bool(
            np.allclose(self.rotation, other.rotation, rtol=0.0, atol=tol)
            and np.allclose(self.translation, other.translation, rtol=0.0, atol=tol)
        )

    @property
    def position(self) -> np.ndarray:
        """Return the translation component."""
        return self.translation.copy()

    def __repr__(self) -> str:
        """Return string representation."""
        pos = self.translation
        return (
            f"SE3(t=[{pos[0]:.3f}, {pos[1]:.3f}, {pos[2]:.3f}], "
            f"angle={rotation_angle_deg(self.rotation):.3f}deg)"
        )

    def __matmul__(self, other: SE3) -> SE3:
        """Allow T_result = T1 @ T2."""
        return self.compose(other)
