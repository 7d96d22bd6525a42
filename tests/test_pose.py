"""Tests for SE3 and rotation helpers."""

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from monovio.frontend.pose import SE3, is_identity_rotation, rotation_angle_deg


@pytest.fixture
def pose() -> SE3:
    R = Rotation.from_euler("xyz", [10, -20, 30], degrees=True).as_matrix()
    return SE3(R, np.array([1.0, 2.0, 3.0]))


class TestSE3:
    """Test suite for SE3."""

    def test_identity(self):
        """Test that the identity leaves points unchanged."""
        points = np.array([[1.0, 2.0, 3.0], [-1.0, 0.5, 4.0]])
        np.testing.assert_allclose(SE3.identity().transform_points(points), points)

    def test_owns_its_arrays(self):
        """Test that the pose does not alias the arrays it was built from."""
        R = np.eye(3)
        t = np.zeros(3)
        pose = SE3(R, t)
        copy = SE3(pose.rotation, pose.translation)

        R[:] = 5.0
        copy.rotation[:] = 7.0

        np.testing.assert_array_equal(pose.rotation, np.eye(3))

    def test_invalid_shapes(self):
        """Test that malformed inputs are rejected."""
        with pytest.raises(ValueError, match="Rotation must be 3x3"):
            SE3(np.eye(2), np.zeros(3))
        with pytest.raises(ValueError, match="Translation must be"):
            SE3(np.eye(3), np.zeros(2))
        with pytest.raises(ValueError, match="Transform must be 4x4"):
            SE3.from_matrix(np.eye(3))

    def test_inverse_composes_to_identity(self, pose: SE3):
        """Test that T @ T^-1 is the identity."""
        assert (pose @ pose.inverse()).equals(SE3.identity())
        assert (pose.inverse() @ pose).equals(SE3.identity())

    def test_compose_matches_matrix_product(self, pose: SE3):
        """Test that composition agrees with 4x4 matrix multiplication."""
        other = SE3(Rotation.from_euler("z", 45, degrees=True).as_matrix(), [0.0, 1.0, 0.0])

        composed = pose.compose(other).to_matrix()

        np.testing.assert_allclose(composed, pose.to_matrix() @ other.to_matrix())

    def test_transform_point(self, pose: SE3):
        """Test that a single point is mapped by R p + t."""
        p = np.array([0.5, -1.0, 2.0])
        np.testing.assert_allclose(
            pose.transform_point(p), pose.rotation @ p + pose.translation
        )

    def test_quaternion_is_wxyz(self):
        """Test that quaternions are exported scalar-first."""
        R = Rotation.from_euler("z", 90, degrees=True).as_matrix()

        q = SE3(R, np.zeros(3)).to_quaternion()

        np.testing.assert_allclose(q, [np.sqrt(0.5), 0.0, 0.0, np.sqrt(0.5)], atol=1e-12)

    def test_from_quaternion(self, pose: SE3):
        """Test that from_quaternion inverts to_quaternion."""
        qw, qx, qy, qz = pose.to_quaternion()

        restored = SE3.from_quaternion(qw, qx, qy, qz, pose.translation)

        assert restored.equals(pose, tol=1e-12)

    def test_position_is_copy(self, pose: SE3):
        """Test that position doesn't alias the translation."""
        position = pose.position
        position[0] = 100.0
        assert pose.translation[0] == 1.0


class TestRotationHelpers:
    """Test suite for the rotation helpers."""

    def test_identity_rotation(self):
        """Test that only rotations within tolerance count as identity."""
        assert is_identity_rotation(np.eye(3))
        small = Rotation.from_rotvec([0.0, 0.0, 1e-6]).as_matrix()
        assert not is_identity_rotation(small)
        assert is_identity_rotation(small, tol=1e-3)

    def test_rotation_angle(self):
        """Test that the rotation angle is reported in degrees."""
        R = Rotation.from_rotvec([0.0, np.deg2rad(30.0), 0.0]).as_matrix()
        assert rotation_angle_deg(R) == pytest.approx(30.0)
        assert rotation_angle_deg(np.eye(3)) == pytest.approx(0.0)
