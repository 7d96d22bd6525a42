"""Tests for Frame."""

import numpy as np
import pytest

from monovio.errors import FrontendError
from monovio.frontend.frame import INVALID_LANDMARK_ID, Frame


@pytest.fixture
def frame() -> Frame:
    frame = Frame(id=3, timestamp_ns=1000, image=np.zeros((10, 10), dtype=np.uint8))
    frame.add_keypoints([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]], [7, INVALID_LANDMARK_ID, 9])
    return frame


class TestFrame:
    """Test suite for Frame."""

    def test_empty_frame(self):
        """Test that a new frame has no keypoints."""
        frame = Frame(id=0, timestamp_ns=0)

        assert frame.num_keypoints == 0
        assert frame.num_valid_keypoints == 0
        assert frame.keypoints.shape == (0, 2)
        assert not frame.is_keyframe

    def test_valid_keypoints(self, frame: Frame):
        """Test that -1 landmarks don't count as valid."""
        assert frame.num_keypoints == 3
        assert frame.num_valid_keypoints == 2
        np.testing.assert_array_equal(frame.valid_mask, [True, False, True])

    def test_add_keypoints_default_age(self, frame: Frame):
        """Test that new observations start with age 1."""
        np.testing.assert_array_equal(frame.landmarks_age, [1, 1, 1])

    def test_add_keypoints_mismatched(self, frame: Frame):
        """Test that mismatched observation arrays are rejected."""
        with pytest.raises(ValueError, match="Mismatched observation arrays"):
            frame.add_keypoints([[0.0, 0.0]], [1, 2])

    def test_invalidate_landmarks(self, frame: Frame):
        """Test that invalidated observations keep their keypoint."""
        frame.invalidate_landmarks(np.array([0]))

        assert frame.num_keypoints == 3
        assert frame.num_valid_keypoints == 1
        assert frame.landmarks[0] == INVALID_LANDMARK_ID

    def test_landmark_index(self, frame: Frame):
        """Test that the landmark map skips unassociated keypoints."""
        assert frame.landmark_index() == {7: 0, 9: 2}

    def test_check_frame(self, frame: Frame):
        """Test that inconsistent parallel arrays are fatal."""
        frame.check_frame()

        frame.landmarks = frame.landmarks[:2]
        with pytest.raises(FrontendError):
            frame.check_frame()

    def test_copy_is_independent(self, frame: Frame):
        """Test that copies don't share observation arrays."""
        copy = frame.copy()
        copy.landmarks[0] = 42
        copy.keypoints[0, 0] = -1.0
        copy.is_keyframe = True

        assert frame.landmarks[0] == 7
        assert frame.keypoints[0, 0] == 1.0
        assert not frame.is_keyframe
        assert copy.image is frame.image
