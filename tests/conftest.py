"""Shared fixtures for the front-end tests."""

from pathlib import Path

import cv2
import numpy as np
import pytest

from monovio.frontend.camera import CameraIntrinsics, MonoCamera

IMAGE_WIDTH = 640
IMAGE_HEIGHT = 480


def make_textured_image(seed: int = 0) -> np.ndarray:
    """Create a smooth random texture with plenty of trackable corners."""
    rng = np.random.default_rng(seed)
    coarse = rng.integers(0, 256, size=(IMAGE_HEIGHT // 8, IMAGE_WIDTH // 8)).astype(
        np.uint8
    )
    image = cv2.resize(coarse, (IMAGE_WIDTH, IMAGE_HEIGHT), interpolation=cv2.INTER_LINEAR)
    return cv2.GaussianBlur(image, (5, 5), 1.0)


@pytest.fixture
def camera() -> MonoCamera:
    """Undistorted pinhole camera with identity extrinsics."""
    return MonoCamera(
        CameraIntrinsics(fx=400.0, fy=400.0, cx=320.0, cy=240.0),
        image_size=(IMAGE_WIDTH, IMAGE_HEIGHT),
    )


@pytest.fixture
def textured_image() -> np.ndarray:
    return make_textured_image()


@pytest.fixture
def mock_euroc(tmp_path: Path) -> Path:
    """Create a mock EuRoC sequence with cam0 images and imu0 samples.

    Images are 20 Hz starting at t0 = 1e18 ns, IMU samples 200 Hz starting
    10 ms before the first image. The CSV uses the EuRoC column order
    (gyroscope before accelerometer).

    Returns:
        Path to mock mav0 directory
    """
    mav0 = tmp_path / "mav0"
    cam0_data = mav0 / "cam0" / "data"
    imu0 = mav0 / "imu0"
    cam0_data.mkdir(parents=True)
    imu0.mkdir(parents=True)

    t0 = 1_000_000_000_000_000_000
    image_stamps = [t0 + i * 50_000_000 for i in range(4)]
    csv_content = "#timestamp [ns],filename\n"
    for i, timestamp in enumerate(image_stamps):
        cv2.imwrite(str(cam0_data / f"{timestamp}.png"), make_textured_image(i))
        csv_content += f"{timestamp},{timestamp}.png\n"
    (mav0 / "cam0" / "data.csv").write_text(csv_content)

    imu_content = (
        "#timestamp [ns],w_RS_S_x [rad s^-1],w_RS_S_y [rad s^-1],"
        "w_RS_S_z [rad s^-1],a_RS_S_x [m s^-2],a_RS_S_y [m s^-2],a_RS_S_z [m s^-2]\n"
    )
    for i in range(34):
        timestamp = t0 - 10_000_000 + i * 5_000_000
        imu_content += f"{timestamp},0.1,0.2,0.3,1.0,2.0,9.81\n"
    (imu0 / "data.csv").write_text(imu_content)

    return mav0
