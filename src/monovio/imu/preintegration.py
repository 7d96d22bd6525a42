"""IMU preintegration between keyframes.

Accumulates bias-corrected gyroscope and accelerometer samples into a
relative rotation, velocity and position expressed in the body frame of the
first sample. The accumulation runs across calls until it is reset, which the
front end does each time a keyframe is established, so the rotation
returned always spans "last keyframe -> current frame".
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path

import numpy as np
import yaml


def skew(v: np.ndarray) -> np.ndarray:
    """Create skew-symmetric matrix [v]x from a 3D vector."""
    return np.array([
        [0, -v[2], v[1]],
        [v[2], 0, -v[0]],
        [-v[1], v[0], 0]
    ], dtype=np.float64)


def exp_so3(omega: np.ndarray) -> np.ndarray:
    """Exponential map from so(3) to SO(3) (Rodrigues formula).

    Args:
        omega: Rotation vector (3,), axis * angle

    Returns:
        3x3 rotation matrix
    """
    theta = np.linalg.norm(omega)
    if theta < 1e-10:
        # R ≈ I + [omega]x
        return np.eye(3) + skew(omega)

    K = skew(omega / theta)
    return np.eye(3) + np.sin(theta) * K + (1 - np.cos(theta)) * (K @ K)


@dataclass
class ImuBias:
    """Gyroscope and accelerometer biases."""

    gyro: np.ndarray = field(default_factory=lambda: np.zeros(3))  # rad/s
    accel: np.ndarray = field(default_factory=lambda: np.zeros(3))  # m/s²

    def __post_init__(self) -> None:
        self.gyro = np.asarray(self.gyro, dtype=np.float64).flatten()
        self.accel = np.asarray(self.accel, dtype=np.float64).flatten()
        if self.gyro.shape != (3,) or self.accel.shape != (3,):
            raise ValueError("IMU biases must be 3-vectors")

    def copy(self) -> ImuBias:
        return ImuBias(gyro=self.gyro.copy(), accel=self.accel.copy())


@dataclass
class ImuParams:
    """IMU noise model and integration settings.

    Attributes:
        gyro_noise_density: Gyroscope white noise (rad/s/√Hz)
        gyro_random_walk: Gyroscope bias random walk (rad/s²/√Hz)
        accel_noise_density: Accelerometer white noise (m/s²/√Hz)
        accel_random_walk: Accelerometer bias random walk (m/s³/√Hz)
        rate_hz: Nominal sampling rate
        max_dt_s: Gaps longer than this are treated as discontinuities
    """

    gyro_noise_density: float = 1.6968e-04
    gyro_random_walk: float = 1.9393e-05
    accel_noise_density: float = 2.0000e-3
    accel_random_walk: float = 3.0000e-3
    rate_hz: float = 200.0
    max_dt_s: float = 0.1

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> ImuParams:
        """Load noise parameters from a EuRoC ``imu0/sensor.yaml``.

        Missing entries keep their defaults.

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        path = Path(yaml_path)
        if not path.exists():
            raise FileNotFoundError(f"IMU calibration not found: {yaml_path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        defaults = cls()
        return cls(
            gyro_noise_density=float(
                data.get("gyroscope_noise_density", defaults.gyro_noise_density)
            ),
            gyro_random_walk=float(
                data.get("gyroscope_random_walk", defaults.gyro_random_walk)
            ),
            accel_noise_density=float(
                data.get("accelerometer_noise_density", defaults.accel_noise_density)
            ),
            accel_random_walk=float(
                data.get("accelerometer_random_walk", defaults.accel_random_walk)
            ),
            rate_hz=float(data.get("rate_hz", defaults.rate_hz)),
        )


@dataclass
class PreintegratedImuMeasurement:
    """Relative motion accumulated since the last reset, in body frame.

    Attributes:
        delta_R: Rotation bi_R_bj from the reset instant to the last sample
        delta_v: Velocity increment (gravity not removed)
        delta_p: Position increment (gravity not removed)
        delta_t: Integrated time in seconds
        num_measurements: Number of integrated samples
        bias: Bias used during integration
    """

    delta_R: np.ndarray = field(default_factory=lambda: np.eye(3))
    delta_v: np.ndarray = field(default_factory=lambda: np.zeros(3))
    delta_p: np.ndarray = field(default_factory=lambda: np.zeros(3))
    delta_t: float = 0.0
    num_measurements: int = 0
    bias: ImuBias = field(default_factory=ImuBias)

    def copy(self) -> PreintegratedImuMeasurement:
        return replace(
            self,
            delta_R=self.delta_R.copy(),
            delta_v=self.delta_v.copy(),
            delta_p=self.delta_p.copy(),
            bias=self.bias.copy(),
        )


class ImuFrontend:
    """Preintegrates IMU samples between keyframes.

    Samples are integrated with a zero-order hold: sample i acts over the
    interval [t_i, t_{i+1}].
    """

    def __init__(self, imu_params: ImuParams, imu_bias: ImuBias | None = None) -> None:
        """Initialize the preintegrator.

        Args:
            imu_params: IMU noise and integration settings
            imu_bias: Initial bias estimate (default: zeros)
        """
        self._params = imu_params
        self._latest_bias = imu_bias.copy() if imu_bias is not None else ImuBias()
        self._pim = PreintegratedImuMeasurement(bias=self._latest_bias.copy())

    def preintegrate_imu_measurements(
        self, imu_stamps: np.ndarray, imu_accgyrs: np.ndarray
    ) -> PreintegratedImuMeasurement:
        """Integrate a batch of samples into the running preintegration.

        Args:
            imu_stamps: (N,) timestamps in nanoseconds, N >= 2
            imu_accgyrs: (N, 6) rows of [ax, ay, az, wx, wy, wz]

        Returns:
            Snapshot of the preintegration since the last reset

        Raises:
            ValueError: If the arrays are malformed or hold fewer than 2 samples
        """
        imu_stamps = np.asarray(imu_stamps, dtype=np.int64).flatten()
        imu_accgyrs = np.asarray(imu_accgyrs, dtype=np.float64)

        if imu_accgyrs.ndim != 2 or imu_accgyrs.shape[1] != 6:
            raise ValueError(f"IMU samples must be Nx6, got {imu_accgyrs.shape}")
        if len(imu_stamps) != len(imu_accgyrs):
            raise ValueError(
                f"IMU stamps ({len(imu_stamps)}) and samples "
                f"({len(imu_accgyrs)}) differ in length"
            )
        if len(imu_stamps) < 2:
            raise ValueError("At least 2 IMU samples are needed to preintegrate")

        pim = self._pim
        bias = pim.bias
        for i in range(len(imu_stamps) - 1):
            dt = (imu_stamps[i + 1] - imu_stamps[i]) * 1e-9
            # Non-increasing stamps or data gaps
            if dt <= 0 or dt > self._params.max_dt_s:
                continue

            accel = imu_accgyrs[i, :3] - bias.accel
            omega = imu_accgyrs[i, 3:] - bias.gyro

            accel_rot = pim.delta_R @ accel
            pim.delta_p = pim.delta_p + pim.delta_v * dt + 0.5 * accel_rot * dt**2
            pim.delta_v = pim.delta_v + accel_rot * dt
            pim.delta_R = pim.delta_R @ exp_so3(omega * dt)
            pim.delta_t += dt
            pim.num_measurements += 1

        return pim.copy()

    def update_bias(self, imu_bias: ImuBias) -> None:
        """Cache the latest bias estimate for the next reset."""
        self._latest_bias = imu_bias.copy()

    def reset_integration_with_cached_bias(self) -> None:
        """Restart the preintegration at identity with the cached bias."""
        self._pim = PreintegratedImuMeasurement(bias=self._latest_bias.copy())

    @property
    def current_pim(self) -> PreintegratedImuMeasurement:
        return self._pim.copy()

    @property
    def latest_bias(self) -> ImuBias:
        return self._latest_bias.copy()

    @property
    def params(self) -> ImuParams:
        return self._params
