"""EuRoC IMU data reader.

Loads IMU samples from imu0/data.csv into arrays ready for preintegration.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np

from ..imu.preintegration import ImuParams


class IMUReader:
    """Reader for EuRoC IMU data.

    The CSV stores each sample as ``timestamp, wx, wy, wz, ax, ay, az``;
    samples are returned as rows of ``[ax, ay, az, wx, wy, wz]``.

    Example usage:
        reader = IMUReader("data/euroc/MH_01_easy/mav0")
        stamps, accgyrs = reader.get_imu_data_between(t_prev, t_cur)
    """

    def __init__(self, dataset_path: str | Path) -> None:
        """Initialize IMU reader.

        Args:
            dataset_path: Path to EuRoC mav0 directory

        Raises:
            FileNotFoundError: If imu0/data.csv doesn't exist
        """
        self._dataset_path = Path(dataset_path)
        self._imu_data_path = self._dataset_path / "imu0" / "data.csv"
        self._imu_sensor_path = self._dataset_path / "imu0" / "sensor.yaml"

        if not self._imu_data_path.exists():
            raise FileNotFoundError(
                f"IMU data not found: {self._imu_data_path}\n"
                f"Expected EuRoC format with imu0/data.csv"
            )

        self._timestamps, self._accgyrs = self._load_measurements()

    def _load_measurements(self) -> tuple[np.ndarray, np.ndarray]:
        """Load all IMU samples from the CSV file, sorted by timestamp."""
        timestamps = []
        rows = []
        with open(self._imu_data_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue

                parts = line.split(",")
                if len(parts) < 7:
                    continue

                try:
                    timestamp_ns = int(parts[0])
                    wx, wy, wz = float(parts[1]), float(parts[2]), float(parts[3])
                    ax, ay, az = float(parts[4]), float(parts[5]), float(parts[6])
                except ValueError:
                    continue

                timestamps.append(timestamp_ns)
                rows.append([ax, ay, az, wx, wy, wz])

        stamps = np.array(timestamps, dtype=np.int64)
        accgyrs = np.array(rows, dtype=np.float64).reshape(-1, 6)
        order = np.argsort(stamps, kind="stable")
        return stamps[order], accgyrs[order]

    def get_imu_data_between(
        self, start_ns: int, end_ns: int
    ) -> tuple[np.ndarray, np.ndarray]:
        """Get the IMU samples with start_ns <= t <= end_ns.

        Both ends are inclusive so consecutive intervals share their
        boundary sample and the integration has no gaps.

        Returns:
            Tuple of (stamps (N,), accgyrs (N, 6))
        """
        start_idx = int(np.searchsorted(self._timestamps, start_ns, side="left"))
        end_idx = int(np.searchsorted(self._timestamps, end_ns, side="right"))
        return (
            self._timestamps[start_idx:end_idx].copy(),
            self._accgyrs[start_idx:end_idx].copy(),
        )

    def load_params(self) -> ImuParams:
        """Return the noise parameters of imu0/sensor.yaml, or defaults."""
        if not self._imu_sensor_path.exists():
            return ImuParams()
        return ImuParams.from_yaml(self._imu_sensor_path)

    @property
    def start_timestamp(self) -> int | None:
        """First IMU timestamp in nanoseconds."""
        return int(self._timestamps[0]) if len(self._timestamps) else None

    @property
    def end_timestamp(self) -> int | None:
        """Last IMU timestamp in nanoseconds."""
        return int(self._timestamps[-1]) if len(self._timestamps) else None

    def __len__(self) -> int:
        """Number of IMU samples."""
        return len(self._timestamps)
