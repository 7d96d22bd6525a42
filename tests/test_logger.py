"""Tests for the CSV front-end logger and timing helpers."""

import csv
from pathlib import Path

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from monovio.frontend.messages import DebugTrackerInfo, TrackerStatusSummary, TrackingStatus
from monovio.frontend.pose import SE3
from monovio.logger import (
    RANSAC_FILENAME,
    RANSAC_HEADER,
    STATS_FILENAME,
    STATS_HEADER,
    FrontendLogger,
)
from monovio.utils.timing import StatsCollector, Timer


def read_rows(path: Path) -> list[list[str]]:
    with open(path, newline="") as f:
        return list(csv.reader(f))


class TestFrontendLogger:
    """Test suite for FrontendLogger."""

    def test_creates_output_dir(self, tmp_path: Path):
        """Test that the output directory is created."""
        output_dir = tmp_path / "nested" / "output"
        FrontendLogger(output_dir).close()
        assert output_dir.is_dir()

    def test_files_created_lazily(self, tmp_path: Path):
        """Test that no file is written before the first record."""
        with FrontendLogger(tmp_path):
            pass
        assert not (tmp_path / STATS_FILENAME).exists()
        assert not (tmp_path / RANSAC_FILENAME).exists()

    def test_log_frontend_stats(self, tmp_path: Path):
        """Test that stats rows follow a single header."""
        info = DebugTrackerInfo(
            nr_detected_features=12,
            nr_tracked_features=80,
            nr_mono_putatives=75,
            nr_mono_inliers=70,
            mono_ransac_iterations=9,
        )
        summary = TrackerStatusSummary(kf_tracking_status_mono=TrackingStatus.VALID)

        with FrontendLogger(tmp_path) as frontend_logger:
            frontend_logger.log_frontend_stats(100, info, summary, 92)
            frontend_logger.log_frontend_stats(200, info, summary, 90)

        rows = read_rows(tmp_path / STATS_FILENAME)
        assert rows[0] == STATS_HEADER
        assert len(rows) == 3
        record = dict(zip(STATS_HEADER, rows[1]))
        assert record["timestamp_lkf"] == "100"
        assert record["mono_status"] == "VALID"
        assert record["stereo_status"] == "INVALID"
        assert record["nr_keypoints"] == "92"
        assert record["nr_mono_inliers"] == "70"
        assert record["mono_ransac_iters"] == "9"

    def test_log_frontend_ransac(self, tmp_path: Path):
        """Test that poses are written as translation plus wxyz quaternion."""
        R = Rotation.from_euler("z", 90, degrees=True).as_matrix()
        pose = SE3(R, np.array([1.0, 2.0, 3.0]))

        with FrontendLogger(tmp_path) as frontend_logger:
            frontend_logger.log_frontend_ransac(5, pose, SE3.identity())

        rows = read_rows(tmp_path / RANSAC_FILENAME)
        assert rows[0] == RANSAC_HEADER
        values = [float(v) for v in rows[1]]
        assert values[0] == 5
        np.testing.assert_allclose(values[1:4], [1.0, 2.0, 3.0])
        np.testing.assert_allclose(values[4:8], [np.sqrt(0.5), 0, 0, np.sqrt(0.5)], atol=1e-9)
        np.testing.assert_allclose(values[8:15], [0, 0, 0, 1, 0, 0, 0], atol=1e-12)


class TestTiming:
    """Test suite for Timer and StatsCollector."""

    def test_timer_non_negative(self):
        """Test that elapsed time is non-negative milliseconds."""
        start = Timer.tic()
        assert Timer.toc(start) >= 0.0

    def test_stats_collector(self):
        """Test the summary statistics."""
        stats = StatsCollector("rate")
        assert stats.count == 0
        assert stats.mean == 0.0
        assert stats.last is None

        for value in (1.0, 3.0, 2.0):
            stats.add_sample(value)

        assert stats.count == 3
        assert stats.mean == pytest.approx(2.0)
        assert stats.max == 3.0
        assert stats.last == 2.0
        assert "rate" in str(stats)

        stats.reset()
        assert stats.count == 0

    def test_stats_collector_constant_memory(self):
        """Test that recording keeps aggregates rather than every sample."""
        stats = StatsCollector("rate")
        fields_before = dict(vars(stats))

        for i in range(10_000):
            stats.add_sample(i % 7)

        assert set(vars(stats)) == set(fields_before)
        assert not any(isinstance(v, (list, tuple, dict)) for v in vars(stats).values())
        assert stats.count == 10_000
        assert stats.max == 6.0
        assert stats.last == float(9_999 % 7)
