"""CSV logging of front-end statistics and relative poses."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import TYPE_CHECKING, Any, TextIO

if TYPE_CHECKING:
    from .frontend.messages import DebugTrackerInfo, TrackerStatusSummary
    from .frontend.pose import SE3

STATS_FILENAME = "output_frontend_stats.csv"
RANSAC_FILENAME = "output_frontend_ransac.csv"

STATS_HEADER = [
    "timestamp_lkf",
    "mono_status",
    "stereo_status",
    "nr_keypoints",
    "nr_detected_features",
    "nr_tracked_features",
    "nr_mono_inliers",
    "nr_mono_putatives",
    "mono_ransac_iters",
    "feature_detection_time",
    "feature_tracking_time",
    "mono_ransac_time",
]

RANSAC_HEADER = [
    "timestamp_lkf",
    "mono_x",
    "mono_y",
    "mono_z",
    "mono_qw",
    "mono_qx",
    "mono_qy",
    "mono_qz",
    "stereo_x",
    "stereo_y",
    "stereo_z",
    "stereo_qw",
    "stereo_qx",
    "stereo_qy",
    "stereo_qz",
]


def _pose_row(pose: SE3) -> list[float]:
    return [*pose.translation.tolist(), *pose.to_quaternion().tolist()]


class FrontendLogger:
    """Appends one CSV row per keyframe to the front-end output files.

    Files are created lazily with a header on the first write.

    Example usage:
        with FrontendLogger("output/") as frontend_logger:
            frontend = MonoVisionFrontend(..., logger=frontend_logger)
    """

    def __init__(self, output_dir: str | Path) -> None:
        """Initialize logger.

        Args:
            output_dir: Directory receiving the CSV files (created if missing)
        """
        self._output_dir = Path(output_dir)
        self._output_dir.mkdir(parents=True, exist_ok=True)
        self._files: dict[str, TextIO] = {}
        self._writers: dict[str, Any] = {}

    def _writer(self, filename: str, header: list[str]):
        if filename not in self._writers:
            f = open(self._output_dir / filename, "w", newline="")
            writer = csv.writer(f)
            writer.writerow(header)
            self._files[filename] = f
            self._writers[filename] = writer
        return self._writers[filename]

    def log_frontend_stats(
        self,
        timestamp_lkf: int,
        tracker_info: DebugTrackerInfo,
        status_summary: TrackerStatusSummary,
        nr_keypoints: int,
    ) -> None:
        """Write tracker diagnostics of a keyframe."""
        self._writer(STATS_FILENAME, STATS_HEADER).writerow(
            [
                timestamp_lkf,
                status_summary.kf_tracking_status_mono.value,
                status_summary.kf_tracking_status_stereo.value,
                nr_keypoints,
                tracker_info.nr_detected_features,
                tracker_info.nr_tracked_features,
                tracker_info.nr_mono_inliers,
                tracker_info.nr_mono_putatives,
                tracker_info.mono_ransac_iterations,
                f"{tracker_info.feature_detection_time:.4f}",
                f"{tracker_info.feature_tracking_time:.4f}",
                f"{tracker_info.mono_ransac_time:.4f}",
            ]
        )

    def log_frontend_ransac(
        self, timestamp_lkf: int, pose_mono: SE3, pose_stereo: SE3
    ) -> None:
        """Write the body-frame relative poses of a keyframe."""
        self._writer(RANSAC_FILENAME, RANSAC_HEADER).writerow(
            [timestamp_lkf, *_pose_row(pose_mono), *_pose_row(pose_stereo)]
        )

    def flush(self) -> None:
        for f in self._files.values():
            f.flush()

    def close(self) -> None:
        """Close all open files."""
        for f in self._files.values():
            f.close()
        self._files.clear()
        self._writers.clear()

    def __enter__(self) -> FrontendLogger:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def output_dir(self) -> Path:
        return self._output_dir
