"""Builds front-end input payloads from a EuRoC sequence."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

from ..frontend.frame import Frame
from ..frontend.messages import MonoFrontendInputPayload
from .dataset_reader import DatasetReader
from .imu_reader import IMUReader

logger = logging.getLogger(__name__)


class EurocPayloadSource:
    """Pairs each cam0 image with the IMU samples since the previous image.

    Images outside the IMU time range, and images whose interval holds fewer
    than two IMU samples, are skipped. The first yielded payload carries the
    samples up to its own timestamp only.

    Example usage:
        source = EurocPayloadSource("data/euroc/MH_01_easy/mav0")
        for payload in source:
            output = frontend.spin(payload)
    """

    def __init__(
        self,
        dataset_path: str | Path,
        max_frames: int | None = None,
        start_frame: int = 0,
    ) -> None:
        """Initialize the source.

        Args:
            dataset_path: Path to EuRoC mav0 directory
            max_frames: Stop after this many payloads (default: all)
            start_frame: Number of images to skip at the beginning
        """
        self._image_reader = DatasetReader(str(dataset_path))
        self._imu_reader = IMUReader(dataset_path)
        self._max_frames = max_frames
        self._start_frame = start_frame

    def __iter__(self) -> Iterator[MonoFrontendInputPayload]:
        imu_start = self._imu_reader.start_timestamp
        imu_end = self._imu_reader.end_timestamp
        if imu_start is None:
            return

        frame_id = 0
        prev_timestamp: int | None = None
        for index, (image, timestamp_ns) in enumerate(self._image_reader):
            if index < self._start_frame:
                continue
            if self._max_frames is not None and frame_id >= self._max_frames:
                break
            if timestamp_ns < imu_start:
                continue
            if timestamp_ns > imu_end:
                logger.info("IMU data ends before image at t=%d", timestamp_ns)
                break

            start = imu_start if prev_timestamp is None else prev_timestamp
            stamps, accgyrs = self._imu_reader.get_imu_data_between(start, timestamp_ns)
            if prev_timestamp is not None and len(stamps) < 2:
                logger.warning(
                    "Skipping image at t=%d: only %d IMU samples since previous image",
                    timestamp_ns,
                    len(stamps),
                )
                continue

            yield MonoFrontendInputPayload(
                frame=Frame(id=frame_id, timestamp_ns=timestamp_ns, image=image),
                imu_stamps=stamps,
                imu_accgyrs=accgyrs,
            )
            frame_id += 1
            prev_timestamp = timestamp_ns

    @property
    def image_reader(self) -> DatasetReader:
        return self._image_reader

    @property
    def imu_reader(self) -> IMUReader:
        return self._imu_reader
