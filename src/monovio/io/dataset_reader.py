"""EuRoC MAV dataset reader for monocular camera images."""

from pathlib import Path
from typing import Iterator

import cv2
import numpy as np


class DatasetReader:
    """Reader for the cam0 images of a EuRoC MAV sequence."""

    def __init__(
        self, dataset_path: str = "data/euroc/MH_01_easy/mav0", camera: str = "cam0"
    ) -> None:
        """Initialize reader with path to dataset.

        Args:
            dataset_path: Path to mav0 directory
            camera: Camera directory to read (cam0 or cam1)

        Raises:
            FileNotFoundError: If dataset path or required directories don't exist
            ValueError: If data.csv is empty or invalid
        """
        self.dataset_path = Path(dataset_path)

        self.cam_path = self.dataset_path / camera
        self.cam_data_path = self.cam_path / "data"
        self.csv_path = self.cam_path / "data.csv"
        self.sensor_yaml_path = self.cam_path / "sensor.yaml"

        self._validate_paths()

        self._image_list = self._load_image_list()

        if not self._image_list:
            raise ValueError(f"No images found in {self.csv_path}")

        self._current_idx = 0

    def _validate_paths(self) -> None:
        """Validate that all required paths exist."""
        if not self.dataset_path.exists():
            raise FileNotFoundError(f"Dataset path does not exist: {self.dataset_path}")

        if not self.cam_path.exists():
            raise FileNotFoundError(
                f"Camera directory not found: {self.cam_path}\n"
                f"Expected structure: {self.dataset_path}/{self.cam_path.name}/"
            )

        if not self.cam_data_path.exists():
            raise FileNotFoundError(f"Image directory not found: {self.cam_data_path}")

        if not self.csv_path.exists():
            raise FileNotFoundError(
                f"data.csv not found: {self.csv_path}\n"
                f"This file is required to list image timestamps and filenames."
            )

    def _load_image_list(self) -> list[tuple[int, str]]:
        """Parse data.csv to get image list.

        CSV format:
            #timestamp [ns],filename
            1403636579763555584,1403636579763555584.png
            1403636579813555456,1403636579813555456.png

        Returns:
            List of (timestamp_ns, filename) tuples in chronological order
        """
        image_list = []

        with open(self.csv_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue

                try:
                    timestamp_str, filename = line.split(",")
                    timestamp_ns = int(timestamp_str.strip())
                    image_list.append((timestamp_ns, filename.strip()))
                except ValueError as e:
                    raise ValueError(
                        f"Invalid line in {self.csv_path}: '{line}'\n"
                        f"Expected format: timestamp,filename"
                    ) from e

        image_list.sort(key=lambda item: item[0])
        return image_list

    def _load_image(self, filename: str) -> np.ndarray:
        """Load a grayscale image by filename.

        Raises:
            FileNotFoundError: If the image file doesn't exist
            ValueError: If image loading fails
        """
        path = self.cam_data_path / filename
        if not path.exists():
            raise FileNotFoundError(f"Camera image not found: {path}")

        image = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
        if image is None:
            raise ValueError(f"Failed to load image: {path}")
        return image

    def get_next_image(self) -> tuple[np.ndarray, int] | None:
        """Get the next image.

        Returns:
            Tuple of (image, timestamp_ns), or None if no more images are
            available.

        Example:
            >>> reader = DatasetReader('data/euroc/MH_01_easy/mav0')
            >>> while (item := reader.get_next_image()) is not None:
            ...     image, timestamp = item
        """
        if self._current_idx >= len(self._image_list):
            return None

        timestamp_ns, filename = self._image_list[self._current_idx]
        image = self._load_image(filename)

        self._current_idx += 1
        return image, timestamp_ns

    def reset(self) -> None:
        """Reset iterator to beginning of dataset."""
        self._current_idx = 0

    @property
    def timestamps(self) -> list[int]:
        return [timestamp for timestamp, _ in self._image_list]

    def __len__(self) -> int:
        """Return total number of images in dataset."""
        return len(self._image_list)

    def __iter__(self) -> Iterator[tuple[np.ndarray, int]]:
        """Allow iteration over dataset.

        Yields:
            Tuple of (image, timestamp_ns)
        """
        self.reset()
        return self

    def __next__(self) -> tuple[np.ndarray, int]:
        item = self.get_next_image()
        if item is None:
            raise StopIteration
        return item
