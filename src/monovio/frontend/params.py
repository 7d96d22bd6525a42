"""Tunable parameters of the monocular front end.

Parameters load from a YAML file with one section per component:

    tracker:
      intra_keyframe_time_ns: 200000000
      min_number_features: 40
    feature_detector:
      max_features_per_frame: 300
    visualize_feature_tracks: false
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any

import yaml


class FeatureDetectorType(Enum):
    """Corner detector used to replenish keypoints."""

    GFTT = "GFTT"
    ORB = "ORB"


@dataclass
class FeatureDetectorParams:
    """Feature detection parameters."""

    detector_type: FeatureDetectorType = FeatureDetectorType.GFTT
    max_features_per_frame: int = 400
    # GFTT
    quality_level: float = 0.001
    min_distance: float = 10.0
    block_size: int = 3
    use_harris_detector: bool = False
    k: float = 0.04
    # ORB
    fast_threshold: int = 20
    # Sub-pixel refinement of detected corners
    enable_subpixel_refinement: bool = False
    subpixel_window_size: int = 5
    subpixel_max_iterations: int = 10
    subpixel_epsilon: float = 0.01

    def __post_init__(self) -> None:
        if isinstance(self.detector_type, str):
            self.detector_type = FeatureDetectorType(self.detector_type.upper())
        if self.max_features_per_frame < 0:
            raise ValueError("max_features_per_frame must be non-negative")


@dataclass
class TrackerParams:
    """Feature tracking, keyframe policy and outlier rejection parameters.

    ``ransac_threshold_mono`` is expressed as 1 - cos(angle) between a
    bearing vector and its epipolar plane.
    """

    # KLT
    klt_win_size: int = 24
    klt_max_iter: int = 30
    klt_max_level: int = 4
    klt_eps: float = 0.1
    max_feature_track_age: int = 25
    # Keyframe policy
    intra_keyframe_time_ns: int = 200_000_000
    min_number_features: int = 0
    # Outlier rejection
    use_ransac: bool = True
    ransac_use_2point_mono: bool = True
    ransac_max_iterations: int = 100
    ransac_probability: float = 0.995
    ransac_threshold_mono: float = 1.0e-6
    ransac_randomize: bool = True
    ransac_seed: int = 0
    min_nr_mono_inliers: int = 10
    disparity_threshold: float = 0.5

    def __post_init__(self) -> None:
        if self.intra_keyframe_time_ns < 0:
            raise ValueError("intra_keyframe_time_ns must be non-negative")
        if not 0.0 < self.ransac_probability < 1.0:
            raise ValueError("ransac_probability must be in (0, 1)")
        if not 0.0 < self.ransac_threshold_mono < 1.0:
            raise ValueError("ransac_threshold_mono must be in (0, 1)")


@dataclass
class MonoFrontendParams:
    """Parameters of the monocular front end and its components."""

    tracker_params: TrackerParams = field(default_factory=TrackerParams)
    feature_detector_params: FeatureDetectorParams = field(
        default_factory=FeatureDetectorParams
    )
    # Render the tracks image into every output payload
    output_feature_tracks: bool = False
    # Send the tracks image of each keyframe to the visualizer
    visualize_feature_tracks: bool = False

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> MonoFrontendParams:
        """Load parameters from a YAML file.

        Missing keys keep their defaults.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file contains unknown keys or invalid values
        """
        path = Path(yaml_path)
        if not path.exists():
            raise FileNotFoundError(f"Frontend parameters not found: {yaml_path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MonoFrontendParams:
        """Build parameters from a nested dictionary."""
        data = dict(data)
        tracker = _build(TrackerParams, data.pop("tracker", None) or {})
        detector = _build(
            FeatureDetectorParams, data.pop("feature_detector", None) or {}
        )
        return cls(
            tracker_params=tracker,
            feature_detector_params=detector,
            **_checked_kwargs(cls, data, exclude={"tracker_params", "feature_detector_params"}),
        )


def _checked_kwargs(
    cls: type, data: dict[str, Any], exclude: set[str] | None = None
) -> dict[str, Any]:
    allowed = {f.name for f in fields(cls)} - (exclude or set())
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} keys: {sorted(unknown)}")
    return data


def _build(cls: type, data: dict[str, Any]) -> Any:
    return cls(**_checked_kwargs(cls, data))
