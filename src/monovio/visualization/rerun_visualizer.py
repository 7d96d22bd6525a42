"""Rerun-based visualization of the monocular front end."""

from __future__ import annotations

from typing import TYPE_CHECKING

import cv2
import numpy as np
import rerun as rr
import rerun.blueprint as rrb

if TYPE_CHECKING:
    from ..frontend.messages import MonoFrontendOutput
    from ..frontend.pose import SE3


class RerunVisualizer:
    """Rerun-based visualization for the monocular tracking front end.

    Every method is a fire-and-forget side effect; nothing is returned to
    the caller.

    Entity hierarchy:
        frontend/
            <name>          - Debug images (e.g. feature_tracks)
            keyframe/
                image       - Last keyframe image
                landmarks   - Valid keypoints of the last keyframe (green)
        world/
            keyframe        - Up-to-scale keyframe pose chained from
                              relative poses
            trajectory      - Keyframe positions as a line strip
    """

    def __init__(self, app_name: str = "monovio", spawn: bool = True) -> None:
        """Initialize Rerun visualization.

        Args:
            app_name: Name for the Rerun application window
            spawn: If True, automatically spawn the Rerun viewer
        """
        rr.init(app_name, spawn=spawn)
        self._world_R_kf = np.eye(3)
        self._world_t_kf = np.zeros(3)
        self._positions: list[np.ndarray] = [self._world_t_kf.copy()]
        self._setup_coordinate_system()
        self._setup_layout()

    def _setup_coordinate_system(self) -> None:
        """Use the body frame convention of the IMU (Z up)."""
        rr.log("world", rr.ViewCoordinates.RIGHT_HAND_Z_UP, static=True)

    def _setup_layout(self) -> None:
        """Configure the viewer layout"""
        blueprint = rrb.Blueprint(
            rrb.Horizontal(
                contents=[
                    rrb.Vertical(
                        contents=[
                            rrb.Spatial2DView(
                                name="Feature Tracks", origin="frontend/feature_tracks"
                            ),
                            rrb.Spatial2DView(
                                name="Last Keyframe", origin="frontend/keyframe"
                            ),
                        ]
                    ),
                    rrb.Spatial3DView(name="Keyframes", origin="world"),
                ]
            )
        )
        rr.send_blueprint(blueprint)

    @staticmethod
    def _set_time(timestamp_ns: int) -> None:
        rr.set_time("timestamp", duration=timestamp_ns / 1e9)

    def display_image(self, timestamp_ns: int, name: str, image: np.ndarray) -> None:
        """Log a BGR or grayscale debug image under ``frontend/<name>``."""
        self._set_time(timestamp_ns)
        if image.ndim == 3:
            image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        rr.log(f"frontend/{name}", rr.Image(image))

    def log_relative_pose(self, timestamp_ns: int, lkf_T_k_body: SE3) -> None:
        """Chain a keyframe-to-keyframe body pose onto the displayed trajectory.

        Monocular translations are unit-norm, so the trajectory is only
        meaningful up to a per-keyframe scale.
        """
        self._set_time(timestamp_ns)
        self._world_t_kf = self._world_R_kf @ lkf_T_k_body.translation + self._world_t_kf
        self._world_R_kf = self._world_R_kf @ lkf_T_k_body.rotation
        self._positions.append(self._world_t_kf.copy())

        rr.log(
            "world/keyframe",
            rr.Transform3D(translation=self._world_t_kf, mat3x3=self._world_R_kf),
        )
        rr.log(
            "world/trajectory",
            rr.LineStrips3D(
                [np.array(self._positions)],
                colors=[[255, 255, 0]],  # Yellow
                radii=0.01,
            ),
        )

    def log_output(self, output: MonoFrontendOutput) -> None:
        """Log the keyframe image and landmarks of a keyframe output."""
        if not output.is_keyframe:
            return

        frame = output.frame_lkf
        self._set_time(frame.timestamp_ns)
        if frame.image is not None:
            rr.log("frontend/keyframe/image", rr.Image(frame.image))
        if frame.num_valid_keypoints > 0:
            rr.log(
                "frontend/keyframe/landmarks",
                rr.Points2D(
                    frame.keypoints[frame.valid_mask],
                    colors=[[0, 255, 0]],  # Green
                    radii=3.0,
                ),
            )
        if output.feature_tracks is not None:
            self.display_image(frame.timestamp_ns, "feature_tracks", output.feature_tracks)
