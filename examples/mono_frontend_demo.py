#!/usr/bin/env python3
"""Demo script for the monocular visual-inertial front end.

Runs the front end on a EuRoC sequence, writes the keyframe statistics as
CSV and streams keyframes to Rerun.

Usage:
    python examples/mono_frontend_demo.py
"""

import logging

from monovio import (
    EurocPayloadSource,
    FrontendLogger,
    ImuBias,
    MonoCamera,
    MonoFrontendParams,
    MonoVisionFrontend,
    RerunVisualizer,
    TrackingStatus,
)


def main() -> None:
    """Run the monocular front end demo."""
    # Configuration
    dataset_path = "data/euroc/MH_01_easy/mav0"
    params_path = "params/mono_frontend.yaml"
    output_dir = "output/mono_frontend"
    max_frames = None  # Set to int to limit frames

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    # Initialize
    print("Initializing monocular front end...")
    source = EurocPayloadSource(dataset_path, max_frames=max_frames)
    camera = MonoCamera.from_yaml(f"{dataset_path}/cam0/sensor.yaml")
    imu_params = source.imu_reader.load_params()
    frontend_params = MonoFrontendParams.from_yaml(params_path)
    visualizer = RerunVisualizer("monovio-frontend")

    print(f"Processing {len(source.image_reader)} frames...")
    print()
    print(
        f"{'Frame':>6} {'Status':^14} {'Meas':>5} {'Track':>5} {'Inlr':>5} "
        f"{'Det':>5} | {'KLT':>6} {'RANSAC':>7}"
    )
    print("-" * 70)

    status_counts = {status: 0 for status in TrackingStatus}

    with FrontendLogger(output_dir) as frontend_logger:
        frontend = MonoVisionFrontend(
            imu_params,
            ImuBias(),
            frontend_params,
            camera,
            logger=frontend_logger,
            visualizer=visualizer,
        )

        for payload in source:
            output = frontend.spin(payload)
            if not output.is_keyframe:
                continue

            status_counts[output.tracking_status] += 1
            visualizer.log_output(output)
            if output.tracking_status == TrackingStatus.VALID:
                visualizer.log_relative_pose(output.timestamp_ns, output.relative_pose_body)

            info = output.tracker_info
            print(
                f"{payload.frame.id:6d} {output.tracking_status.value:^14} "
                f"{len(output.measurements):5d} {info.nr_tracked_features:5d} "
                f"{info.nr_mono_inliers:5d} {info.nr_detected_features:5d} | "
                f"{info.feature_tracking_time:5.1f}ms {info.mono_ransac_time:6.1f}ms"
            )

    # Final statistics
    print()
    print("=" * 70)
    print("SUMMARY")
    print("=" * 70)
    print(f"Frames processed:  {frontend.frame_count}")
    print(f"Keyframes:         {frontend.keyframe_count}")
    for status, count in status_counts.items():
        print(f"  {status.value:<14} {count}")
    frontend.print_stats()
    print()
    print(f"CSV output written to {output_dir}")
    print("Done! Check Rerun viewer.")


if __name__ == "__main__":
    main()
