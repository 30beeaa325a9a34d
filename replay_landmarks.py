#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Replay recorded landmarks (or a video through FaceMesh) into the tracking
pipeline and log telemetry.

Recording formats:
- JSON: {"frame_width": 640, "frame_height": 480, "fps": 30,
         "frames": [{"timestamp_ms": 0, "landmarks": [[x, y, z], ...] | null}, ...]}
- NPZ:  landmarks (F, N, 3) float array, a frame of all-NaN means no detection;
        optional timestamps_ms (F,), frame_size (2,), fps ()
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

import numpy as np

from headfit.core.async_engine import AsyncDetectorRunner
from headfit.core.config_loader import get_config
from headfit.core.constants import Constants
from headfit.core.logger import logger
from headfit.core.telemetry import TelemetryBuilder
from headfit.render import AssetProfile
from headfit.tracking import HeadTrackingPipeline


Frame = Tuple[float, Optional[np.ndarray]]


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"{value!r} is not an integer") from exc
    if number <= 0:
        raise argparse.ArgumentTypeError("value must be a positive integer")
    return number


def load_recording(path: Path) -> Tuple[Tuple[int, int], List[Frame]]:
    """Read a JSON / NPZ recording into ((width, height), [(timestamp_ms, points | None)])."""
    if path.suffix.lower() == ".npz":
        data = np.load(path)
        landmarks = np.asarray(data["landmarks"], dtype=float)
        fps = float(data["fps"]) if "fps" in data else Constants.NOMINAL_FPS
        if "timestamps_ms" in data:
            timestamps = np.asarray(data["timestamps_ms"], dtype=float)
        else:
            timestamps = np.arange(len(landmarks)) * 1000.0 / fps
        width, height = (int(v) for v in data["frame_size"]) if "frame_size" in data else (640, 480)

        frames: List[Frame] = []
        for ts, points in zip(timestamps, landmarks):
            frames.append((float(ts), None if np.all(np.isnan(points)) else points))
        return (width, height), frames

    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    fps = float(data.get("fps", Constants.NOMINAL_FPS))
    frames = []
    for i, entry in enumerate(data["frames"]):
        ts = float(entry.get("timestamp_ms", i * 1000.0 / fps))
        points = entry.get("landmarks")
        frames.append((ts, None if points is None else np.asarray(points, dtype=float)))
    return (int(data.get("frame_width", 640)), int(data.get("frame_height", 480))), frames


def iter_video(path: Path, runner: AsyncDetectorRunner) -> Iterator[Tuple[float, Optional[object], Tuple[int, int]]]:
    """
    Feed video frames to the async detector, yielding at most one completed
    detection per displayed frame.
    """
    import cv2

    cap = cv2.VideoCapture(str(path))
    if not cap.isOpened():
        raise FileNotFoundError(f"Cannot open video: {path}")
    fps = cap.get(cv2.CAP_PROP_FPS) or Constants.NOMINAL_FPS
    index = 0
    try:
        while True:
            ok, frame = cap.read()
            if not ok:
                break
            runner.submit(frame, frame_index=index)
            result = runner.poll()
            h, w = frame.shape[:2]
            yield index * 1000.0 / fps, (result.landmarks if result else None), (w, h)
            index += 1
    finally:
        cap.release()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Replay head landmarks through the tracking pipeline.")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--recording", help="JSON or NPZ landmark recording")
    source.add_argument("--video", help="Video file, detected with MediaPipe FaceMesh")
    parser.add_argument("--config", default=None, help="tracking_config.json path")
    parser.add_argument("--asset", default="hat", help="Asset product type (hat, cap, glasses)")
    parser.add_argument(
        "--telemetry_interval",
        type=_positive_int,
        default=30,
        help="Log telemetry every N frames",
    )
    parser.add_argument("--output", default=None, help="Write per-frame telemetry as JSON lines")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Command line entry point"""
    args = build_parser().parse_args(argv)

    config = get_config(config_path=args.config)
    pipeline = HeadTrackingPipeline(config, AssetProfile(name=args.asset, product_type=args.asset))
    telemetry = TelemetryBuilder(print_enabled=True, print_interval=args.telemetry_interval)

    out_file = open(args.output, "w", encoding="utf-8") if args.output else None
    runner = None
    try:
        if args.recording:
            (width, height), frames = load_recording(Path(args.recording))
            stream = ((ts, points, (width, height)) for ts, points in frames)
        else:
            from headfit.detection import FaceMeshDetector

            detector = FaceMeshDetector(config.landmarks)
            if not detector.enabled:
                logger.error("MediaPipe is required for --video")
                return 1
            runner = AsyncDetectorRunner(detector, name="FaceMesh")
            runner.start()
            stream = iter_video(Path(args.video), runner)

        for ts, points, (width, height) in stream:
            output = pipeline.update(points, width, height, timestamp_ms=ts)
            record = telemetry.build(
                output,
                pipeline_stats=pipeline.get_stats(),
                async_stats=runner.get_stats() if runner else None,
            )
            if out_file is not None:
                out_file.write(json.dumps(record) + "\n")

        stats = pipeline.get_stats()
    except (FileNotFoundError, ValueError, KeyError) as e:
        logger.error(f"Replay failed: {e}")
        return 1
    finally:
        if runner is not None:
            runner.stop()
        if out_file is not None:
            out_file.close()
        pipeline.stop()

    logger.info(
        f"Replay done: frames={stats['frame_index']}, detections={stats['detections_total']}, "
        f"skipped={stats['skipped_total']}, lost_events={stats['lost_events']}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
