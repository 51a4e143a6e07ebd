#!/usr/bin/env python3
"""
Offline Video Replay
====================

Standalone script to replay a video file through the admission pipeline.

This script:
    1. Reads frames from a video file (OpenCV)
    2. Runs each through the AdmissionPipeline
    3. Dispatches admitted frames to the recognition backend
    4. Reports admission efficiency and dispatch stats

Frame timestamps come from the video's frame rate, so the scan interval is
honored in video time while replay runs as fast as frames decode.

Prerequisites:
    - Install the package: pip install -e .
    - For the rekognition backend: AWS credentials and a running model

Usage:
    python scripts/run_on_video.py --video clip.mp4
    python scripts/run_on_video.py --video clip.mp4 --backend rekognition \
        --model-arn arn:aws:rekognition:...
    python scripts/run_on_video.py --video clip.mp4 --no-smart
"""

import argparse
import asyncio
import json
import logging
import os
import sys

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from framegate.admission import AdmissionPipeline
from framegate.config import settings
from framegate.detection import (
    DetectionDispatcher,
    MockRecognitionService,
    RecognitionLabel,
    RekognitionService,
    ResultCache,
)
from framegate.observability import build_stats_snapshot
from framegate.runner import DetectionLoop
from framegate.stream import VideoFileFrameSource


logger = logging.getLogger(__name__)


async def replay(args: argparse.Namespace) -> dict:
    """
    Replay the video and return the final stats snapshot.

    Args:
        args: Parsed command line arguments

    Returns:
        Stats snapshot as a dict
    """
    logger.info("=" * 60)
    logger.info("Offline Video Replay")
    logger.info("=" * 60)
    logger.info(f"Video: {args.video}")
    logger.info(f"Backend: {args.backend}")
    logger.info(f"Smart detection: {not args.no_smart}")
    logger.info("=" * 60)

    if args.backend == "rekognition":
        service = RekognitionService(region=args.region)
    else:
        service = MockRecognitionService(
            labels=[
                RecognitionLabel(name=label.name, confidence_percent=label.confidence_percent)
                for label in settings.detection.mock_labels
            ]
        )

    pipeline = AdmissionPipeline(
        motion_threshold=args.motion_threshold,
        quality_threshold=args.quality_threshold,
        scan_interval=args.scan_interval_ms / 1000.0,
        enabled=not args.no_smart,
    )
    dispatcher = DetectionDispatcher(
        service=service,
        cache=ResultCache(
            max_entries=settings.cache.max_entries,
            ttl=settings.cache.ttl_ms / 1000.0,
        ),
        model_id=args.model_arn,
        confidence_threshold=args.confidence_threshold,
        max_retries=settings.detection.max_retries,
        retry_base_delay=settings.detection.retry_base_delay_ms / 1000.0,
    )

    source = VideoFileFrameSource(args.video)
    loop = DetectionLoop(source, pipeline, dispatcher)
    loop.add_listener(
        lambda detections: logger.info(
            f"Detections: {[(d.name, round(d.confidence, 2)) for d in detections]}"
        ) if detections else None
    )

    try:
        while not source.exhausted:
            if args.max_frames and source.frames_read >= args.max_frames:
                break
            await loop.tick()
    finally:
        source.close()

    snapshot = build_stats_snapshot(pipeline, dispatcher, status_message=loop.status_message)
    return snapshot.model_dump(mode="json")


def main():
    parser = argparse.ArgumentParser(
        description="Replay a video file through the FrameGate admission pipeline"
    )
    parser.add_argument("--video", required=True, help="Path to a video file")
    parser.add_argument(
        "--backend",
        choices=["mock", "rekognition"],
        default=settings.detection.backend,
        help="Recognition backend (default: from config)",
    )
    parser.add_argument(
        "--model-arn",
        default=settings.detection.model_arn,
        help="Rekognition Custom Labels project version ARN",
    )
    parser.add_argument(
        "--region",
        default=settings.detection.region,
        help="AWS region",
    )
    parser.add_argument(
        "--motion-threshold",
        type=float,
        default=settings.admission.motion_threshold,
    )
    parser.add_argument(
        "--quality-threshold",
        type=float,
        default=settings.admission.quality_threshold,
    )
    parser.add_argument(
        "--scan-interval-ms",
        type=int,
        default=settings.admission.scan_interval_ms,
    )
    parser.add_argument(
        "--confidence-threshold",
        type=float,
        default=settings.detection.confidence_threshold,
    )
    parser.add_argument(
        "--max-frames",
        type=int,
        default=0,
        help="Stop after this many frames (0 = whole video)",
    )
    parser.add_argument(
        "--no-smart",
        action="store_true",
        help="Disable smart detection (admit every frame)",
    )

    args = parser.parse_args()

    stats = asyncio.run(replay(args))

    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    print(json.dumps(stats, indent=2))


if __name__ == "__main__":
    main()
