"""Command-line runner: register two frame streams and report statistics."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

import cv2

from app.pipeline.panography import PanographyPipeline
from capture import FrameSource, ImageFileSource, SimulatedSource
from configs.settings import AppConfig, load_config
from exceptions import PanographyError
from log_config.logger import configure_file_logging, get_logger, set_console_level
from register.config import FallbackPolicy

logger = get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="panography",
        description="Pair left/right frames and composite each pair through a homography.",
    )
    inputs = parser.add_mutually_exclusive_group(required=True)
    inputs.add_argument("--left", type=Path, help="Left image or video file.")
    inputs.add_argument("--simulate", action="store_true", help="Use synthetic shifted sources.")
    parser.add_argument("--right", type=Path, help="Right image or video file (with --left).")
    parser.add_argument("--config", type=Path, default=None, help="YAML configuration file.")
    parser.add_argument("--frames", type=int, default=10, help="Maximum frames per stream.")
    parser.add_argument("--method", default=None, help="Registration method name.")
    parser.add_argument(
        "--fallback",
        choices=[policy.value for policy in FallbackPolicy],
        default=None,
        help="Behaviour when registration fails.",
    )
    parser.add_argument(
        "--shift",
        type=int,
        nargs=2,
        metavar=("DX", "DY"),
        default=(12, 5),
        help="Pixel offset of the simulated right camera.",
    )
    parser.add_argument("--out-dir", type=Path, default=None, help="Write output frames here.")
    parser.add_argument("--log-dir", type=Path, default=None, help="Enable rotating file logs.")
    parser.add_argument("--verbose", action="store_true", help="Debug console logging.")

    args = parser.parse_args(argv)
    if args.left is not None and args.right is None:
        parser.error("--right is required with --left")
    if args.frames < 1:
        parser.error("--frames must be at least 1")
    return args


def _build_sources(args: argparse.Namespace, config: AppConfig) -> tuple[FrameSource, FrameSource]:
    if args.simulate:
        src = config.source
        left = SimulatedSource(
            camera_id="left", width=src.width, height=src.height, pixfmt=src.pixfmt, fps=src.fps
        )
        right = SimulatedSource(
            camera_id="right",
            width=src.width,
            height=src.height,
            pixfmt=src.pixfmt,
            fps=src.fps,
            shift=tuple(args.shift),
        )
        return left, right

    left = ImageFileSource(args.left, camera_id="left", repeat=args.frames)
    size = (left.width, left.height) if left.width else None
    right = ImageFileSource(args.right, camera_id="right", size=size, repeat=args.frames)
    return left, right


def _write_output(out_dir: Path, output) -> None:
    image = output.image
    if output.pixfmt == "RGB":
        image = cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
    cv2.imwrite(str(out_dir / f"pano_{output.sequence:05d}.png"), image)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    if args.verbose:
        set_console_level("DEBUG")

    try:
        config = load_config(args.config)
        set_console_level("DEBUG" if args.verbose else config.logging.level)
        log_dir = args.log_dir or (Path(config.logging.log_dir) if config.logging.log_dir else None)
        if log_dir is not None:
            configure_file_logging(log_dir)

        pipeline = PanographyPipeline(config)
        if args.method:
            pipeline.set_method(args.method)
        if args.fallback:
            pipeline.engine.set_fallback_policy(FallbackPolicy(args.fallback))

        left, right = _build_sources(args, config)
    except PanographyError as e:
        logger.error(f"Startup failed: {e}")
        return 2

    if args.out_dir is not None:
        args.out_dir.mkdir(parents=True, exist_ok=True)

    try:
        pipeline.attach_sources(left, right, max_frames=args.frames)
        pipeline.start()
        if not pipeline.wait(timeout=max(10.0, args.frames * 2.0)):
            logger.warning("Feeders still running at timeout, stopping")
        pipeline.stop()
    finally:
        left.close()
        right.close()

    outputs = pipeline.outputs()
    if args.out_dir is not None:
        for output in outputs:
            _write_output(args.out_dir, output)
        logger.info(f"Wrote {len(outputs)} frames to {args.out_dir}")

    stats = pipeline.get_stats()
    stats["sources"] = {"left": vars(left.get_stats()), "right": vars(right.get_stats())}
    degraded = sum(1 for output in outputs if output.degraded)
    logger.info(f"Emitted {len(outputs)} frames ({degraded} degraded)")
    print(json.dumps(stats, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
