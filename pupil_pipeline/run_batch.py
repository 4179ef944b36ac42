#!/usr/bin/env python3
"""
pupil-biou: score eye images with BIoU and classify them real / synthetic.

    pupil-biou DATASET_ROOT [--csv biou_results.csv] [--workers N]
    pupil-biou --eye path/to/eye.jpg

DATASET_ROOT layout: <root>/<real|synthetic>/<eye|face|video>/<files>.
Face and video items need --landmarker module:factory, where factory()
returns an object with detect(image) -> EyeRegions | None. No backend
ships with this package; pupil_pipeline.landmarks.crop_eyes is the
adapter hook, so a backend that yields 68-point (iBUG / dlib order)
landmarks only needs:

    class DlibLandmarker:
        def __init__(self, predictor_path):
            self.detector = dlib.get_frontal_face_detector()
            self.predictor = dlib.shape_predictor(predictor_path)

        def detect(self, image):
            faces = self.detector(image)
            if not faces:
                return None
            shape = self.predictor(image, faces[0])
            pts = [(p.x, p.y) for p in shape.parts()]
            return crop_eyes(image, pts)

and a zero-argument factory returning it.

Env vars:
  PUPIL_BIOU_WORKERS: default for --workers (default: 1)
  PUPIL_BIOU_LOG_LEVEL: default for --log-level (default: INFO)
"""
from __future__ import annotations

import argparse
import logging
import os
import sys

from pupil_ops import settings as S
from pupil_ops.pupil import HoughParams

from .batch import parse_landmarker_spec, run_dataset
from .io_images import read_image
from .pipeline import classify, process_eye_image
from .report import print_results_table, print_summary, write_csv

logger = logging.getLogger("pupil_pipeline")


def build_parser():
    p = argparse.ArgumentParser(prog="pupil-biou", description="BIoU real/synthetic eye classifier")
    p.add_argument("root", nargs="?", help="dataset root (real|synthetic / eye|face|video)")
    p.add_argument("--eye", help="score a single eye-crop image and exit")
    p.add_argument("--csv", default=S.RESULTS_CSV, help="results CSV path")
    p.add_argument("--workers", type=int, default=int(os.environ.get("PUPIL_BIOU_WORKERS", "1")))
    p.add_argument("--threshold", type=float, default=S.REAL_THRESHOLD)
    p.add_argument("--max-frames", type=int, default=S.VIDEO_MAX_FRAMES)
    p.add_argument("--landmarker", default=None, help="module:factory for face/video modes")
    p.add_argument("--log-level", default=os.environ.get("PUPIL_BIOU_LOG_LEVEL", "INFO"))

    g = p.add_argument_group("hough / canny")
    g.add_argument("--canny-low", type=int, default=S.CANNY_LOW)
    g.add_argument("--canny-high", type=int, default=S.CANNY_HIGH)
    g.add_argument("--min-radius", type=int, default=S.HOUGH_MIN_RADIUS)
    g.add_argument("--max-radius", type=int, default=S.HOUGH_MAX_RADIUS)
    g.add_argument("--dp", type=float, default=S.HOUGH_DP)
    g.add_argument("--min-dist", type=int, default=S.HOUGH_MIN_DIST)
    g.add_argument("--param1", type=int, default=S.HOUGH_PARAM1)
    g.add_argument("--param2", type=int, default=S.HOUGH_PARAM2)
    return p


def params_from_args(args) -> HoughParams:
    return HoughParams(
        canny_low=args.canny_low,
        canny_high=args.canny_high,
        hough_min_radius=args.min_radius,
        hough_max_radius=args.max_radius,
        dp=args.dp,
        min_dist=args.min_dist,
        hough_param1=args.param1,
        hough_param2=args.param2,
    )


def setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%H:%M:%S",
    )


def run_single_eye(path, params, threshold) -> int:
    img = read_image(path)
    if img is None:
        logger.error("could not read input image %s", path)
        return 1
    score = process_eye_image(img, params)
    if not score.ok:
        logger.error("pupil not scored: %s", score.failure)
        return 1
    print(f"BIoU = {score.biou:.6f} -> {classify(score.biou, threshold)}")
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    params = params_from_args(args)

    if args.eye:
        return run_single_eye(args.eye, params, args.threshold)

    if not args.root:
        logger.error("no dataset root given (or use --eye PATH)")
        return 2

    if args.landmarker:
        try:
            parse_landmarker_spec(args.landmarker)
        except ValueError as exc:
            logger.error("%s", exc)
            return 2

    outcomes, wall = run_dataset(
        args.root,
        workers=args.workers,
        landmarker_spec=args.landmarker,
        params=params,
        threshold=args.threshold,
        max_frames=args.max_frames,
    )

    print_results_table(outcomes)
    csv_path = write_csv(outcomes, args.csv)
    print_summary(outcomes, wall)
    logger.info("wrote %s", csv_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
