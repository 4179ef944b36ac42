# pupil_pipeline/pipeline.py
"""
Per-item pipeline: eye crop / face image / video frames -> BIoU.

Every function returns an EyeScore; `biou is None` means the item is
skipped (invalid input, no face, no pupil, no contour), never a crash.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from pupil_ops import settings as S
from pupil_ops.biou import compute_biou
from pupil_ops.pupil import HoughParams, locate_pupil
from pupil_ops.results import Failure, FailureKind, PupilResult

from .eye_crop import pad_to_square, to_gray
from .landmarks import FaceLandmarker

logger = logging.getLogger(__name__)


@dataclass
class EyeScore:
    biou: float | None = None
    pupil: PupilResult | None = None
    side: str = ""                     # "left" / "right" for face + video
    frames_used: int = 0
    failure: Failure | None = None

    @property
    def ok(self) -> bool:
        return self.biou is not None


def _skip(kind: FailureKind, detail: str) -> EyeScore:
    return EyeScore(failure=Failure(kind, detail))


def classify(biou: float, threshold: float | None = None) -> str:
    thr = float(S.REAL_THRESHOLD if threshold is None else threshold)
    return "real" if biou > thr else "synthetic"


def is_correct(category: str, biou: float, threshold: float | None = None) -> bool:
    """real needs biou > thr, synthetic needs biou < thr (exactly thr is wrong for both)."""
    thr = float(S.REAL_THRESHOLD if threshold is None else threshold)
    if category == "real":
        return biou > thr
    if category == "synthetic":
        return biou < thr
    return False


# ----------------------------
# Core for ONE grayscale eye
# ----------------------------
def score_eye_gray(gray, params: HoughParams | None = None):
    """
    locate (mask + contour) -> BIoU on a grayscale eye crop.
    Returns: EyeScore, timing_dict
    """
    t = {}
    t0 = time.perf_counter()

    pupil = locate_pupil(gray, params)
    a = time.perf_counter()
    t["locate"] = a - t0
    if not pupil.ok:
        t["total"] = a - t0
        return EyeScore(pupil=pupil, failure=pupil.failure), t

    biou = compute_biou(pupil.mask, pupil.contour)
    c = time.perf_counter()
    t["biou"] = c - a
    t["total"] = c - t0
    return EyeScore(biou=float(biou), pupil=pupil, frames_used=1), t


def score_eye_crop(eye_img, params: HoughParams | None = None) -> EyeScore:
    """Color or gray eye crop as returned by a landmarker (no padding)."""
    if eye_img is None or eye_img.size == 0:
        return _skip(FailureKind.INVALID_INPUT, "empty eye crop")
    score, _ = score_eye_gray(to_gray(eye_img), params)
    return score


def process_eye_image(img, params: HoughParams | None = None) -> EyeScore:
    """Standalone eye crop: pad to square, gray, score."""
    if img is None or img.size == 0:
        return _skip(FailureKind.INVALID_INPUT, "empty image")
    score, t = score_eye_gray(to_gray(pad_to_square(img)), params)
    logger.debug("eye image scored in %.2f ms -> %s", 1000.0 * t["total"], score.biou)
    return score


def process_face_image(img, landmarker: FaceLandmarker, params: HoughParams | None = None) -> EyeScore:
    """Score both eyes, keep the higher BIoU (left wins ties)."""
    if img is None or img.size == 0:
        return _skip(FailureKind.INVALID_INPUT, "empty image")
    regions = landmarker.detect(img)
    if regions is None:
        return _skip(FailureKind.NOT_FOUND, "no face detected")

    left = score_eye_crop(regions.left_eye, params)
    right = score_eye_crop(regions.right_eye, params)
    left.side, right.side = "left", "right"

    if not left.ok and not right.ok:
        return _skip(FailureKind.NOT_FOUND, f"no pupil in either eye ({left.failure}; {right.failure})")
    if not right.ok:
        return left
    if not left.ok:
        return right
    return left if left.biou >= right.biou else right


def process_video(frames, landmarker: FaceLandmarker, params: HoughParams | None = None,
                  max_frames: int | None = None) -> EyeScore:
    """Mean left-eye BIoU over the first `max_frames` frames where it is defined."""
    max_frames = int(S.VIDEO_MAX_FRAMES if max_frames is None else max_frames)
    total = 0.0
    valid = 0
    last = None

    for i, frame in enumerate(frames):
        if i >= max_frames:
            break
        regions = landmarker.detect(frame)
        if regions is None:
            logger.debug("frame %d: no face detected", i)
            continue
        s = score_eye_crop(regions.left_eye, params)
        if not s.ok:
            continue
        total += s.biou
        valid += 1
        last = s

    if valid == 0:
        return _skip(FailureKind.NOT_FOUND, "no frame produced a score")
    return EyeScore(biou=total / valid, pupil=last.pupil, side="left", frames_used=valid)
