# pupil_pipeline/landmarks.py
"""
Face / eye-landmark collaborator.

The pipeline never detects faces itself: it takes any object with
`detect(image) -> EyeRegions | None`. `crop_eyes` builds EyeRegions from
a 68-point (iBUG / dlib ordering) landmark array so a backend only has to
return landmarks.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

import numpy as np

from .eye_crop import crop_box, expand_eye_box, points_in_crop

LEFT_EYE_IDX = (36, 37, 38, 39, 40, 41)
RIGHT_EYE_IDX = (42, 43, 44, 45, 46, 47)


@dataclass
class EyeRegions:
    left_eye: np.ndarray
    right_eye: np.ndarray
    left_landmarks: list = field(default_factory=list)   # (x, y) in left_eye coords
    right_landmarks: list = field(default_factory=list)  # (x, y) in right_eye coords


class FaceLandmarker(Protocol):
    def detect(self, image: np.ndarray) -> EyeRegions | None:
        """None means no face found (a normal outcome)."""
        ...


def crop_eyes(image, landmarks68, margin: int | None = None) -> EyeRegions | None:
    pts = np.asarray(landmarks68, dtype=np.int64).reshape(-1, 2)
    if pts.shape[0] < 48:
        return None

    left_pts = pts[list(LEFT_EYE_IDX)]
    right_pts = pts[list(RIGHT_EYE_IDX)]

    bb_l = expand_eye_box(left_pts, image.shape, margin)
    bb_r = expand_eye_box(right_pts, image.shape, margin)
    if bb_l is None or bb_r is None:
        return None

    left = crop_box(image, bb_l)
    right = crop_box(image, bb_r)
    return EyeRegions(
        left_eye=left,
        right_eye=right,
        left_landmarks=points_in_crop(left_pts, bb_l, left.shape),
        right_landmarks=points_in_crop(right_pts, bb_r, right.shape),
    )
