# pupil_ops/pupil.py
"""
Pupil localisation on a single grayscale eye crop.

preprocess -> Canny edges -> Hough circle candidates (with one relaxed
retry) -> score (dark inside + edge coverage - off-center penalty)
-> filled disk -> specular restore / bright-spot erase -> open/close.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import cv2
import numpy as np

from . import settings as S
from .intensity import preprocess_for_pupil, edge_map
from .masks import disk_mask, erase_bright_spots, mask_area, morph, restore_specular_highlights
from .results import FailureKind, PupilResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HoughParams:
    canny_low: int = S.CANNY_LOW
    canny_high: int = S.CANNY_HIGH
    hough_min_radius: int = S.HOUGH_MIN_RADIUS
    hough_max_radius: int = S.HOUGH_MAX_RADIUS
    dp: float = S.HOUGH_DP                  # accumulator resolution (inverse ratio)
    min_dist: int = S.HOUGH_MIN_DIST
    hough_param1: int = S.HOUGH_PARAM1
    hough_param2: int = S.HOUGH_PARAM2

    def relaxed(self) -> "HoughParams":
        return HoughParams(
            canny_low=self.canny_low,
            canny_high=self.canny_high,
            hough_min_radius=max(0, self.hough_min_radius // 2),
            hough_max_radius=self.hough_max_radius * 2,
            dp=float(S.HOUGH_RELAXED_DP),
            min_dist=max(1, self.min_dist // 2),
            hough_param1=max(1, self.hough_param1 // 2),
            hough_param2=max(1, self.hough_param2 // 2),
        )


@dataclass(frozen=True)
class CircleCandidate:
    center: tuple[float, float]
    radius: float


@dataclass(frozen=True)
class ScoredCandidate:
    circle: CircleCandidate
    score: float
    mean_intensity: float
    edge_coverage: float


def _hough(gray_u8, p: HoughParams):
    try:
        circles = cv2.HoughCircles(
            gray_u8, cv2.HOUGH_GRADIENT, float(p.dp), float(p.min_dist),
            param1=float(p.hough_param1), param2=float(p.hough_param2),
            minRadius=int(p.hough_min_radius), maxRadius=int(p.hough_max_radius),
        )
    except cv2.error as exc:
        logger.debug("HoughCircles rejected params %s: %s", p, exc)
        return []
    if circles is None:
        return []
    return [CircleCandidate((float(x), float(y)), float(r)) for x, y, r in circles.reshape(-1, 3)]


def detect_circles(gray_u8, params: HoughParams | None = None):
    """Hough candidates; one permissive retry if the first pass finds nothing."""
    params = params or HoughParams()
    circles = _hough(gray_u8, params)
    if not circles:
        logger.debug("no circles with %s; retrying relaxed", params)
        circles = _hough(gray_u8, params.relaxed())
    return circles


def score_candidate(gray_u8, edges, c: CircleCandidate) -> ScoredCandidate | None:
    H, W = gray_u8.shape[:2]
    cx, cy = int(round(c.center[0])), int(round(c.center[1]))
    r = int(round(c.radius))
    if r <= int(S.MIN_CANDIDATE_RADIUS):
        return None

    # mean intensity inside the circle (clipped box)
    x0, y0 = max(0, cx - r), max(0, cy - r)
    x1, y1 = min(W - 1, cx + r), min(H - 1, cy + r)
    if x1 < x0 or y1 < y0:
        return None
    patch = gray_u8[y0:y1 + 1, x0:x1 + 1]
    circ = disk_mask(patch.shape, (cx - x0, cy - y0), r)
    mean_val = float(cv2.mean(patch, mask=circ)[0])

    # edge coverage sampled on the circumference
    n = max(int(S.MIN_EDGE_SAMPLES), r)
    a = 2.0 * np.pi * np.arange(n) / n
    sx = np.round(cx + r * np.cos(a)).astype(int)
    sy = np.round(cy + r * np.sin(a)).astype(int)
    inside = (sx >= 0) & (sx < edges.shape[1]) & (sy >= 0) & (sy < edges.shape[0])
    hits = int(np.count_nonzero(edges[sy[inside], sx[inside]] > 0))
    coverage = hits / float(n)

    dist = math.hypot(cx - W / 2.0, cy - H / 2.0)
    penalty = max(0.0, dist - min(W, H) / 4.0)

    score = (float(S.DARKNESS_WEIGHT) * (255.0 - mean_val)
             + float(S.EDGE_WEIGHT) * 255.0 * coverage
             - float(S.CENTER_PENALTY) * penalty)
    return ScoredCandidate(c, score, mean_val, coverage)


def best_candidate(gray_u8, edges, circles) -> ScoredCandidate | None:
    best = None
    for c in circles:
        sc = score_candidate(gray_u8, edges, c)
        if sc is None:
            continue
        if best is None or sc.score > best.score:
            best = sc
    return best


def locate_pupil(eye_gray, params: HoughParams | None = None) -> PupilResult:
    """
    Find the pupil in a single-channel eye crop.

    Returns PupilResult with a 0/255 mask of the input's shape, its outer
    contour, the integer center and radius of the winning circle, or a failure
    (INVALID_INPUT / NOT_FOUND).
    """
    if eye_gray is None or eye_gray.size == 0:
        return PupilResult.fail(FailureKind.INVALID_INPUT, "empty image")
    if eye_gray.ndim == 3 and eye_gray.shape[2] == 1:
        eye_gray = eye_gray[:, :, 0]
    if eye_gray.ndim != 2:
        return PupilResult.fail(FailureKind.INVALID_INPUT, f"expected 1 channel, got shape {eye_gray.shape}")

    params = params or HoughParams()
    g = preprocess_for_pupil(eye_gray)
    edges = edge_map(g, params.canny_low, params.canny_high)

    circles = detect_circles(g, params)
    if not circles:
        return PupilResult.fail(FailureKind.NOT_FOUND, "no circle candidates")

    best = best_candidate(g, edges, circles)
    if best is None or best.score < 0:
        return PupilResult.fail(FailureKind.NOT_FOUND, "no candidate scored >= 0")

    center = (int(round(best.circle.center[0])), int(round(best.circle.center[1])))
    radius = int(round(best.circle.radius))
    logger.debug("pupil candidate c=%s r=%d score=%.1f (mean=%.1f, edges=%.2f) of %d",
                 center, radius, best.score, best.mean_intensity, best.edge_coverage, len(circles))

    mask = disk_mask(g.shape, center, radius)
    if bool(getattr(S, "USE_SPECULAR_RESTORE", True)):
        mask = restore_specular_highlights(mask, g, center, radius)
    if bool(getattr(S, "USE_BRIGHT_ERASE", True)):
        mask = erase_bright_spots(mask, g, center, radius)

    mask = morph(mask, open_k=int(S.FINAL_OPEN_K), close_k=int(S.FINAL_CLOSE_K))

    area = mask_area(mask)
    if area < int(S.MIN_MASK_AREA):
        return PupilResult.fail(FailureKind.NOT_FOUND, f"mask area {area} < {S.MIN_MASK_AREA}")

    contour = largest_contour(mask)
    if contour is None:
        return PupilResult.fail(FailureKind.NOT_FOUND, "mask has no contour")

    return PupilResult(mask=mask, contour=contour, center=center, radius=radius, score=float(best.score))


def largest_contour(mask):
    """Outer boundary of the biggest blob in a 0/255 mask, or None."""
    contours, _ = cv2.findContours((mask > 0).astype(np.uint8), cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    if not contours:
        return None
    return max(contours, key=cv2.contourArea)
