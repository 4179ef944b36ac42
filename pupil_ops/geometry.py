# pupil_ops/geometry.py
"""
Ellipse fitting for pupil contours.

Primary method is a direct least-squares (Fitzgibbon / Halir-Flusser)
conic fit with the ellipse constraint 4AC - B^2 = 1, solved in a
centered and scaled frame. cv2.fitEllipse is kept as the fallback.

fit_ellipse() is the entry point: it runs the direct fit, inspects the
result, and only then tries the fallback.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import cv2
import numpy as np

from . import linalg as L
from . import settings as S
from .results import FailureKind, FitResult

logger = logging.getLogger(__name__)

# Reduced constraint matrix for [A, B, C]: a^T C3 a = 4AC - B^2
C3 = np.array([[0.0, 0.0, 2.0],
               [0.0, -1.0, 0.0],
               [2.0, 0.0, 0.0]])


@dataclass(frozen=True)
class Ellipse:
    """
    Ellipse in image pixel coordinates.

    axis_major / axis_minor are FULL axis lengths (like cv2.fitEllipse),
    angle_deg is the direction of the major axis, in [0, 180).
    """
    center: tuple[float, float]
    axis_major: float
    axis_minor: float
    angle_deg: float

    @property
    def is_degenerate(self) -> bool:
        vals = (self.center[0], self.center[1], self.axis_major, self.axis_minor, self.angle_deg)
        if not all(math.isfinite(v) for v in vals):
            return True
        return self.axis_major <= 0.0 or self.axis_minor <= 0.0

    @property
    def area(self) -> float:
        return math.pi * (self.axis_major * 0.5) * (self.axis_minor * 0.5)

    def to_cv2(self):
        """OpenCV box tuple ((cx, cy), (w, h), angle); w runs along angle."""
        return ((float(self.center[0]), float(self.center[1])),
                (float(self.axis_major), float(self.axis_minor)),
                float(self.angle_deg))

    @classmethod
    def from_cv2(cls, box) -> "Ellipse":
        (cx, cy), (w, h), angle = box
        return canonical_ellipse((float(cx), float(cy)), float(w), float(h), float(angle))


@dataclass(frozen=True)
class NormalizedConic:
    """Conic (A..F) valid only in the frame x' = (x - centroid) * scale."""
    coef: np.ndarray
    centroid: tuple[float, float]
    scale: float


def canonical_ellipse(center, along: float, across: float, angle_deg: float) -> Ellipse:
    """
    `along` is the full axis lying on angle_deg, `across` the other one.
    Swaps so the major axis is the one on the angle, then wraps into [0, 180).
    """
    if along < across:
        along, across = across, along
        angle_deg += 90.0
    angle_deg = float(angle_deg) % 180.0
    if angle_deg >= 180.0:  # -1e-17 % 180 rounds up to 180.0
        angle_deg = 0.0
    return Ellipse((float(center[0]), float(center[1])), float(along), float(across), angle_deg)


def contour_points(contour) -> np.ndarray:
    """Accepts cv2 contours (N,1,2) or plain (N,2) sequences -> float64 (N,2)."""
    pts = np.asarray(contour, dtype=np.float64)
    if pts.size == 0:
        return pts.reshape(0, 2)
    return pts.reshape(-1, 2)


def normalize_points(pts: np.ndarray):
    """Center on the centroid and scale so the mean |dx|+|dy| is NORM_TARGET."""
    centroid = pts.mean(axis=0)
    d = pts - centroid
    mad = float(np.mean(np.abs(d[:, 0]) + np.abs(d[:, 1])))
    scale = float(S.NORM_TARGET) / max(mad, float(S.NORM_FLOOR))
    return d * scale, (float(centroid[0]), float(centroid[1])), scale


def design_matrix(xy: np.ndarray) -> np.ndarray:
    x = xy[:, 0]
    y = xy[:, 1]
    return np.stack([x * x, x * y, y * y, x, y, np.ones_like(x)], axis=1)


def _pick_ellipse_eigvec(vals, vecs):
    best = None
    best_val = math.inf
    for val, q in zip(vals, vecs):
        disc = 4.0 * q[0] * q[2] - q[1] * q[1]
        if disc > 0 and val > 0 and val < best_val:
            best, best_val = q, val
    if best is not None:
        return best

    # no positive eigenvalue: take the first vector that is still an ellipse
    for q in vecs:
        if 4.0 * q[0] * q[2] - q[1] * q[1] > 0:
            return q
    return None


def fit_conic(contour) -> NormalizedConic | None:
    pts = contour_points(contour)
    if pts.shape[0] < int(S.MIN_CONTOUR_POINTS):
        return None

    xy, centroid, scale = normalize_points(pts)
    D = design_matrix(xy)
    Sm = L.matmul(L.transpose(D), D)

    S11 = L.block(Sm, 0, 3, 0, 3)
    S12 = L.block(Sm, 0, 3, 3, 6)
    S21 = L.block(Sm, 3, 6, 0, 3)
    S22 = L.block(Sm, 3, 6, 3, 6)

    S22_inv = L.invert(S22)
    if S22_inv is None:
        logger.debug("S22 singular; direct fit failed")
        return None

    T = L.subtract(S11, L.matmul(S12, S22_inv, S21))

    C3_inv = L.invert(C3)
    if C3_inv is None:
        logger.debug("C3 singular; direct fit failed")
        return None

    M = L.matmul(C3_inv, T)
    eig = L.eig_general(M)
    if eig is None or not eig[0]:
        logger.debug("eigen decomposition of reduced scatter matrix failed")
        return None

    q = _pick_ellipse_eigvec(*eig)
    if q is None:
        logger.debug("no eigenvector satisfies 4AC - B^2 > 0")
        return None

    # eigenvectors have arbitrary sign; keep A + C > 0 so -F' is positive for a real ellipse
    if q[0] + q[2] < 0:
        q = -q

    r = L.matmul(S22_inv, S21, q.reshape(3, 1)).reshape(3)
    coef = np.array([q[0], q[1], q[2], -r[0], -r[1], -r[2]], dtype=np.float64)
    return NormalizedConic(coef=coef, centroid=centroid, scale=scale)


def conic_to_ellipse(conic: NormalizedConic) -> Ellipse | None:
    A, B, C, D, E, F = (float(v) for v in conic.coef)

    Qc = np.array([[2.0 * A, B], [B, 2.0 * C]])
    Qc_inv = L.invert(Qc)
    if Qc_inv is None:
        return None
    cx, cy = L.matmul(Qc_inv, np.array([[-D], [-E]])).reshape(2)

    F_shift = A * cx * cx + B * cx * cy + C * cy * cy + D * cx + E * cy + F

    eig = L.eig_symmetric([[A, B / 2.0], [B / 2.0, C]])
    if eig is None:
        return None
    (lam0, lam1), (v0, v1) = eig

    den = -F_shift
    eps = float(S.EIG_EPS)
    if abs(lam0) < eps or abs(lam1) < eps or den <= 0:
        return None

    a_sq = den / lam0
    b_sq = den / lam1
    if a_sq <= 0 or b_sq <= 0:
        return None
    semi0 = math.sqrt(a_sq)
    semi1 = math.sqrt(b_sq)

    # smaller curvature -> longer axis
    if abs(lam0) < abs(lam1):
        along, across, vec = semi0, semi1, v0
    else:
        along, across, vec = semi1, semi0, v1
    angle = math.degrees(math.atan2(float(vec[1]), float(vec[0])))

    s = conic.scale
    center = (cx / s + conic.centroid[0], cy / s + conic.centroid[1])
    return canonical_ellipse(center, 2.0 * along / s, 2.0 * across / s, angle)


def fit_ellipse_direct(contour) -> Ellipse | None:
    conic = fit_conic(contour)
    if conic is None:
        return None
    ell = conic_to_ellipse(conic)
    if ell is None:
        logger.debug("conic is not a real ellipse (degenerate eigen-structure)")
    return ell


def fit_ellipse_opencv(contour) -> Ellipse | None:
    pts = contour_points(contour).astype(np.float32).reshape(-1, 1, 2)
    if len(pts) < 5:
        return None
    try:
        return Ellipse.from_cv2(cv2.fitEllipse(pts))
    except cv2.error:
        return None


def fit_ellipse(contour) -> FitResult:
    """Direct fit first; cv2.fitEllipse only when the direct fit fails."""
    n = contour_points(contour).shape[0]
    if n < int(S.MIN_CONTOUR_POINTS):
        return FitResult.fail(FailureKind.INVALID_INPUT, f"{n} contour points, need {S.MIN_CONTOUR_POINTS}")

    ell = fit_ellipse_direct(contour)
    if ell is not None and not ell.is_degenerate:
        return FitResult(ellipse=ell, method="direct")

    if not bool(getattr(S, "USE_OPENCV_FALLBACK", True)):
        return FitResult.fail(FailureKind.DEGENERATE_FIT, "direct fit failed")

    logger.info("direct ellipse fit failed on %d points; using cv2.fitEllipse", n)
    ell = fit_ellipse_opencv(contour)
    if ell is not None and not ell.is_degenerate:
        return FitResult(ellipse=ell, method="opencv")

    return FitResult.fail(FailureKind.DEGENERATE_FIT, "direct and opencv fits failed")
