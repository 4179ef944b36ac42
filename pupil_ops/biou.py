# pupil_ops/biou.py
import logging
import math

import numpy as np
import cv2

from . import settings as S
from .geometry import Ellipse, contour_points, fit_ellipse
from .pupil import largest_contour

logger = logging.getLogger(__name__)


def render_ellipse_mask(shape_hw, ellipse: Ellipse | None):
    """Filled, anti-aliased ellipse as 0/255 uint8. Degenerate -> empty."""
    h, w = shape_hw[:2]
    out = np.zeros((h, w), dtype=np.uint8)
    if ellipse is None:
        return out
    if ellipse.is_degenerate:
        nan = any(math.isnan(v) for v in (ellipse.axis_major, ellipse.axis_minor))
        logger.log(logging.ERROR if nan else logging.WARNING,
                   "degenerate ellipse %s; rendering empty region", ellipse)
        return out
    try:
        cv2.ellipse(out, ellipse.to_cv2(), 255, -1, cv2.LINE_AA)
    except cv2.error as exc:
        logger.warning("could not rasterize ellipse %s: %s", ellipse, exc)
    return out


def overlap_ratio(a, b) -> float:
    """|a & b| / |a | b| over nonzero pixels; 0.0 when the union is empty."""
    a = a > 0
    b = b > 0
    union = int(np.count_nonzero(a | b))
    if union == 0:
        return 0.0
    return int(np.count_nonzero(a & b)) / float(union)


def compute_biou(mask, contour) -> float:
    """
    Overlap between a pupil mask and the ellipse fitted to its contour.

    Contours with fewer than MIN_CONTOUR_POINTS score 0.0. A failed or
    degenerate fit is logged and scored against an empty ellipse region,
    it never raises.
    """
    if contour is None or contour_points(contour).shape[0] < int(S.MIN_CONTOUR_POINTS):
        return 0.0

    fit = fit_ellipse(contour)
    ellipse = fit.ellipse if fit.ok else None
    if ellipse is None:
        logger.warning("ellipse fit failed (%s); scoring against empty region", fit.failure)

    region = render_ellipse_mask(mask.shape, ellipse)
    return overlap_ratio(mask, region)


def score_mask(mask) -> float | None:
    """Contour extraction + compute_biou; None when the mask has no contour."""
    contour = largest_contour(mask)
    if contour is None:
        return None
    return compute_biou(mask, contour)
