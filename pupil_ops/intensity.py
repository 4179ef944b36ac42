# pupil_ops/intensity.py
import numpy as np
import cv2
from . import settings as S


def _odd(k: int) -> int:
    k = int(k)
    return k if (k % 2 == 1) else (k + 1)


def to_u8(gray):
    """Bring any single-channel raster into 0..255 uint8."""
    if gray.dtype == np.uint8:
        return gray.copy()
    if np.issubdtype(gray.dtype, np.floating) and float(np.nanmax(gray, initial=0.0)) <= 1.0:
        return np.clip(np.nan_to_num(gray) * 255.0, 0, 255).astype(np.uint8)
    return np.clip(np.nan_to_num(gray.astype(np.float64)), 0, 255).astype(np.uint8)


def preprocess_for_pupil(gray):
    """8-bit -> CLAHE (uneven lighting) -> median blur (speckle / small glints)."""
    g = to_u8(gray)
    clahe = cv2.createCLAHE(clipLimit=float(S.CLAHE_CLIP), tileGridSize=tuple(S.CLAHE_TILE))
    g = clahe.apply(g)
    k = _odd(S.MEDIAN_K)
    if k > 1:
        g = cv2.medianBlur(g, k)
    return g


def edge_map(gray_u8, low: int | None = None, high: int | None = None):
    """
    Canny, then dilate -> close -> open with a small ellipse.

    Canny edges are 1 px wide and a 3x3 open alone removes all of them;
    the dilation thickens real boundaries enough to survive the open.
    """
    low = int(S.CANNY_LOW if low is None else low)
    high = int(S.CANNY_HIGH if high is None else high)
    edges = cv2.Canny(gray_u8, low, high, apertureSize=int(S.CANNY_APERTURE))

    k = int(S.EDGE_MORPH_K)
    if k > 0:
        kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (k, k))
        if bool(getattr(S, "EDGE_DILATE", True)):
            edges = cv2.dilate(edges, kernel)
        edges = cv2.morphologyEx(edges, cv2.MORPH_CLOSE, kernel)
        edges = cv2.morphologyEx(edges, cv2.MORPH_OPEN, kernel)
    return edges
