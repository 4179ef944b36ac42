# pupil_ops/masks.py
import numpy as np
import cv2
from . import settings as S
from .components import small_components


def morph(mask, open_k: int, close_k: int):
    m = mask.copy().astype(np.uint8)
    if int(open_k) > 0:
        k = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (int(open_k), int(open_k)))
        m = cv2.morphologyEx(m, cv2.MORPH_OPEN, k)
    if int(close_k) > 0:
        k = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (int(close_k), int(close_k)))
        m = cv2.morphologyEx(m, cv2.MORPH_CLOSE, k)
    return m


def disk_mask(shape_hw, center, radius: int):
    """Filled disk, 255 inside / 0 outside."""
    h, w = shape_hw[:2]
    m = np.zeros((h, w), dtype=np.uint8)
    cv2.circle(m, (int(center[0]), int(center[1])), int(radius), 255, -1)
    return m


def _local_roi(shape_hw, center, radius: int):
    """Clipped (x0, y0, w, h) box of side 2r+1 around the circle."""
    H, W = shape_hw[:2]
    cx, cy = int(center[0]), int(center[1])
    r = int(radius)
    x0 = max(0, cx - r)
    y0 = max(0, cy - r)
    x1 = min(W, cx + r + 1)
    y1 = min(H, cy + r + 1)
    return x0, y0, x1 - x0, y1 - y0


def _otsu_inside(local, inside):
    """Otsu threshold over the pixels of `local` where `inside` is set. None when they are all equal."""
    vals = local[inside > 0]
    if vals.size == 0 or vals.min() == vals.max():
        return None
    t, _ = cv2.threshold(vals.reshape(-1, 1), 0, 255, cv2.THRESH_BINARY | cv2.THRESH_OTSU)
    return float(t)


def restore_specular_highlights(mask, gray, center, radius: int):
    """
    Small bright blobs inside the pupil circle are reflections, not holes:
    blobs under SPECULAR_MAX_AREA are written back into the mask as pupil.
    Returns a new mask.
    """
    out = mask.copy()
    x0, y0, w, h = _local_roi(gray.shape, center, radius)
    if w <= 0 or h <= 0:
        return out

    local = gray[y0:y0 + h, x0:x0 + w]
    inside = disk_mask(local.shape, (int(center[0]) - x0, int(center[1]) - y0), radius)

    t = _otsu_inside(local, inside)
    if t is None:
        return out

    highlights = ((local > t + float(S.SPECULAR_OFFSET)) & (inside > 0)).astype(np.uint8)
    highlights = morph(highlights, open_k=int(S.SPECULAR_OPEN_K), close_k=0)

    labels, ids = small_components(highlights, int(S.SPECULAR_MAX_AREA))
    if ids:
        restore = np.isin(labels, ids)
        out[y0:y0 + h, x0:x0 + w][restore] = 255
    return out


def erase_bright_spots(mask, gray, center, radius: int):
    """
    Second Otsu pass inside the circle: every pixel brighter than
    threshold + BRIGHT_ERASE_OFFSET clears a small disk in the mask.
    Returns a new mask.
    """
    out = mask.copy()
    x0, y0, w, h = _local_roi(gray.shape, center, radius)
    min_side = int(S.BRIGHT_ERASE_MIN_ROI)
    if w <= min_side or h <= min_side:
        return out

    local = gray[y0:y0 + h, x0:x0 + w]
    inside = disk_mask(local.shape, (int(center[0]) - x0, int(center[1]) - y0), radius)

    t = _otsu_inside(local, inside)
    if t is None:
        return out

    ys, xs = np.nonzero((local > t + float(S.BRIGHT_ERASE_OFFSET)) & (inside > 0))
    r_erase = int(S.BRIGHT_ERASE_RADIUS)
    for x, y in zip(xs, ys):
        cv2.circle(out, (int(x0 + x), int(y0 + y)), r_erase, 0, -1)
    return out


def mask_area(mask) -> int:
    return int(cv2.countNonZero((mask > 0).astype(np.uint8)))
