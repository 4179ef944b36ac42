# pupil_pipeline/eye_crop.py
import numpy as np
import cv2

from pupil_ops import settings as S


def to_gray(img):
    """BGR / BGRA / single channel -> 2-D uint8."""
    if img.ndim == 2:
        return img
    if img.shape[2] == 1:
        return img[:, :, 0]
    if img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)


def pad_to_square(eye):
    """Center the crop on a black square canvas of side max(h, w)."""
    h, w = eye.shape[:2]
    side = max(h, w)
    top = (side - h) // 2
    bottom = side - h - top
    left = (side - w) // 2
    right = side - w - left
    if top == bottom == left == right == 0:
        return eye.copy()
    return cv2.copyMakeBorder(eye, top, bottom, left, right, cv2.BORDER_CONSTANT, value=0)


def expand_eye_box(points, full_shape, margin: int | None = None):
    """
    Square box around eye landmarks: bbox + margin, grown to the longer
    side, clamped to the image. Returns (X0, Y0, X1, Y1) inclusive or None.
    """
    pts = np.asarray(points, dtype=np.int64).reshape(-1, 2)
    if pts.size == 0:
        return None
    margin = int(S.EYE_BOX_MARGIN if margin is None else margin)
    H, W = full_shape[:2]

    minx, miny = pts.min(axis=0) - margin
    maxx, maxy = pts.max(axis=0) + margin

    side = max(maxx - minx, maxy - miny)
    cx = (minx + maxx) // 2
    cy = (miny + maxy) // 2
    half = side // 2

    X0 = max(0, int(cx - half))
    Y0 = max(0, int(cy - half))
    X1 = min(W - 1, int(cx + half))
    Y1 = min(H - 1, int(cy + half))

    if X1 <= X0 or Y1 <= Y0:
        return None
    return (X0, Y0, X1, Y1)


def crop_box(img, bb):
    X0, Y0, X1, Y1 = bb
    return img[Y0:Y1 + 1, X0:X1 + 1].copy()


def points_in_crop(points, bb, crop_shape):
    """Shift full-image points into crop coords, dropping those outside."""
    X0, Y0 = bb[0], bb[1]
    h, w = crop_shape[:2]
    out = []
    for x, y in np.asarray(points, dtype=np.int64).reshape(-1, 2):
        lx, ly = int(x - X0), int(y - Y0)
        if 0 <= lx < w and 0 <= ly < h:
            out.append((lx, ly))
    return out
