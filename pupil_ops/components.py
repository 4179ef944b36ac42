# pupil_ops/components.py
import numpy as np
import cv2


def small_components(mask01, max_area: int):
    """
    Labels of 8-connected blobs smaller than max_area.
    Returns (labels, [component ids]).
    """
    num, labels, stats_, _ = cv2.connectedComponentsWithStats(
        (mask01 > 0).astype(np.uint8), connectivity=8
    )
    keep = []
    for i in range(1, num):
        area = stats_[i, cv2.CC_STAT_AREA]
        if area < max_area:
            keep.append(i)
    return labels, keep
