import math

import cv2
import numpy as np
import pytest

from pupil_pipeline.landmarks import EyeRegions


def draw_eye(shape=(240, 240), center=(120, 118), radius=40, bg=200, pupil=30, channels=1):
    h, w = shape
    img = np.full((h, w), bg, dtype=np.uint8)
    cv2.circle(img, center, radius, pupil, -1)
    if channels == 3:
        img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    return img


def ellipse_points(cx, cy, a, b, theta_deg=0.0, n=40):
    """n points on an ellipse with semi-axes a (along theta) and b."""
    th = math.radians(theta_deg)
    t = np.linspace(0.0, 2.0 * np.pi, n, endpoint=False)
    x = a * np.cos(t)
    y = b * np.sin(t)
    xr = cx + x * math.cos(th) - y * math.sin(th)
    yr = cy + x * math.sin(th) + y * math.cos(th)
    return np.stack([xr, yr], axis=1)


def angle_diff(a, b):
    """Smallest difference between two axis directions (mod 180)."""
    d = abs((a - b) % 180.0)
    return min(d, 180.0 - d)


class FakeLandmarker:
    """Returns the same EyeRegions for every image (or None)."""

    def __init__(self, regions):
        self.regions = regions
        self.calls = 0

    def detect(self, image):
        self.calls += 1
        return self.regions


@pytest.fixture
def eye_gray():
    return draw_eye()


@pytest.fixture
def blank_gray():
    return np.full((200, 200), 180, dtype=np.uint8)


@pytest.fixture
def fake_regions():
    return EyeRegions(
        left_eye=np.full((120, 120, 3), 180, dtype=np.uint8),
        right_eye=draw_eye(shape=(200, 200), center=(100, 100), radius=35, channels=3),
    )
