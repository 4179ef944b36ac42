import math

import cv2
import numpy as np
import pytest

from pupil_ops import geometry
from pupil_ops.geometry import Ellipse, canonical_ellipse, fit_conic, fit_ellipse, fit_ellipse_direct
from pupil_ops.results import FailureKind

from conftest import angle_diff, ellipse_points


def test_eight_points_on_axis_aligned_ellipse():
    pts = ellipse_points(50, 50, 30, 20, 0.0, n=8)
    res = fit_ellipse(pts)
    assert res.ok and res.method == "direct"
    e = res.ellipse
    assert abs(e.center[0] - 50) <= 1 and abs(e.center[1] - 50) <= 1
    assert abs(e.axis_major - 60) <= 2
    assert abs(e.axis_minor - 40) <= 2
    assert angle_diff(e.angle_deg, 0.0) <= 5


def test_vertical_major_axis_reports_90_degrees():
    pts = ellipse_points(80, 60, 15, 35, 0.0, n=24)
    e = fit_ellipse(pts).ellipse
    assert e.axis_major == pytest.approx(70, abs=1e-6)
    assert e.axis_minor == pytest.approx(30, abs=1e-6)
    assert angle_diff(e.angle_deg, 90.0) < 1e-6


@pytest.mark.parametrize("n", [0, 1, 4])
def test_too_few_points_fail_without_raising(n):
    pts = ellipse_points(0, 0, 10, 5, n=max(n, 1))[:n]
    res = fit_ellipse(pts)
    assert not res.ok
    assert res.failure.kind is FailureKind.INVALID_INPUT
    assert fit_ellipse_direct(pts) is None
    assert fit_conic(pts) is None


def test_rigid_transform_invariance():
    pts = ellipse_points(0, 0, 40, 15, 20.0, n=40)
    rot = 35.0
    c, s = math.cos(math.radians(rot)), math.sin(math.radians(rot))
    R = np.array([[c, -s], [s, c]])
    t = np.array([117.0, -9.5])
    moved = pts @ R.T + t

    e0 = fit_ellipse(pts).ellipse
    e1 = fit_ellipse(moved).ellipse

    expected_center = R @ np.array(e0.center) + t
    np.testing.assert_allclose(e1.center, expected_center, atol=1e-6)
    assert e1.axis_major == pytest.approx(e0.axis_major, rel=1e-6)
    assert e1.axis_minor == pytest.approx(e0.axis_minor, rel=1e-6)
    assert angle_diff(e1.angle_deg, e0.angle_deg + rot) < 1e-4


def test_matches_drawn_ellipse_contour():
    mask = np.zeros((200, 200), np.uint8)
    cv2.ellipse(mask, ((100, 95), (80, 50), 30), 255, -1)
    contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_NONE)
    res = fit_ellipse(contours[0])
    assert res.ok and res.method == "direct"
    e = res.ellipse
    assert abs(e.center[0] - 100) <= 1 and abs(e.center[1] - 95) <= 1
    assert abs(e.axis_major - 80) <= 2.5
    assert abs(e.axis_minor - 50) <= 2.5
    assert angle_diff(e.angle_deg, 30) <= 3


def test_direct_and_opencv_agree_on_noisy_points():
    rng = np.random.default_rng(7)
    pts = ellipse_points(64, 40, 25, 12, 110.0, n=60) + rng.normal(0, 0.3, (60, 2))
    d = fit_ellipse_direct(pts)
    o = geometry.fit_ellipse_opencv(pts)
    assert np.hypot(d.center[0] - o.center[0], d.center[1] - o.center[1]) < 1.0
    assert abs(d.axis_major - o.axis_major) < 1.5
    assert abs(d.axis_minor - o.axis_minor) < 1.5
    assert angle_diff(d.angle_deg, o.angle_deg) < 3


def test_fallback_used_when_direct_fails(monkeypatch):
    monkeypatch.setattr(geometry, "fit_ellipse_direct", lambda contour: None)
    res = fit_ellipse(ellipse_points(30, 30, 12, 8, n=30))
    assert res.ok and res.method == "opencv"
    assert abs(res.ellipse.axis_major - 24) < 1.0


def test_both_methods_failing_is_degenerate_fit(monkeypatch):
    monkeypatch.setattr(geometry, "fit_ellipse_direct", lambda contour: None)
    monkeypatch.setattr(geometry, "fit_ellipse_opencv", lambda contour: None)
    res = fit_ellipse(ellipse_points(30, 30, 12, 8, n=30))
    assert not res.ok
    assert res.failure.kind is FailureKind.DEGENERATE_FIT


def test_collinear_points_never_raise():
    pts = np.array([[x, 10] for x in range(0, 40, 4)], dtype=np.int32)
    assert fit_ellipse_direct(pts) is None
    res = fit_ellipse(pts)
    assert res.ok or res.failure.kind is FailureKind.DEGENERATE_FIT


def test_canonical_swaps_and_wraps():
    e = canonical_ellipse((0, 0), 10.0, 30.0, 120.0)
    assert (e.axis_major, e.axis_minor) == (30.0, 10.0)
    assert e.angle_deg == pytest.approx(30.0)

    e = canonical_ellipse((0, 0), 30.0, 10.0, -45.0)
    assert e.angle_deg == pytest.approx(135.0)
    assert 0.0 <= canonical_ellipse((0, 0), 5.0, 4.0, -1e-17).angle_deg < 180.0


def test_cv2_box_roundtrip():
    e = Ellipse.from_cv2(((10.0, 12.0), (20.0, 40.0), 30.0))
    assert e.axis_major == 40.0 and e.axis_minor == 20.0
    assert e.angle_deg == pytest.approx(120.0)
    assert Ellipse.from_cv2(e.to_cv2()) == e


def test_degenerate_flag():
    assert Ellipse((0.0, 0.0), 0.0, 0.0, 0.0).is_degenerate
    assert Ellipse((0.0, 0.0), float("nan"), 1.0, 0.0).is_degenerate
    assert not Ellipse((0.0, 0.0), 2.0, 1.0, 0.0).is_degenerate
