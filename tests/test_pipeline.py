import numpy as np
import pytest

from pupil_ops.results import FailureKind
from pupil_pipeline.eye_crop import expand_eye_box, pad_to_square, to_gray
from pupil_pipeline.landmarks import EyeRegions, crop_eyes
from pupil_pipeline.pipeline import (
    classify,
    is_correct,
    process_eye_image,
    process_face_image,
    process_video,
    score_eye_gray,
)

from conftest import FakeLandmarker, draw_eye


def test_eye_image_non_square_color():
    img = draw_eye(shape=(200, 260), center=(130, 100), radius=35, channels=3)
    s = process_eye_image(img)
    assert s.ok
    assert 0.8 < s.biou <= 1.0
    assert s.pupil.mask.shape == (260, 260)


def test_eye_image_blank_skipped(blank_gray):
    s = process_eye_image(blank_gray)
    assert not s.ok
    assert s.failure.kind is FailureKind.NOT_FOUND


def test_eye_image_empty():
    s = process_eye_image(np.zeros((0, 0, 3), np.uint8))
    assert s.failure.kind is FailureKind.INVALID_INPUT


def test_score_eye_gray_timings(eye_gray):
    s, t = score_eye_gray(eye_gray)
    assert s.ok and s.frames_used == 1
    assert set(t) == {"locate", "biou", "total"}
    assert t["total"] >= t["locate"]


@pytest.mark.parametrize("biou, label", [(0.51, "real"), (0.5, "synthetic"), (0.2, "synthetic")])
def test_classify(biou, label):
    assert classify(biou) == label


def test_is_correct_at_threshold():
    assert is_correct("real", 0.9)
    assert is_correct("synthetic", 0.1)
    assert not is_correct("real", 0.5)
    assert not is_correct("synthetic", 0.5)
    assert not is_correct("other", 0.9)
    assert is_correct("synthetic", 0.6, threshold=0.7)


def test_face_picks_scored_eye(fake_regions):
    lm = FakeLandmarker(fake_regions)
    s = process_face_image(np.zeros((10, 10, 3), np.uint8), lm)
    assert s.ok and s.side == "right"
    assert lm.calls == 1


def test_face_tie_goes_left(fake_regions):
    eye = fake_regions.right_eye
    s = process_face_image(np.zeros((10, 10, 3), np.uint8), FakeLandmarker(EyeRegions(eye, eye.copy())))
    assert s.ok and s.side == "left"


def test_face_not_detected():
    s = process_face_image(np.zeros((10, 10, 3), np.uint8), FakeLandmarker(None))
    assert s.failure.kind is FailureKind.NOT_FOUND


def test_face_no_pupil_in_either_eye():
    blank = np.full((120, 120, 3), 180, np.uint8)
    s = process_face_image(np.zeros((10, 10, 3), np.uint8), FakeLandmarker(EyeRegions(blank, blank)))
    assert not s.ok
    assert s.failure.kind is FailureKind.NOT_FOUND


def test_video_uses_first_five_frames(fake_regions):
    eye = fake_regions.right_eye
    lm = FakeLandmarker(EyeRegions(eye, eye))
    frames = [np.zeros((10, 10, 3), np.uint8)] * 7
    s = process_video(frames, lm)
    assert s.ok
    assert s.frames_used == 5 and lm.calls == 5
    single, _ = score_eye_gray(to_gray(eye))
    assert s.biou == pytest.approx(single.biou)


def test_video_without_face():
    s = process_video([np.zeros((10, 10, 3), np.uint8)] * 3, FakeLandmarker(None))
    assert not s.ok and s.frames_used == 0


def _landmarks():
    pts = np.zeros((68, 2), np.int64)
    pts[36:42] = [(100, 150), (110, 145), (130, 145), (140, 150), (130, 155), (110, 155)]
    pts[42:48] = [(260, 150), (270, 145), (290, 145), (300, 150), (290, 155), (270, 155)]
    return pts


def test_crop_eyes_square_boxes():
    img = np.zeros((300, 400, 3), np.uint8)
    regions = crop_eyes(img, _landmarks(), margin=30)
    assert regions.left_eye.shape[:2] == (101, 101)
    assert regions.right_eye.shape[:2] == (101, 101)
    assert len(regions.left_landmarks) == 6
    assert all(0 <= x < 101 and 0 <= y < 101 for x, y in regions.right_landmarks)


def test_crop_eyes_needs_68_points():
    assert crop_eyes(np.zeros((50, 50, 3), np.uint8), np.zeros((20, 2))) is None


def test_expand_eye_box_clamps():
    assert expand_eye_box([(100, 145), (140, 155)], (300, 400), margin=30) == (70, 100, 170, 200)
    x0, y0, x1, y1 = expand_eye_box([(5, 5), (15, 10)], (100, 100), margin=30)
    assert (x0, y0) == (0, 0)
    assert expand_eye_box([], (100, 100)) is None


def test_pad_to_square():
    eye = np.full((10, 20, 3), 7, np.uint8)
    sq = pad_to_square(eye)
    assert sq.shape == (20, 20, 3)
    assert (sq[5:15] == 7).all()
    assert not sq[:5].any() and not sq[15:].any()

    square = np.ones((8, 8), np.uint8)
    out = pad_to_square(square)
    np.testing.assert_array_equal(out, square)
    assert out is not square


class _LandmarkBackend:
    """Landmark source wired through crop_eyes, as a dlib backend would be."""

    def __init__(self, points):
        self.points = points

    def detect(self, image):
        return crop_eyes(image, self.points)


def test_face_through_crop_eyes_adapter():
    face = draw_eye(shape=(300, 400), center=(280, 150), radius=25, channels=3)
    s = process_face_image(face, _LandmarkBackend(_landmarks()))
    assert s.ok and s.side == "right"
    assert s.biou > 0.8
