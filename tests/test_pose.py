"""Pose extraction and confidence scoring."""
import math

import numpy as np
import pytest
from numpy.testing import assert_allclose

from headfit.core.config_loader import ConfidenceConfig, PoseConfig
from headfit.core.errors import InvalidMeasurement, LandmarksInsufficient
from headfit.landmarks import LandmarkGroups, LandmarkSet
from headfit.pose import ConfidenceScorer, PoseExtractor


# ----------------------------------------------------------------------
# PoseExtractor
# ----------------------------------------------------------------------
def test_frontal_face_pose(face, frame_size):
    w, h = frame_size
    raw = PoseExtractor().extract(LandmarkSet(face()), w, h)

    assert raw.eye_distance_px == pytest.approx(100.0)
    assert_allclose(raw.position, [640.0 / w, 180.0 / h, -0.05])
    pitch, yaw, roll = raw.euler
    assert yaw == pytest.approx(0.0)
    assert roll == pytest.approx(0.0)
    # nose 50 px below the eye line, 0.3 sensitivity
    assert pitch == pytest.approx(0.5 * 0.3)
    assert_allclose(raw.scale, np.full(3, 100.0 / w * 5.0))


def test_yaw_from_nose_offset(face, frame_size):
    raw = PoseExtractor().extract(LandmarkSet(face(nose_offset=(20.0, 50.0))), *frame_size)
    assert raw.euler[1] == pytest.approx(20.0 / 100.0 * 0.5)


def test_roll_from_eye_line(face, frame_size):
    pts = face()
    groups = LandmarkGroups()
    pts[list(groups.right_eye), 1] += 100.0  # right eye 100 px lower, 100 px apart
    raw = PoseExtractor().extract(LandmarkSet(pts), *frame_size)
    assert raw.euler[2] == pytest.approx(math.pi / 4)


def test_yaw_compensation_enlarges_scale(face, frame_size):
    pts = LandmarkSet(face(nose_offset=(200.0, 50.0)))
    plain = PoseExtractor(PoseConfig()).extract(pts, *frame_size)
    compensated = PoseExtractor(PoseConfig(yaw_compensation=True)).extract(pts, *frame_size)

    yaw = plain.euler[1]
    expected = plain.scale[0] / max(abs(math.cos(yaw)), 0.5)
    assert compensated.scale[0] == pytest.approx(expected)
    assert compensated.scale[0] > plain.scale[0]


def test_accepts_raw_points(face, frame_size):
    raw = PoseExtractor().extract(face().tolist(), *frame_size)
    assert raw.landmark_count == 468


def test_short_set_raises_insufficient(face, frame_size):
    with pytest.raises(LandmarksInsufficient):
        PoseExtractor().extract(LandmarkSet(face(count=200)), *frame_size)


def test_coincident_eyes_raise_invalid(face, frame_size):
    with pytest.raises(InvalidMeasurement):
        PoseExtractor().extract(LandmarkSet(face(eye_distance=0.0)), *frame_size)


@pytest.mark.parametrize("size", [(0, 480), (640, 0), (-1, 480)])
def test_bad_frame_size_raises_invalid(face, size):
    with pytest.raises(InvalidMeasurement):
        PoseExtractor().extract(LandmarkSet(face()), *size)


# ----------------------------------------------------------------------
# ConfidenceScorer
# ----------------------------------------------------------------------
@pytest.mark.parametrize(
    "count, eye",
    [(0, 100.0), (468, -5.0), (468, float("nan")), (-3, 0.0), (None, None), (10**6, 1e9)],
)
def test_confidence_always_clamped(count, eye):
    scorer = ConfidenceScorer()
    for _ in range(3):
        value = scorer.score(count, eye)
        assert 0.0 <= value <= 1.0


def test_zero_landmarks_or_negative_distance_score_zero():
    assert ConfidenceScorer(ConfidenceConfig(stabilization_frames=0)).score(0, 100.0) == 0.0
    assert ConfidenceScorer(ConfidenceConfig(stabilization_frames=0)).score(468, -1.0) == 0.0


def test_count_tiers():
    scorer = ConfidenceScorer()
    assert scorer.count_factor(468) == 1.0
    assert scorer.count_factor(400) == 0.9
    assert scorer.count_factor(320) == 0.7
    assert scorer.count_factor(5) == 0.4
    assert scorer.count_factor(0) == 0.0


def test_distance_factor_comfort_range():
    scorer = ConfidenceScorer()
    assert scorer.distance_factor(100.0) == 1.0
    assert scorer.distance_factor(20.0) == pytest.approx(0.5 + 0.5 * 20.0 / 40.0)
    assert scorer.distance_factor(400.0) == pytest.approx(0.75)
    assert scorer.distance_factor(3000.0) == 0.5
    assert scorer.distance_factor(0.0) == 0.0


def test_jitter_penalty(face):
    scorer = ConfidenceScorer()
    first = LandmarkSet(face())
    moved = LandmarkSet(face(center=(650.0, 360.0)))

    assert scorer.jitter_factor(first, 100.0) == 1.0
    # 10 px mean motion at 100 px eye distance: excess 0.08, gain 5
    assert scorer.jitter_factor(moved, 100.0) == pytest.approx(0.6)
    assert scorer.jitter_factor(moved, 100.0) == 1.0


def test_warmup_ramp():
    scorer = ConfidenceScorer(ConfidenceConfig(stabilization_frames=5))
    values = [scorer.score(468, 100.0) for _ in range(6)]
    assert_allclose(values, [0.2, 0.4, 0.6, 0.8, 1.0, 1.0])


def test_stationary_face_reaches_high_confidence(face):
    scorer = ConfidenceScorer(ConfidenceConfig(stabilization_frames=5))
    landmarks = LandmarkSet(face())
    values = [scorer.score(len(landmarks), landmarks.eye_distance(), landmarks) for _ in range(12)]
    assert all(v >= 0.9 for v in values[10:])


def test_deviation_blend_smooths_drop():
    scorer = ConfidenceScorer(ConfidenceConfig(stabilization_frames=0))
    assert scorer.score(468, 100.0) == 1.0
    # raw drops to 0.4: weight = 0.2 + 0.6 = 0.8
    assert scorer.score(5, 100.0) == pytest.approx(1.0 + 0.8 * (0.4 - 1.0))


def test_instability_and_reset():
    scorer = ConfidenceScorer(ConfidenceConfig(stabilization_frames=0))
    scorer.score(468, 100.0)
    assert not scorer.is_unstable()
    scorer.score(0, 100.0)
    assert scorer.is_unstable()

    scorer.reset()
    assert scorer.frames_scored == 0
    assert len(scorer.history) == 0
    assert not scorer.is_unstable()


def test_residual_factor_penalizes_filter_lag():
    scorer = ConfidenceScorer()
    assert scorer.residual_factor(None, None) == 1.0
    assert scorer.residual_factor([0.5, 0.5, 0.0], [0.52, 0.5, 0.0]) == 1.0
    # 0.15 residual: excess 0.10, gain 4
    assert scorer.residual_factor([0.65, 0.5, 0.0], [0.5, 0.5, 0.0]) == pytest.approx(0.6)
    assert scorer.residual_factor([0.9, 0.5, 0.0], [0.5, 0.5, 0.0]) == 0.6


def test_residual_feeds_the_score():
    scorer = ConfidenceScorer(ConfidenceConfig(stabilization_frames=0))
    value = scorer.score(468, 100.0, raw_position=[0.6, 0.5, 0.0], filtered_position=[0.5, 0.5, 0.0])
    assert value == pytest.approx(0.8)
    assert scorer.last_factors["residual"] == pytest.approx(0.8)
