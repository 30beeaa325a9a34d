"""Face-shape fitting: morphology, pose adjustments and fit score."""
import math

import pytest
from numpy.testing import assert_allclose

from headfit.calibration import SmartFitter
from headfit.calibration.fitting import HeadMetrics, classify_head_size, classify_morphology
from headfit.core.config_loader import FittingConfig, TrackingConfig
from headfit.core.errors import InvalidMeasurement
from headfit.landmarks import LandmarkSet
from headfit.tracking import HeadTrackingPipeline

FRAME_MS = 1000.0 / 30.0


@pytest.mark.parametrize("width,shape", [
    (190.0, "round"),
    (180.0, "oval"),
    (160.0, "oval"),
    (150.0, "long"),
    (140.0, "long"),
    (130.0, "square"),
])
def test_morphology_ratio_thresholds(width, shape):
    assert classify_morphology(width, 200.0) == shape


def test_morphology_needs_height():
    with pytest.raises(InvalidMeasurement):
        classify_morphology(100.0, 0.0)


@pytest.mark.parametrize("width,height,size", [
    (50.0, 60.0, "small"),
    (90.0, 110.0, "medium"),
    (120.0, 160.0, "large"),
    (230.0, 365.0, "extra-large"),
])
def test_head_size_buckets(width, height, size):
    assert classify_head_size(width, height) == size


def test_head_metrics_from_landmarks(face):
    metrics = HeadMetrics.from_landmarks(LandmarkSet(face(head_width=200.0, head_height=250.0)))
    assert metrics.width == pytest.approx(200.0)
    assert metrics.height == pytest.approx(250.0)


def test_profile_needs_enough_confident_samples(face):
    fitter = SmartFitter(FittingConfig(min_samples=3))
    landmarks = LandmarkSet(face(head_width=190.0, head_height=200.0))

    assert not fitter.observe(landmarks, 0.5)
    assert not fitter.observe(LandmarkSet(face(count=400)), 1.0)
    fitter.observe(landmarks, 0.9)
    fitter.observe(landmarks, 0.9)
    assert fitter.update_profile(10) is None

    fitter.observe(landmarks, 0.9)
    profile = fitter.update_profile(12)
    assert profile.shape == "round"
    assert profile.scale_multiplier == 1.1
    assert profile.y_offset == 0.02
    assert profile.samples == 3
    assert profile.frame_index == 12


def test_neutral_adjustments_without_profile():
    fit = SmartFitter().adjustments((0.0, 0.0, 0.0), (0.5, 0.5, 0.5))
    assert_allclose(fit.scale, [1.0, 1.0, 1.0])
    assert_allclose(fit.offset, [0.0, 0.0, 0.0])
    assert fit.alpha == 1.0


def _profiled_fitter(face, head_width=160.0, head_height=200.0):
    fitter = SmartFitter(FittingConfig(min_samples=1))
    fitter.observe(LandmarkSet(face(head_width=head_width, head_height=head_height)), 1.0)
    fitter.update_profile()
    return fitter


def test_oval_profile_frontal_pose_is_identity(face):
    fitter = _profiled_fitter(face)
    assert fitter.profile.shape == "oval"
    fit = fitter.adjustments((0.0, 0.0, 0.0), (1.0, 1.0, 1.0))
    assert_allclose(fit.scale, [1.0, 1.0, 1.0])
    assert_allclose(fit.offset, [0.0, 0.0, 0.0])


def test_yaw_narrows_and_fades(face):
    fitter = _profiled_fitter(face)
    # 60 deg yaw: half of the 30..90 range
    fit = fitter.adjustments((0.0, math.radians(-60.0), 0.0), (1.0, 1.0, 1.0))
    assert fit.scale[0] == pytest.approx(0.95)
    assert fit.scale[1] == pytest.approx(1.0)
    assert fit.alpha == pytest.approx(0.9)

    # beyond the range the correction saturates
    fit = fitter.adjustments((0.0, math.radians(150.0), 0.0), (1.0, 1.0, 1.0))
    assert fit.alpha == pytest.approx(0.8)


def test_yaw_fades_even_without_profile():
    fit = SmartFitter().adjustments((0.0, math.radians(60.0), 0.0))
    assert fit.scale[0] == 1.0
    assert fit.alpha == pytest.approx(0.9)


def test_pitch_lifts_and_distance_pushes_back(face):
    fitter = _profiled_fitter(face)
    # 40 deg pitch: half of the 20..60 range
    fit = fitter.adjustments((math.radians(40.0), 0.0, 0.0), (0.6, 0.6, 0.6))
    assert fit.offset[1] == pytest.approx(0.025)
    assert fit.offset[2] == pytest.approx(-0.04)


def test_fit_score():
    fitter = SmartFitter()
    best = fitter.evaluate(1.0, True, (0.0, 0.0, 0.0))
    assert best.score == pytest.approx(100.0)
    assert best.is_good
    assert best.issues == []

    shaky = fitter.evaluate(0.5, False, (0.0, math.radians(50.0), 0.0))
    # 20 + 15 + (30 - 20)
    assert shaky.score == pytest.approx(45.0)
    assert not shaky.is_good
    assert shaky.issues == ["low_confidence", "unstable", "off_axis"]

    # score high enough but an issue remains
    turned = fitter.evaluate(1.0, True, (0.0, math.radians(46.0), 0.0))
    assert turned.score == pytest.approx(40.0 + 30.0 + 14.0)
    assert not turned.is_good

    assert fitter.stats['total_frames'] == 3
    assert fitter.fit_rate == pytest.approx(1.0 / 3.0)

    fitter.reset()
    assert fitter.get_stats()['total_frames'] == 0
    assert fitter.profile is None


def test_pipeline_applies_fit_on_calibration_cadence(face, frame_size):
    frames = [LandmarkSet(face())] * 12

    plain = HeadTrackingPipeline(TrackingConfig())
    config = TrackingConfig()
    config.fitting.enabled = True
    config.fitting.min_samples = 3
    fitted = HeadTrackingPipeline(config)

    plain_out = [plain.update(f, *frame_size, timestamp_ms=i * FRAME_MS) for i, f in enumerate(frames)]
    fitted_out = [fitted.update(f, *frame_size, timestamp_ms=i * FRAME_MS) for i, f in enumerate(frames)]

    # calibrator first runs at frame 5 (after warm-up); the profile follows it
    assert fitted.fitter.profile.shape == "square"
    assert fitted.fitter.profile.frame_index == 5
    assert_allclose(fitted_out[4].transform.scale, plain_out[4].transform.scale)

    last, ref = fitted_out[-1], plain_out[-1]
    assert_allclose(last.transform.scale, ref.transform.scale * 1.05)
    pose_scale = last.pose.scale[0]
    assert_allclose(
        last.transform.position - ref.transform.position,
        [0.0, -0.01, -(1.0 - pose_scale) * 0.1],
        atol=1e-12,
    )
    assert last.transform.alpha == 1.0
    assert last.fit_quality.score == pytest.approx(100.0)
    assert last.fit_quality.is_good
    assert plain_out[-1].fit_quality is None
    assert fitted.get_stats()['fitting']['morphology'] == "square"
