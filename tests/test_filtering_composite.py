"""Vector3 / quaternion estimators and the Euler convention."""
import numpy as np
import pytest
from numpy.testing import assert_allclose

from headfit.core.errors import InvalidMeasurement
from headfit.filtering import (
    QuaternionKalmanFilter,
    Vector3KalmanFilter,
    euler_to_matrix,
    euler_to_quaternion,
    matrix_to_euler,
    normalize_quaternion,
    quaternion_angle,
    quaternion_to_euler,
    quaternion_to_matrix,
)


EULERS = [
    (0.0, 0.0, 0.0),
    (0.3, -0.2, 0.1),
    (-1.2, 0.8, 2.5),
    (2.9, -1.3, -3.0),
    (0.05, 1.5, -0.4),
]


@pytest.mark.parametrize("euler", EULERS)
def test_euler_quaternion_round_trip_away_from_gimbal_lock(euler):
    q = euler_to_quaternion(euler)
    assert np.linalg.norm(q) == pytest.approx(1.0)
    assert_allclose(quaternion_to_euler(q), euler, atol=1e-9)


@pytest.mark.parametrize("euler", EULERS)
def test_quaternion_matrix_matches_xyz_matrix(euler):
    assert_allclose(quaternion_to_matrix(euler_to_quaternion(euler)), euler_to_matrix(euler), atol=1e-12)


def test_gimbal_lock_folds_roll_into_pitch():
    R = euler_to_matrix((0.4, np.pi / 2, 0.3))
    pitch, yaw, roll = matrix_to_euler(R)
    assert yaw == pytest.approx(np.pi / 2)
    assert roll == 0.0
    assert_allclose(euler_to_matrix((pitch, yaw, roll)), R, atol=1e-6)


def test_normalize_zero_quaternion_is_identity():
    assert_allclose(normalize_quaternion([0.0, 0.0, 0.0, 0.0]), [1.0, 0.0, 0.0, 0.0])
    assert_allclose(normalize_quaternion([1e-14, 0.0, 0.0, 0.0]), [1.0, 0.0, 0.0, 0.0])
    assert_allclose(normalize_quaternion([0.0, 2.0, 0.0, 0.0]), [0.0, 1.0, 0.0, 0.0])


def test_vector3_filters_each_axis_independently():
    vf = Vector3KalmanFilter(4.0, 0.015)
    assert_allclose(vf.update([1.0, 2.0, 3.0]), [1.0, 2.0, 3.0])
    out = vf.update([2.0, 2.0, 2.0])
    k = 5.0 / 5.015
    assert_allclose(out, [1.0 + k, 2.0, 3.0 - k])
    assert set(vf.get_metrics()) == {"x", "y", "z"}


def test_vector3_rejects_bad_input_atomically():
    vf = Vector3KalmanFilter()
    vf.update([1.0, 1.0, 1.0])
    before = vf.estimate.copy()
    lengths = [len(f.history) for f in vf.filters]

    with pytest.raises(InvalidMeasurement):
        vf.update([2.0, float("nan"), 2.0])
    with pytest.raises(InvalidMeasurement):
        vf.update([2.0, 2.0])

    assert_allclose(vf.estimate, before)
    assert [len(f.history) for f in vf.filters] == lengths


def test_vector3_reset_and_set_parameters():
    vf = Vector3KalmanFilter()
    vf.update([1.0, 1.0, 1.0])
    vf.set_parameters(1.0, 2.0)
    assert all(f.Q == 1.0 and f.R == 2.0 for f in vf.filters)
    vf.reset()
    assert not vf.initialized
    assert_allclose(vf.update([4.0, 5.0, 6.0]), [4.0, 5.0, 6.0])


def test_quaternion_output_is_unit_after_every_update():
    rng = np.random.default_rng(3)
    qf = QuaternionKalmanFilter(3.5, 0.02)
    for _ in range(100):
        out = qf.update(rng.normal(size=4) * rng.uniform(0.1, 5.0))
        assert np.linalg.norm(out) == pytest.approx(1.0, abs=1e-6)


def test_quaternion_zero_measurement_falls_back_to_identity():
    qf = QuaternionKalmanFilter()
    out = qf.update([0.0, 0.0, 0.0, 0.0])
    assert_allclose(out, [1.0, 0.0, 0.0, 0.0])
    assert np.linalg.norm(out) == pytest.approx(1.0, abs=1e-6)


def test_quaternion_hemisphere_alignment():
    q = euler_to_quaternion((0.2, -0.1, 0.3))
    qf = QuaternionKalmanFilter(3.5, 0.02)
    qf.update(q)
    # -q is the same rotation: without alignment the components would average toward zero
    for _ in range(5):
        out = qf.update(-q)
        assert quaternion_angle(out, q) < 1e-6
        assert np.dot(out, q) > 0.99


def test_quaternion_tracks_rotation_change():
    q0 = euler_to_quaternion((0.0, 0.0, 0.0))
    q1 = euler_to_quaternion((0.0, 0.5, 0.0))
    qf = QuaternionKalmanFilter(3.5, 0.02)
    qf.update(q0)
    for _ in range(30):
        out = qf.update(q1)
    assert quaternion_angle(out, q1) < 1e-3
    assert_allclose(quaternion_to_euler(out), [0.0, 0.5, 0.0], atol=1e-3)


def test_quaternion_state_stays_unit_during_sweep():
    qf = QuaternionKalmanFilter(3.5, 0.02)
    for yaw in np.linspace(0.0, 1.2, 60):
        qf.update(euler_to_quaternion((0.0, yaw, 0.0)))
        assert np.linalg.norm(qf.estimate) == pytest.approx(1.0, abs=1e-9)
    assert_allclose(qf.orientation, qf.estimate)
