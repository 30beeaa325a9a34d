"""
Filtering module

Scalar and composite Kalman estimators plus the Euler / quaternion helpers.
"""
from .composite import QuaternionKalmanFilter, Vector3KalmanFilter
from .kalman import FilterSample, ScalarKalmanFilter
from .rotation import (
    IDENTITY_QUATERNION,
    euler_to_matrix,
    euler_to_quaternion,
    matrix_to_euler,
    normalize_quaternion,
    quaternion_angle,
    quaternion_to_euler,
    quaternion_to_matrix,
)

__all__ = [
    'ScalarKalmanFilter',
    'FilterSample',
    'Vector3KalmanFilter',
    'QuaternionKalmanFilter',
    'IDENTITY_QUATERNION',
    'normalize_quaternion',
    'euler_to_quaternion',
    'euler_to_matrix',
    'quaternion_to_matrix',
    'matrix_to_euler',
    'quaternion_to_euler',
    'quaternion_angle',
]
