"""
Euler / quaternion convention shared by the whole package.

Angles are (pitch, yaw, roll) = rotations about (x, y, z) in radians,
applied as intrinsic XYZ, i.e. R = Rx(pitch) @ Ry(yaw) @ Rz(roll).
Quaternions are stored as (w, x, y, z).

Round trips are exact up to float error while |yaw| < pi/2; at yaw = +-pi/2
pitch and roll share one axis and roll is reported as 0.
"""
import numpy as np

from ..core.constants import Constants


IDENTITY_QUATERNION = np.array([1.0, 0.0, 0.0, 0.0])
GIMBAL_THRESHOLD = 0.9999999


def normalize_quaternion(q) -> np.ndarray:
    """Unit quaternion; identity when the magnitude is numerically zero."""
    q = np.asarray(q, dtype=float).reshape(4)
    n = float(np.linalg.norm(q))
    if not np.isfinite(n) or n < Constants.QUATERNION_EPS:
        return IDENTITY_QUATERNION.copy()
    return q / n


def euler_to_quaternion(euler) -> np.ndarray:
    pitch, yaw, roll = (float(a) for a in euler)
    c1, s1 = np.cos(pitch / 2.0), np.sin(pitch / 2.0)
    c2, s2 = np.cos(yaw / 2.0), np.sin(yaw / 2.0)
    c3, s3 = np.cos(roll / 2.0), np.sin(roll / 2.0)

    return np.array([
        c1 * c2 * c3 - s1 * s2 * s3,
        s1 * c2 * c3 + c1 * s2 * s3,
        c1 * s2 * c3 - s1 * c2 * s3,
        c1 * c2 * s3 + s1 * s2 * c3,
    ])


def euler_to_matrix(euler) -> np.ndarray:
    """Rx @ Ry @ Rz."""
    pitch, yaw, roll = (float(a) for a in euler)
    cx, sx = np.cos(pitch), np.sin(pitch)
    cy, sy = np.cos(yaw), np.sin(yaw)
    cz, sz = np.cos(roll), np.sin(roll)

    Rx = np.array([[1.0, 0.0, 0.0], [0.0, cx, -sx], [0.0, sx, cx]])
    Ry = np.array([[cy, 0.0, sy], [0.0, 1.0, 0.0], [-sy, 0.0, cy]])
    Rz = np.array([[cz, -sz, 0.0], [sz, cz, 0.0], [0.0, 0.0, 1.0]])
    return Rx @ Ry @ Rz


def quaternion_to_matrix(q) -> np.ndarray:
    w, x, y, z = normalize_quaternion(q)
    return np.array([
        [1.0 - 2.0 * (y * y + z * z), 2.0 * (x * y - w * z), 2.0 * (x * z + w * y)],
        [2.0 * (x * y + w * z), 1.0 - 2.0 * (x * x + z * z), 2.0 * (y * z - w * x)],
        [2.0 * (x * z - w * y), 2.0 * (y * z + w * x), 1.0 - 2.0 * (x * x + y * y)],
    ])


def matrix_to_euler(R) -> np.ndarray:
    """Decompose a rotation matrix into intrinsic XYZ angles."""
    R = np.asarray(R, dtype=float)
    m13 = float(np.clip(R[0, 2], -1.0, 1.0))
    yaw = np.arcsin(m13)

    if abs(m13) < GIMBAL_THRESHOLD:
        pitch = np.arctan2(-R[1, 2], R[2, 2])
        roll = np.arctan2(-R[0, 1], R[0, 0])
    else:
        # Gimbal lock: fold everything into pitch
        pitch = np.arctan2(R[2, 1], R[1, 1])
        roll = 0.0

    return np.array([pitch, yaw, roll], dtype=float)


def quaternion_to_euler(q) -> np.ndarray:
    return matrix_to_euler(quaternion_to_matrix(q))


def quaternion_angle(q1, q2) -> float:
    """Rotation angle (rad) between two orientations, sign-agnostic."""
    d = abs(float(np.dot(normalize_quaternion(q1), normalize_quaternion(q2))))
    return float(2.0 * np.arccos(min(1.0, d)))
